"""
Route package for the item lookup service.

Each module defines an ``APIRouter`` that groups related endpoints;
``app.main`` includes them in the FastAPI instance.
"""

__all__ = ["items"]
