"""
Root application entry point for the POS item lookup service
=============================================================

This module exposes the FastAPI application instance defined in
``app/main.py`` so that deployment tools like Uvicorn can import
``main:app`` without needing to treat the repository as a Python
package.

Usage
-----

.. code-block:: bash

    uvicorn main:app --host 0.0.0.0 --port 8000
"""

from app.main import app  # noqa: F401 re-export for Uvicorn

__all__ = ["app"]
