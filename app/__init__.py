"""
app package
-----------

This package contains the item lookup service: the catalog client,
the persistent item cache, the lookup orchestrator and the FastAPI
application exposing them. The ASGI application lives in
:mod:`app.main`.
"""
