"""
Core helpers package for the item lookup service.

This package contains low-level infrastructure helpers: settings,
endpoint and header selection, the error taxonomy and the credential
context.  Keeping these helpers in a dedicated package makes it easy
to swap implementations or customise behaviour for testing.
"""

__all__ = []
