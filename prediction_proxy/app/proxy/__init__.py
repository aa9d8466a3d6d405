"""
Proxy Package
=============

This package implements the prediction proxy endpoint that forwards chat
questions to the upstream prediction service and streams the answers back.

Main Components:
----------------
- routes.py: FastAPI router with the catch-all proxy endpoint

Usage:
------
    from prediction_proxy.app.proxy import proxy_router
    app.include_router(proxy_router)
"""

from .routes import proxy_router

__all__ = ["proxy_router"]
