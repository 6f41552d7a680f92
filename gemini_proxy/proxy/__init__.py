"""
Proxy Package
=============

This package implements the endpoint that forwards generateContent
requests from clients to the Google Generative Language API.

Main Components:
----------------
- routes.py: FastAPI router with the proxy endpoint (/api/gemini-proxy)

Usage:
------
    from gemini_proxy.proxy import proxy_router
    app.include_router(proxy_router)
"""

from .routes import proxy_router

__all__ = ["proxy_router"]
