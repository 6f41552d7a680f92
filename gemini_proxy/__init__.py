"""
Gemini Proxy
============

Serverless-friendly FastAPI service that forwards generateContent requests
to the Google Generative Language API with a server-side API key.

Packages:
    - proxy:  the /api/gemini-proxy endpoint
    - config: environment-driven settings
    - models: request envelope and error/health bodies
    - main:   application factory (create_app, app)
"""

__version__ = "1.0.0"
