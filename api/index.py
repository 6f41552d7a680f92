"""
Vercel Serverless entry-point.
Every route defined in gemini_proxy.main ( /api/gemini-proxy, /health, … )
is reachable through the rewrite in vercel.json.
"""
from gemini_proxy.main import app  # fastapi.FastAPI instance
