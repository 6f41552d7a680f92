"""
Proxy Routes - Gemini Request Forwarding
========================================

This module implements the single proxy endpoint that forwards a client's
model name and generateContent payload to the Google Generative Language
API, injecting the server-held API key.

Flow:
-----
1. Reject anything that is not a POST (405)
2. Read the JSON envelope {"model": ..., "payload": ...}
3. Resolve GEMINI_API_KEY from the environment (500 if missing)
4. POST the payload verbatim to models/{model}:generateContent?key=...
5. Relay the upstream result:
   - 2xx: upstream JSON body unchanged, status 200
   - non-2xx: {"message": "Error de la API de Gemini: <text>"}, upstream status

Any exception raised along the way is reported as a 500 with the exception
message in the "error" field.

Endpoints:
----------
- POST /api/gemini-proxy
"""

import logging
from typing import Any, Dict, Optional

import httpx
from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse

from ..config import get_settings
from ..models import ErrorResponse, GeminiProxyRequest

logger = logging.getLogger(__name__)

# Create router
proxy_router = APIRouter()

# Every method is routed here so non-POST requests get our 405 body
# instead of the framework default.
PROXY_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS", "HEAD"]

METHOD_NOT_ALLOWED_MESSAGE = "Method Not Allowed"
MISSING_API_KEY_MESSAGE = "Server configuration error: API key not set."
UPSTREAM_ERROR_PREFIX = "Error de la API de Gemini: "
INTERNAL_ERROR_MESSAGE = "Internal Server Error"


# ============================================================================
# Dependencies
# ============================================================================

async def get_upstream_client(request: Request) -> httpx.AsyncClient:
    """
    Dependency to get the upstream HTTP client from app state.

    The client is normally created by the application lifespan. Serverless
    runtimes may skip lifespan events, so it is created on first use when
    missing. Runs on the event loop with no await, so concurrent first
    requests share one client.

    The timeout is passed per request by the endpoint, so settings are not
    read here.

    Args:
        request: FastAPI request object

    Returns:
        Shared httpx.AsyncClient for upstream communication
    """
    app_state = request.app.state.app_state

    if app_state.upstream_client is None:
        app_state.upstream_client = httpx.AsyncClient(timeout=None)
        logger.info("Created upstream client on first request")

    return app_state.upstream_client


# ============================================================================
# Upstream Request Helpers
# ============================================================================

def build_upstream_url(base_url: str, model: Any) -> str:
    """
    Build the generateContent URL for a model.

    The API key is not part of the returned URL; it travels as the "key"
    query parameter so it never ends up in log lines built from this value.
    """
    return f"{base_url}/models/{model}:generateContent"


def build_upstream_headers() -> Dict[str, str]:
    return {"Content-Type": "application/json"}


def error_response(status_code: int, message: str, error: Optional[str] = None) -> JSONResponse:
    """Build a JSON error response with the proxy's {"message", "error"} shape."""
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(message=message, error=error).to_content(),
    )


async def relay_upstream_response(response: httpx.Response) -> JSONResponse:
    """
    Translate the upstream response into the response sent to the client.

    Success bodies are relayed unchanged with status 200. Error bodies are
    read as text and wrapped into a message string, keeping the upstream
    status code.

    Args:
        response: Response received from the Gemini API

    Returns:
        JSONResponse for the client
    """
    if not response.is_success:
        error_body = response.text
        logger.error(
            f"Gemini API error ({response.status_code}): {error_body}",
            extra={"status_code": response.status_code},
        )
        return error_response(
            response.status_code,
            f"{UPSTREAM_ERROR_PREFIX}{error_body}",
        )

    result = response.json()
    logger.info(
        "Gemini response received",
        extra={"status_code": response.status_code},
    )
    logger.debug(f"Gemini response body: {result}")

    return JSONResponse(status_code=status.HTTP_200_OK, content=result)


# ============================================================================
# Proxy Endpoints
# ============================================================================

@proxy_router.api_route("/api/gemini-proxy", methods=PROXY_METHODS)
async def gemini_proxy(
    request: Request,
    upstream_client: httpx.AsyncClient = Depends(get_upstream_client),
):
    """
    Proxy a generateContent request to the Gemini API.

    Expected body:
        - model: upstream model id (e.g. "gemini-pro")
        - payload: generateContent request body, forwarded verbatim

    Returns:
        Upstream JSON body on success, or an error body with a "message"
        field (see module docstring for the status codes).
    """
    if request.method != "POST":
        return error_response(
            status.HTTP_405_METHOD_NOT_ALLOWED,
            METHOD_NOT_ALLOWED_MESSAGE,
        )

    try:
        body = await request.json()
        envelope = GeminiProxyRequest.model_validate(body)

        settings = get_settings()
        if not settings.GEMINI_API_KEY:
            logger.error("GEMINI_API_KEY is not configured in the environment")
            return error_response(
                status.HTTP_500_INTERNAL_SERVER_ERROR,
                MISSING_API_KEY_MESSAGE,
            )

        url = build_upstream_url(settings.GEMINI_API_BASE_URL, envelope.model)

        logger.info(
            f"Forwarding request to Gemini: {url}?key=***",
            extra={"model": envelope.model},
        )

        response = await upstream_client.post(
            url,
            params={"key": settings.GEMINI_API_KEY},
            json=envelope.payload,
            headers=build_upstream_headers(),
            timeout=settings.UPSTREAM_TIMEOUT_SECONDS,
        )

        return await relay_upstream_response(response)

    except Exception as e:
        logger.error(f"Error processing proxy request: {e}", exc_info=True)
        return error_response(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            INTERNAL_ERROR_MESSAGE,
            error=str(e) or type(e).__name__,
        )
