"""
Data Models Module

Pydantic models for the request envelope received from clients and the
JSON bodies the proxy produces itself. Upstream success bodies are relayed
as-is and have no model here.
"""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


# ============================================================================
# Proxy Models
# ============================================================================

class GeminiProxyRequest(BaseModel):
    """
    Request envelope sent by the client.

    Intentionally permissive: the payload is forwarded verbatim and the
    model id is only embedded in the upstream URL.
    """
    model_config = ConfigDict(extra="ignore")

    model: Any = Field(None, description="Upstream model identifier, e.g. gemini-pro")
    payload: Any = Field(None, description="generateContent request body forwarded verbatim")


# ============================================================================
# Error Models
# ============================================================================

class ErrorResponse(BaseModel):
    """Error body returned by the proxy. Always carries a message."""
    message: str = Field(..., description="Human-readable error message")
    error: Optional[str] = Field(None, description="Exception message for internal errors")

    def to_content(self) -> dict:
        return self.model_dump(exclude_none=True)


# ============================================================================
# Health Check Models
# ============================================================================

class HealthResponse(BaseModel):
    """Health check response model."""
    status: str = Field(..., description="Service health status")
    service: str = Field(..., description="Service name")
    version: str = Field(..., description="Service version")
    api_key_configured: bool = Field(..., description="Whether GEMINI_API_KEY is set")
