"""
Data Models Module

Pydantic models describing the proxy's own JSON bodies. Upstream bodies are
relayed as raw bytes and never modelled here.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class MessageResponse(BaseModel):
    """Body of every response the proxy generates itself (success or error)."""
    message: str = Field(..., description="Static, user-facing message")


class HealthResponse(BaseModel):
    """Health check response model."""
    status: str = Field(..., description="Service health status")
    service: str = Field(..., description="Service name")
    version: str = Field(..., description="Service version")
    timestamp: datetime = Field(default_factory=datetime.utcnow, description="Check timestamp")


class ErrorResponse(BaseModel):
    """Standardized body for unexpected server errors."""
    error: str = Field(..., description="Error type or code")
    message: str = Field(..., description="Human-readable error message")
    detail: Optional[str] = Field(None, description="Exception text, only when LOG_LEVEL is DEBUG")
