"""Common schemas used across multiple endpoints."""

from typing import Any, Optional
from pydantic import BaseModel


class ErrorResponse(BaseModel):
    """Response model for errors."""
    error: str
    details: Optional[Any] = None
    code: str
