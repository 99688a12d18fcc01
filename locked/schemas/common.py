"""
Shared schema primitives used across the API.
"""
from typing import Any, Optional
from pydantic import BaseModel


class ErrorResponse(BaseModel):
    """`{code, message, details}` envelope returned for every LockedException."""
    code: str
    message: str
    details: Optional[dict[str, Any]] = None


def error_responses(*codes: int) -> dict[int, dict]:
    """OpenAPI `responses=` entries documenting the error envelope."""
    return {code: {"model": ErrorResponse} for code in codes}
