"""Response envelopes.

Success bodies are ``{"ok": true, ...}``; failures are
``{"error": {"code", "message", "details"}}``.
"""

from pydantic import BaseModel


class OkResponse(BaseModel):
    """Success envelope. Endpoints subclass it to add their fields."""

    ok: bool = True


class ErrorDetail(BaseModel):
    """Body of the error envelope.

    Attributes:
        code: Machine-readable error code (e.g., "INVALID_CODE").
        message: Caller-facing message.
        details: Field-level errors for VALIDATION_ERROR, else None.
    """

    code: str
    message: str
    details: list[dict] | None = None


class ErrorResponse(BaseModel):
    error: ErrorDetail
