"""Domain error taxonomy mapped to HTTP status codes by the global handlers."""

from __future__ import annotations


class CodequestError(Exception):
    """Base class for errors that carry a client-safe message."""

    status_code: int = 500
    public_message: str = "Internal server error"

    def __init__(self, public_message: str | None = None, *, detail: str | None = None) -> None:
        if public_message is not None:
            self.public_message = public_message
        # Server-side detail, logged but never returned to the client
        self.detail = detail
        super().__init__(detail or self.public_message)


class Unauthorized(CodequestError):
    status_code = 401
    public_message = "Authentication required"


class NotFound(CodequestError):
    status_code = 404
    public_message = "Not found"


class ValidationFailed(CodequestError):
    status_code = 400
    public_message = "Invalid request"


class UpstreamFailure(CodequestError):
    """An external service (sandbox, completion API) failed or returned non-2xx."""

    status_code = 500
    public_message = "An external service failed. Please try again later."


class UpstreamTimeout(UpstreamFailure):
    public_message = "An external service timed out. Please try again later."


class PersistenceFailure(CodequestError):
    status_code = 500
    public_message = "Your submission could not be recorded and did not count. It is safe to resubmit."
