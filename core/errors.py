"""
core/errors.py -- Error taxonomy shared by every KnowledgeGate layer.

Domain code raises these; api/main.py turns them into the structured error
envelope. Each class carries its HTTP status, a machine-readable code, and a
message that is safe to show to the caller. Internal details go to the log,
never into `message`.

Authentication failures (MissingToken, InvalidToken, SessionNotFound) share
one code and message so the response body does not reveal whether a token was
absent, forged, expired, or revoked. Only the status differs (401 vs 403).

Layer rule: no imports from api/, auth/, or knowledge/.
"""

from __future__ import annotations


class AuthorityError(Exception):
    """Base class for every error the service reports to a caller."""

    status_code: int = 500
    code: str = "internal_error"
    message: str = "An unexpected error occurred."

    def __init__(self, message: str | None = None, errors: list[dict] | None = None) -> None:
        if message is not None:
            self.message = message
        self.errors = errors or []
        super().__init__(self.message)


# ---------------------------------------------------------------------------
# 400 -- malformed input
# ---------------------------------------------------------------------------


class ValidationError(AuthorityError):
    """Input failed a domain rule. `errors` holds [{"param": ..., "msg": ...}]."""

    status_code = 400
    code = "validation_error"
    message = "Request validation failed."


class InvalidAction(ValidationError):
    code = "invalid_action"
    message = "Invalid action."


# ---------------------------------------------------------------------------
# 401 / 403 -- authentication
# ---------------------------------------------------------------------------

_AUTH_FAILED = "Invalid or expired session."


class AuthenticationError(AuthorityError):
    """Any failure to establish who the caller is. The session cookie is cleared."""

    status_code = 401
    code = "unauthenticated"
    message = _AUTH_FAILED


class InvalidCredentials(AuthenticationError):
    code = "bad_credentials"
    message = "Invalid credentials."


class MissingToken(AuthenticationError):
    status_code = 401


class InvalidToken(AuthenticationError):
    status_code = 403


class SessionNotFound(AuthenticationError):
    status_code = 403


class Unauthenticated(AuthenticationError):
    """An authorization gate was reached with no identity attached."""

    status_code = 401
    message = "Authentication required."


# ---------------------------------------------------------------------------
# 403 / 404 / 409 -- authorization and resource state
# ---------------------------------------------------------------------------


class Forbidden(AuthorityError):
    status_code = 403
    code = "forbidden"
    message = "Insufficient privileges."


class NotFound(AuthorityError):
    status_code = 404
    code = "not_found"
    message = "Resource not found."


class ConflictError(AuthorityError):
    status_code = 409
    code = "conflict"
    message = "The resource is not in a state that allows this operation."


# ---------------------------------------------------------------------------
# 500
# ---------------------------------------------------------------------------


class InternalError(AuthorityError):
    """Storage or unexpected failure. The cause is logged, not returned."""
