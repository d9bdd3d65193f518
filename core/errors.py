"""
core/errors.py -- Error taxonomy shared by auth/, records/ and api/.

Every error a request can terminate with is an AppError subclass carrying
the HTTP status and the user-facing message. api/main.py registers a single
exception handler that renders AppError as {"message": ...}; routes and
dependencies just raise.

Messages are deliberately minimal:
  - validation errors name exactly one violated rule;
  - authorization errors name only the allowed roles;
  - login failures never say whether the username or the password was wrong.

InvalidToken, ExpiredToken and CredentialFormatError are internal: the token
service and credential verifier raise them, and callers translate them (or,
for a corrupt digest, let the 500 handler log it).
"""

from __future__ import annotations

from collections.abc import Iterable


class AppError(Exception):
    """Base class for errors that map directly to an HTTP response."""

    status_code: int = 500
    message: str = "Internal Server Error"

    def __init__(self, message: str | None = None) -> None:
        if message is not None:
            self.message = message
        super().__init__(self.message)


class MissingToken(AppError):
    status_code = 401
    message = "Access token required"


class InvalidOrExpiredToken(AppError):
    status_code = 403
    message = "Invalid or expired token"


class RoleNotPermitted(AppError):
    """Identity's role is not in the route's allow-list."""

    status_code = 403

    def __init__(self, allowed_roles: Iterable[str]) -> None:
        self.allowed_roles: tuple[str, ...] = tuple(allowed_roles)
        super().__init__(f"Access denied. Required role: {', '.join(self.allowed_roles)}")


class ValidationError(AppError):
    """First violated field rule.

    field -- wire name of the offending field ("tonnage", "contact", ...)
    rule  -- rule name ("required", "type", "pattern", "min", "enum", ...)
    """

    status_code = 400

    def __init__(self, field: str, rule: str, message: str) -> None:
        self.field = field
        self.rule = rule
        super().__init__(message)


class CredentialMismatch(AppError):
    status_code = 401
    message = "Invalid credentials"


class DuplicateIdentity(AppError):
    status_code = 400
    message = "User already exists"


class NotFound(AppError):
    status_code = 404

    def __init__(self, what: str) -> None:
        super().__init__(f"{what} not found")


# ---------------------------------------------------------------------------
# Internal errors -- never rendered as-is
# ---------------------------------------------------------------------------


class InvalidToken(Exception):
    """Signature mismatch, malformed token, or malformed claims."""


class ExpiredToken(Exception):
    """Signature is valid but the token's exp is in the past."""


class CredentialFormatError(Exception):
    """Stored password digest is not a usable bcrypt hash."""
