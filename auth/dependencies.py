"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication and roles.

The request chain for a mutating route is:
  get_current_identity  -> bearer token verified, Identity on request.state
  require_role(op)      -> identity.role checked against ROLE_POLICY[op]
  validated_body(kind)  -> (api/dependencies.py) first-violation field check
  handler               -> RecordStore

Routes enforce that order by declaring the role dependency before the body
dependency; require_role itself depends on get_current_identity, so the token
is always checked before the role.

Token transport: only the Authorization header, scheme "Bearer" (scheme
matched case-insensitively). No cookies, no query-string tokens.

Failure mapping:
  no header / other scheme / empty token -> MissingToken (401)
  bad signature, malformed, or expired   -> InvalidOrExpiredToken (403)
  role not in allow-list                 -> RoleNotPermitted (403)

Layer rule: no imports from api/. This module may import from fastapi
because it is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from fastapi import Depends, Request

from auth.models import Identity
from auth.policy import ROLE_POLICY, Operation
from auth.tokens import TokenService
from core.errors import ExpiredToken, InvalidOrExpiredToken, InvalidToken, MissingToken, RoleNotPermitted

logger = logging.getLogger("kgl.auth")


def _bearer_token(request: Request) -> str | None:
    scheme, _, token = request.headers.get("Authorization", "").partition(" ")
    token = token.strip()
    if scheme.lower() != "bearer" or not token:
        return None
    return token


def get_current_identity(request: Request) -> Identity:
    """Require a valid bearer token and attach its Identity to request.state.

    Use as a FastAPI dependency:
        @router.get("/protected")
        def route(identity: Identity = Depends(get_current_identity)): ...
    """
    token = _bearer_token(request)
    if token is None:
        raise MissingToken()

    token_service: TokenService = request.app.state.token_service
    try:
        identity = token_service.verify(token)
    except (InvalidToken, ExpiredToken) as exc:
        logger.info(
            "Rejected %s on %s %s",
            "expired token" if isinstance(exc, ExpiredToken) else "invalid token",
            request.method,
            request.url.path,
        )
        raise InvalidOrExpiredToken() from exc

    request.state.identity = identity
    return identity


def require_role(operation: Operation) -> Callable[..., Identity]:
    """Build a dependency that admits only the roles ROLE_POLICY lists for operation.

    Use as a FastAPI dependency:
        @router.post("/procurement")
        def route(identity: Identity = Depends(require_role(Operation.PROCUREMENT_CREATE))): ...
    """
    allowed = ROLE_POLICY[operation]

    def role_gate(identity: Identity = Depends(get_current_identity)) -> Identity:
        if identity.role not in allowed:
            logger.info(
                "Role %s denied for %s (user_id=%s)",
                identity.role.value,
                operation.value,
                identity.id,
            )
            raise RoleNotPermitted(role.value for role in allowed)
        return identity

    return role_gate
