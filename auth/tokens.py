"""
auth/tokens.py -- Signed, time-limited identity tokens.

Security design decisions:
  JWT via python-jose with HS256. Tokens carry id, username, role, iat and
  exp, and are signed with TokenConfig.secret_key. They are stateless: there
  is no server-side session and no revocation list, so a token stays valid
  until exp.

  Lifetime is fixed at 24 hours from issuance.

  verify() checks the signature BEFORE expiry. jwt.decode runs with
  verify_exp disabled, so a tampered token is rejected as InvalidToken without
  ever reaching the expiry comparison; only a genuine token can be reported as
  ExpiredToken. Expiry is then compared against the injected clock, which lets
  tests move time forward without sleeping.

  The signature segment must be canonical base64url. The last character of an
  HS256 signature carries unused padding bits, so several spellings decode to
  the same bytes; only the one jose itself would emit is accepted.

  TokenConfig is built once at startup from Settings and passed in. This module
  never reads configuration itself, so tests can inject their own secret.

Layer rule: no imports from api/ or records/.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt
from jose.utils import base64url_decode, base64url_encode

from auth.models import Identity, Role
from core.errors import ExpiredToken, InvalidToken

logger = logging.getLogger("kgl.auth")

TOKEN_LIFETIME = timedelta(hours=24)


@dataclass(frozen=True)
class TokenConfig:
    secret_key: str
    algorithm: str = "HS256"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TokenService:
    """Issue and verify bearer tokens.

    Usage:
        service = TokenService(TokenConfig(secret_key=settings.secret_key))
        token = service.issue(Identity(id=1, username="simon", role=Role.MANAGER))
        identity = service.verify(token)
    """

    def __init__(self, config: TokenConfig, clock: Callable[[], datetime] = _utcnow) -> None:
        self._config = config
        self._clock = clock

    def issue(self, identity: Identity) -> str:
        """Encode a signed JWT for identity, expiring TOKEN_LIFETIME from now."""
        issued_at = self._clock()
        payload = {
            "sub": identity.username,
            "id": identity.id,
            "username": identity.username,
            "role": identity.role.value,
            "iat": int(issued_at.timestamp()),
            "exp": int((issued_at + TOKEN_LIFETIME).timestamp()),
        }
        return jwt.encode(payload, self._config.secret_key, algorithm=self._config.algorithm)

    def verify(self, token: str) -> Identity:
        """Return the Identity embedded in token.

        Raises InvalidToken on a bad signature, malformed token or malformed
        claims, and ExpiredToken when a correctly signed token is past exp.
        """
        _require_canonical_signature(token)
        try:
            payload = jwt.decode(
                token,
                self._config.secret_key,
                algorithms=[self._config.algorithm],
                options={"verify_exp": False},
            )
        except JWTError as exc:
            raise InvalidToken(str(exc)) from exc

        try:
            identity = Identity(
                id=int(payload["id"]),
                username=str(payload["username"]),
                role=Role(payload["role"]),
            )
            expires_at = int(payload["exp"])
        except (KeyError, TypeError, ValueError) as exc:
            raise InvalidToken("Token claims are malformed.") from exc

        if self._clock().timestamp() > expires_at:
            raise ExpiredToken()
        return identity


def _require_canonical_signature(token: str) -> None:
    """Raise InvalidToken unless the signature segment re-encodes to itself."""
    try:
        signature = token.rsplit(".", 1)[1].encode("ascii")
        canonical = base64url_encode(base64url_decode(signature)) == signature
    except (IndexError, UnicodeEncodeError, ValueError) as exc:
        raise InvalidToken("Token signature is malformed.") from exc
    if not canonical:
        raise InvalidToken("Token signature is not canonical base64url.")
