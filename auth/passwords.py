"""
auth/passwords.py -- Password hashing and login authentication.

Security design decisions:
  bcrypt, used directly (no passlib wrapper). Its cost factor makes
  brute-force expensive and every digest carries its own random salt, so equal
  passwords never produce equal digests. The work factor comes from
  Settings.bcrypt_rounds and is injected into CredentialVerifier.

  bcrypt only reads the first 72 bytes of a secret. Newer bcrypt releases raise
  instead of truncating, so we truncate explicitly on both hash and verify --
  digests stay valid across bcrypt upgrades.

  A wrong password is a False result, not an error. A stored digest that is not
  a bcrypt hash at all raises CredentialFormatError: that is data corruption,
  not a failed login.

  authenticate() runs bcrypt even when the login name matches no account,
  against a dummy digest computed once per verifier. Response time then does
  not reveal whether an account exists, and both failure paths raise the same
  CredentialMismatch.

Layer rule: no imports from api/.
"""

from __future__ import annotations

import logging

import bcrypt

from auth.models import User, user_from_record
from core.errors import CredentialFormatError, CredentialMismatch
from records.store import RecordKind, RecordStore

logger = logging.getLogger("kgl.auth")

_BCRYPT_MAX_BYTES = 72


def _encode(secret: str) -> bytes:
    return secret.encode("utf-8")[:_BCRYPT_MAX_BYTES]


class CredentialVerifier:
    """bcrypt hash/verify with an injectable work factor.

    Usage:
        verifier = CredentialVerifier(rounds=settings.bcrypt_rounds)
        digest = verifier.hash("s3cret!")
        verifier.verify("s3cret!", digest)   # True
    """

    def __init__(self, rounds: int = 10) -> None:
        self.rounds = rounds
        self._dummy_hash = self.hash("kgl_timing_dummy")

    def hash(self, secret: str) -> str:
        """Return a salted bcrypt digest of secret."""
        if not secret:
            raise ValueError("Cannot hash an empty secret.")
        return bcrypt.hashpw(_encode(secret), bcrypt.gensalt(rounds=self.rounds)).decode("utf-8")

    def verify(self, secret: str, digest: str) -> bool:
        """Return True if secret matches digest.

        Raises CredentialFormatError if digest is not a bcrypt hash.
        """
        try:
            return bcrypt.checkpw(_encode(secret), digest.encode("utf-8"))
        except ValueError as exc:
            raise CredentialFormatError("Stored password digest is not a valid bcrypt hash.") from exc

    def authenticate(self, store: RecordStore, login: str, password: str) -> User:
        """Resolve a username-or-email login to a User, or raise CredentialMismatch.

        Unknown login and wrong password are indistinguishable to the caller.
        """
        matches = store.find_all(RecordKind.USER, {"username": login}) or store.find_all(
            RecordKind.USER, {"email": login}
        )
        if not matches:
            # Equalize timing -- do NOT return before running bcrypt
            self.verify(password, self._dummy_hash)
            logger.info("Login failed: unknown account")
            raise CredentialMismatch()

        user = user_from_record(matches[0])
        if not self.verify(password, user.password_hash):
            logger.info("Login failed: bad password for user_id=%s", user.id)
            raise CredentialMismatch()
        return user
