"""
Credential hashing and verification.

Passwords are stored as bcrypt hashes through passlib. Rows created before
hashing was introduced carry ``PasswordScheme.legacy_plaintext``; those are
accepted once, compared in constant time, and the caller is handed a bcrypt
replacement to persist. The legacy path is a migration shim that can be
switched off with ``ALLOW_LEGACY_PLAINTEXT=false`` and removed once no
legacy rows remain.
"""

import hmac
import logging
from dataclasses import dataclass

from passlib.context import CryptContext
from starlette.concurrency import run_in_threadpool

from pgdash.config import settings
from pgdash.exceptions import InvalidInputError
from pgdash.models.user import PasswordScheme

logger = logging.getLogger(__name__)

# bcrypt only looks at the first 72 bytes of the secret
BCRYPT_MAX_BYTES = 72


@dataclass(frozen=True)
class CredentialCheck:
    valid: bool
    # Set when the stored credential should be rewritten (legacy row or stale cost factor)
    replacement_hash: str | None = None

    @property
    def needs_upgrade(self) -> bool:
        return self.replacement_hash is not None


class CredentialStore:
    def __init__(self, rounds: int | None = None, allow_legacy_plaintext: bool | None = None):
        self.rounds = rounds or settings.bcrypt_rounds
        self.allow_legacy_plaintext = (
            settings.allow_legacy_plaintext if allow_legacy_plaintext is None else allow_legacy_plaintext
        )
        self._context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=self.rounds)

    def hash(self, plaintext: str) -> str:
        if not plaintext:
            raise InvalidInputError("Password must not be empty", field="password")
        if len(plaintext.encode("utf-8")) > BCRYPT_MAX_BYTES:
            raise InvalidInputError(f"Password must be at most {BCRYPT_MAX_BYTES} bytes", field="password")
        return self._context.hash(plaintext)

    def verify(self, plaintext: str, hashed: str) -> bool:
        """
        Never raises; a malformed or foreign hash simply does not match.
        Every rejection costs one bcrypt round trip.
        """
        if not plaintext or not hashed or len(plaintext.encode("utf-8")) > BCRYPT_MAX_BYTES:
            self.dummy_verify()
            return False
        try:
            return self._context.verify(plaintext, hashed)
        except (ValueError, TypeError):
            self.dummy_verify()
            return False

    def check(self, plaintext: str, stored: str, scheme: str) -> CredentialCheck:
        """Verify against a stored credential of either encoding."""
        if scheme == PasswordScheme.legacy_plaintext.value:
            return self._check_legacy(plaintext, stored)

        if not plaintext or not stored or len(plaintext.encode("utf-8")) > BCRYPT_MAX_BYTES:
            self.dummy_verify()
            return CredentialCheck(valid=False)
        try:
            valid, new_hash = self._context.verify_and_update(plaintext, stored)
        except (ValueError, TypeError):
            self.dummy_verify()
            return CredentialCheck(valid=False)
        return CredentialCheck(valid=valid, replacement_hash=new_hash if valid else None)

    def _check_legacy(self, plaintext: str, stored: str) -> CredentialCheck:
        if not self.allow_legacy_plaintext:
            logger.warning("Legacy plaintext credential rejected; legacy path disabled")
            self.dummy_verify()
            return CredentialCheck(valid=False)
        # Keep timing in line with a bcrypt verification
        self.dummy_verify()
        if not plaintext or not hmac.compare_digest(plaintext.encode("utf-8"), (stored or "").encode("utf-8")):
            return CredentialCheck(valid=False)
        logger.warning("Legacy plaintext credential accepted; upgrading to bcrypt (deprecated path)")
        if len(plaintext.encode("utf-8")) > BCRYPT_MAX_BYTES:
            return CredentialCheck(valid=True)
        return CredentialCheck(valid=True, replacement_hash=self.hash(plaintext))

    def dummy_verify(self) -> None:
        """Spend the same time as a real verification when there is nothing to verify."""
        self._context.dummy_verify()

    # bcrypt is CPU bound; keep it off the event loop

    async def hash_async(self, plaintext: str) -> str:
        return await run_in_threadpool(self.hash, plaintext)

    async def verify_async(self, plaintext: str, hashed: str) -> bool:
        return await run_in_threadpool(self.verify, plaintext, hashed)

    async def check_async(self, plaintext: str, stored: str, scheme: str) -> CredentialCheck:
        return await run_in_threadpool(self.check, plaintext, stored, scheme)

    async def dummy_verify_async(self) -> None:
        await run_in_threadpool(self.dummy_verify)


credential_store = CredentialStore()
