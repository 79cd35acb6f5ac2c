"""Credential material at rest: bcrypt password digests and Fernet-sealed API keys.

Handlers never see raw digests or ciphertext. A ``PasswordHash`` can only be
written from plaintext and verified against plaintext; a ``SealedSecret`` can
only be unsealed for use or rendered as a mask.
"""

from __future__ import annotations

import base64
import hashlib
import logging
from functools import lru_cache
from typing import Optional

import bcrypt
from cryptography.fernet import Fernet, InvalidToken
from sqlalchemy import String, Text
from sqlalchemy.types import TypeDecorator

logger = logging.getLogger("grcnexus.credentials")

UNCHANGED_SENTINEL = "__unchanged__"


class CredentialError(Exception):
    """Raised when sealed material cannot be opened with the configured key."""


# ── Passwords ────────────────────────────────────────────────

class PasswordHash:
    """Opaque bcrypt digest."""

    __slots__ = ("_digest",)

    def __init__(self, digest: str) -> None:
        self._digest = digest

    @classmethod
    def write(cls, plaintext: str, rounds: int = 12) -> PasswordHash:
        digest = bcrypt.hashpw(plaintext.encode("utf-8"), bcrypt.gensalt(rounds=rounds))
        return cls(digest.decode("utf-8"))

    def verify(self, plaintext: str) -> bool:
        try:
            return bcrypt.checkpw(plaintext.encode("utf-8"), self._digest.encode("utf-8"))
        except ValueError:
            # Over-long input or a corrupt stored digest.
            return False

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, PasswordHash):
            return NotImplemented
        return self._digest == other._digest

    def __hash__(self) -> int:
        return hash(self._digest)

    def __repr__(self) -> str:
        return "PasswordHash(<redacted>)"


@lru_cache(maxsize=4)
def dummy_password_hash(rounds: int) -> PasswordHash:
    """Digest compared against on unknown accounts so timing matches a real check."""
    return PasswordHash.write("grcnexus-no-such-account", rounds=rounds)


class PasswordHashType(TypeDecorator):
    impl = String(255)
    cache_ok = True

    def process_bind_param(self, value: Optional[PasswordHash], dialect) -> Optional[str]:
        if value is None:
            return None
        if not isinstance(value, PasswordHash):
            raise TypeError("password column only accepts PasswordHash values")
        return value._digest

    def process_result_value(self, value: Optional[str], dialect) -> Optional[PasswordHash]:
        if value is None:
            return None
        return PasswordHash(value)


# ── API keys ─────────────────────────────────────────────────

def derive_fernet_key(secret: str) -> bytes:
    """Accept a ready Fernet key, otherwise derive one from an arbitrary secret."""
    if len(secret) == 44:
        try:
            Fernet(secret.encode())
            return secret.encode()
        except ValueError:
            pass
    return base64.urlsafe_b64encode(hashlib.sha256(secret.encode()).digest())


class SecretCipher:
    """Process-wide symmetric cipher for third-party API keys."""

    def __init__(self, secret: str) -> None:
        if not secret:
            raise ValueError("SecretCipher requires a non-empty secret")
        self._fernet = Fernet(derive_fernet_key(secret))

    def encrypt(self, plaintext: str) -> str:
        return self._fernet.encrypt(plaintext.encode("utf-8")).decode("utf-8")

    def decrypt(self, ciphertext: str) -> str:
        try:
            return self._fernet.decrypt(ciphertext.encode("utf-8")).decode("utf-8")
        except InvalidToken as exc:
            logger.error("API key decryption failed - invalid token or key mismatch")
            raise CredentialError("Stored API key cannot be decrypted with the configured key") from exc


def mask_api_key(key: str) -> str:
    """``""`` for no key, ``****`` for short keys, else ``first4...last4``."""
    if not key:
        return ""
    if len(key) <= 8:
        return "****"
    return f"{key[:4]}...{key[-4:]}"


class SealedSecret:
    """Encrypted API key as stored on a settings row."""

    __slots__ = ("_ciphertext",)

    def __init__(self, ciphertext: str) -> None:
        self._ciphertext = ciphertext

    @classmethod
    def seal(cls, plaintext: str, cipher: SecretCipher) -> SealedSecret:
        return cls(cipher.encrypt(plaintext))

    def decrypt_for_use(self, cipher: SecretCipher) -> str:
        return cipher.decrypt(self._ciphertext)

    def masked(self, cipher: SecretCipher) -> str:
        return mask_api_key(self.decrypt_for_use(cipher))

    def is_unchanged_by(self, submitted: str, cipher: SecretCipher) -> bool:
        """True when ``submitted`` is the sentinel or exactly the mask of this key."""
        if submitted == UNCHANGED_SENTINEL:
            return True
        return submitted == self.masked(cipher)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, SealedSecret):
            return NotImplemented
        return self._ciphertext == other._ciphertext

    def __hash__(self) -> int:
        return hash(self._ciphertext)

    def __repr__(self) -> str:
        return "SealedSecret(<redacted>)"


class SealedSecretType(TypeDecorator):
    impl = Text
    cache_ok = True

    def process_bind_param(self, value: Optional[SealedSecret], dialect) -> Optional[str]:
        if value is None:
            return None
        if not isinstance(value, SealedSecret):
            raise TypeError("sealed column only accepts SealedSecret values")
        return value._ciphertext

    def process_result_value(self, value: Optional[str], dialect) -> Optional[SealedSecret]:
        if not value:
            return None
        return SealedSecret(value)
