"""Fernet encryption helpers for stored provider credentials.

FERNET_KEY may hold several comma-separated keys (newest first). Tokens are
always encrypted with the first key; any of them can decrypt, which allows
key rotation without re-encrypting every stored credential up front.
"""

from __future__ import annotations

import logging
from typing import Protocol

from cryptography.fernet import Fernet, InvalidToken, MultiFernet

from llmgate.core.config import settings
from llmgate.gateway.errors import CredentialDecryptionError, CredentialEncryptionError

logger = logging.getLogger(__name__)


class CredentialStore(Protocol):
    """Anything that can turn a plaintext secret into stored ciphertext and back."""

    def encrypt(self, plaintext: str) -> bytes: ...

    def decrypt(self, ciphertext: bytes | str) -> str: ...


class FernetCredentialStore:
    """Credential store backed by cryptography's Fernet (MultiFernet for rotation)."""

    def __init__(self, key: str | None = None):
        self._key = settings.fernet_key if key is None else key
        self._fernet: MultiFernet | None = None

    @property
    def configured(self) -> bool:
        return bool(self._key.strip())

    def _get_fernet(self) -> MultiFernet:
        if self._fernet is None:
            keys = [k.strip() for k in self._key.split(",") if k.strip()]
            if not keys:
                raise ValueError("FERNET_KEY is not configured, cannot encrypt/decrypt credentials")
            self._fernet = MultiFernet([Fernet(k.encode()) for k in keys])
        return self._fernet

    def encrypt(self, plaintext: str) -> bytes:
        """Encrypt a string value. Returns bytes suitable for a LargeBinary column."""
        if not plaintext:
            raise CredentialEncryptionError("Refusing to encrypt an empty credential")
        try:
            return self._get_fernet().encrypt(plaintext.encode("utf-8"))
        except (ValueError, TypeError) as e:
            # Key problems only; the exception text never contains the plaintext.
            logger.error("Failed to encrypt credential: %s", e)
            raise CredentialEncryptionError("Failed to encrypt credential") from e

    def decrypt(self, ciphertext: bytes | str) -> str:
        """Decrypt a stored value back to its plaintext string."""
        if not ciphertext:
            raise CredentialDecryptionError("No stored credential to decrypt")
        try:
            token = ciphertext.encode("ascii") if isinstance(ciphertext, str) else ciphertext
            return self._get_fernet().decrypt(token).decode("utf-8")
        except InvalidToken as e:
            logger.error("Failed to decrypt credential: invalid Fernet key or corrupted data")
            raise CredentialDecryptionError("decryption error") from e
        except (ValueError, TypeError, UnicodeError) as e:
            logger.error("Failed to decrypt credential: %s", e)
            raise CredentialDecryptionError("decryption error") from e

    def rotate(self, ciphertext: bytes) -> bytes:
        """Re-encrypt a token under the newest key."""
        try:
            return self._get_fernet().rotate(ciphertext)
        except (InvalidToken, ValueError) as e:
            raise CredentialDecryptionError("decryption error") from e


_default_store: FernetCredentialStore | None = None


def get_credential_store() -> FernetCredentialStore:
    global _default_store
    if _default_store is None:
        _default_store = FernetCredentialStore()
    return _default_store


def encrypt_value(plaintext: str) -> bytes:
    """Encrypt a string value with the process-wide store."""
    return get_credential_store().encrypt(plaintext)


def decrypt_value(ciphertext: bytes | str) -> str:
    """Decrypt a stored value with the process-wide store."""
    return get_credential_store().decrypt(ciphertext)


def encryption_key_status() -> dict:
    """Report whether a key is configured without revealing it."""
    store = get_credential_store()
    key_count = len([k for k in store._key.split(",") if k.strip()])
    return {"configured": store.configured, "key_count": key_count}
