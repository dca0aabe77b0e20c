"""Reversible sealing of registrar credentials for storage.

Sealed format is ``iv:salt:ciphertext:tag``, every part hex-encoded. Each
call draws a fresh IV and salt; the salt feeds an HKDF derivation of the
per-message AES-256-GCM key from the process-wide secret, so equal
plaintexts never produce equal output.
"""

from __future__ import annotations

import os

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.hkdf import HKDF

from sublease.errors import ConfigurationError, CredentialTamperError

MIN_KEY_BYTES = 32
IV_LENGTH = 16
SALT_LENGTH = 64
TAG_LENGTH = 16

_HKDF_INFO = b"sublease/registrar-credentials"


class CredentialCodec:
    """AES-GCM seal/unseal keyed by one process-wide secret."""

    def __init__(self, secret: str | bytes) -> None:
        raw = secret.encode("utf-8") if isinstance(secret, str) else secret
        if len(raw) < MIN_KEY_BYTES:
            raise ConfigurationError(f"Encryption key must be at least {MIN_KEY_BYTES} bytes")
        self._secret = raw

    def _derive_key(self, salt: bytes) -> bytes:
        return HKDF(
            algorithm=hashes.SHA256(),
            length=32,
            salt=salt,
            info=_HKDF_INFO,
        ).derive(self._secret)

    def seal(self, plaintext: str) -> str:
        iv = os.urandom(IV_LENGTH)
        salt = os.urandom(SALT_LENGTH)
        sealed = AESGCM(self._derive_key(salt)).encrypt(iv, plaintext.encode("utf-8"), None)
        ciphertext, tag = sealed[:-TAG_LENGTH], sealed[-TAG_LENGTH:]
        return ":".join(part.hex() for part in (iv, salt, ciphertext, tag))

    def unseal(self, sealed: str) -> str:
        parts = sealed.split(":")
        if len(parts) != 4:
            raise CredentialTamperError("Invalid encrypted data format")
        try:
            iv, salt, ciphertext, tag = (bytes.fromhex(p) for p in parts)
        except ValueError as exc:
            raise CredentialTamperError("Invalid encrypted data format") from exc
        if len(iv) != IV_LENGTH or len(salt) != SALT_LENGTH or len(tag) != TAG_LENGTH:
            raise CredentialTamperError("Invalid encrypted data format")

        try:
            plaintext = AESGCM(self._derive_key(salt)).decrypt(iv, ciphertext + tag, None)
        except InvalidTag as exc:
            raise CredentialTamperError("Credential authentication failed") from exc
        return plaintext.decode("utf-8")
