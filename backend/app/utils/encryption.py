"""
Credential vault for storing tracker secrets at rest.

Uses AES-256-GCM with a versioned, colon-delimited token:

    v1:<iv base64>:<ciphertext base64>:<tag base64>

When no APP_ENCRYPTION_KEY is configured the vault runs in plaintext mode:
``seal``/``unseal`` pass values through untouched so local setups work
without a key. ``encrypt``/``decrypt`` always require a key.
"""
import base64
import binascii
import logging
import os
from dataclasses import dataclass
from typing import Optional

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from app.config import settings
from app.exceptions import (
    AuthenticationFailure,
    ConfigurationError,
    CryptoError,
    UnsupportedVersion,
)

logger = logging.getLogger(__name__)

TOKEN_VERSION = "v1"
SUPPORTED_VERSIONS = (TOKEN_VERSION,)
KEY_BYTES = 32
IV_BYTES = 12
TAG_BYTES = 16


@dataclass(frozen=True)
class VaultConfig:
    """Key material for the vault. ``encoded_key=None`` selects plaintext mode."""

    encoded_key: Optional[str] = None

    @property
    def enabled(self) -> bool:
        return bool(self.encoded_key)

    @classmethod
    def from_settings(cls) -> "VaultConfig":
        return cls(encoded_key=settings.APP_ENCRYPTION_KEY)

    @classmethod
    def plaintext(cls) -> "VaultConfig":
        return cls(encoded_key=None)


def generate_key() -> str:
    """Return a fresh base64-encoded 32-byte key suitable for APP_ENCRYPTION_KEY."""
    return base64.b64encode(os.urandom(KEY_BYTES)).decode("ascii")


def _b64decode_strict(value: str, part: str) -> bytes:
    try:
        raw = base64.b64decode(value, validate=True)
    except (binascii.Error, ValueError):
        raise CryptoError(f"Malformed ciphertext token ({part} is not valid base64)")
    # Reject non-canonical encodings so every altered character is detected.
    if base64.b64encode(raw).decode("ascii") != value:
        raise CryptoError(f"Malformed ciphertext token ({part} is not canonical base64)")
    return raw


class CredentialVault:
    """Encrypts and decrypts per-project, per-provider secret blobs."""

    def __init__(self, config: VaultConfig):
        self.config = config
        self._aesgcm: Optional[AESGCM] = None

    @property
    def enabled(self) -> bool:
        return self.config.enabled

    def _cipher(self) -> AESGCM:
        if self._aesgcm is None:
            if not self.config.encoded_key:
                raise ConfigurationError("APP_ENCRYPTION_KEY not set")
            try:
                key = base64.b64decode(self.config.encoded_key, validate=True)
            except (binascii.Error, ValueError):
                logger.error("APP_ENCRYPTION_KEY is not valid base64")
                raise ConfigurationError("APP_ENCRYPTION_KEY must be 32 bytes base64")
            if len(key) != KEY_BYTES:
                logger.error("APP_ENCRYPTION_KEY decodes to %d bytes, expected %d", len(key), KEY_BYTES)
                raise ConfigurationError("APP_ENCRYPTION_KEY must be 32 bytes base64")
            self._aesgcm = AESGCM(key)
        return self._aesgcm

    def encrypt(self, plaintext: str) -> str:
        """
        Encrypt a plaintext string.

        Args:
            plaintext: The string to encrypt

        Returns:
            ``v1:iv:data:tag`` token

        Raises:
            ConfigurationError: If no valid key is configured
        """
        cipher = self._cipher()
        iv = os.urandom(IV_BYTES)
        sealed = cipher.encrypt(iv, plaintext.encode("utf-8"), None)
        data, tag = sealed[:-TAG_BYTES], sealed[-TAG_BYTES:]
        return ":".join(
            [
                TOKEN_VERSION,
                base64.b64encode(iv).decode("ascii"),
                base64.b64encode(data).decode("ascii"),
                base64.b64encode(tag).decode("ascii"),
            ]
        )

    def decrypt(self, token: str) -> str:
        """
        Decrypt a ``v1:iv:data:tag`` token.

        Raises:
            UnsupportedVersion: Version tag is not one this build reads
            AuthenticationFailure: GCM tag check failed
            CryptoError: Token is structurally malformed
            ConfigurationError: If no valid key is configured
        """
        if not isinstance(token, str):
            raise CryptoError("Ciphertext token must be a string")
        parts = token.split(":")
        version = parts[0]
        if version not in SUPPORTED_VERSIONS:
            raise UnsupportedVersion(version)
        if len(parts) != 4:
            raise CryptoError("Malformed ciphertext token (expected 4 parts)")

        iv = _b64decode_strict(parts[1], "iv")
        data = _b64decode_strict(parts[2], "data")
        tag = _b64decode_strict(parts[3], "tag")
        if len(iv) != IV_BYTES or len(tag) != TAG_BYTES:
            raise CryptoError("Malformed ciphertext token (bad iv or tag length)")

        cipher = self._cipher()
        try:
            plaintext = cipher.decrypt(iv, data + tag, None)
        except InvalidTag:
            raise AuthenticationFailure()
        return plaintext.decode("utf-8")

    # Storage helpers honour plaintext mode; callers never assume ciphertext.

    def seal(self, plaintext: str) -> str:
        """Prepare a value for storage: ciphertext with a key, unchanged without."""
        if not self.enabled:
            return plaintext
        return self.encrypt(plaintext)

    def unseal(self, stored: str) -> str:
        """Inverse of ``seal``."""
        if not self.enabled:
            return stored
        return self.decrypt(stored)


_vault_instance: Optional[CredentialVault] = None


def get_credential_vault() -> CredentialVault:
    """Get the process-wide vault built from settings."""
    global _vault_instance
    if _vault_instance is None:
        _vault_instance = CredentialVault(VaultConfig.from_settings())
    return _vault_instance


def reset_credential_vault() -> None:
    """Drop the cached vault so the next call re-reads settings."""
    global _vault_instance
    _vault_instance = None
