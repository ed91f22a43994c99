"""Fernet-based encryption for record metadata and secure-store entries.

A key setting may hold several comma-separated Fernet keys. The first key
encrypts; every key is tried when decrypting, so keys can be rotated without
re-encrypting existing rows at once.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from cryptography.fernet import Fernet, InvalidToken, MultiFernet

logger = logging.getLogger(__name__)


class EncryptionError(Exception):
    """Raised when encryption/decryption fails."""


class FieldCipher:
    """Encrypts text and JSON-serializable values to Fernet token strings.

    Usage::

        cipher = FieldCipher("new-key,old-key")
        token = cipher.encrypt({"notes": "fussy after bath"})
        cipher.decrypt(token)  # {"notes": "fussy after bath"}
    """

    def __init__(self, keys: str) -> None:
        """Initialize with one or more comma-separated Fernet keys.

        Raises:
            EncryptionError: If no key is given or a key is invalid.
        """
        parts = [k.strip() for k in (keys or "").split(",") if k.strip()]
        if not parts:
            raise EncryptionError("Encryption key must not be empty")
        try:
            self._fernet = MultiFernet([Fernet(k.encode("utf-8")) for k in parts])
        except ValueError as exc:
            raise EncryptionError(f"Invalid encryption key: {exc}") from exc

    def encrypt_text(self, text: str) -> str:
        return self._fernet.encrypt(text.encode("utf-8")).decode("utf-8")

    def decrypt_text(self, token: str) -> str:
        try:
            return self._fernet.decrypt(token.encode("utf-8")).decode("utf-8")
        except InvalidToken as exc:
            raise EncryptionError("Decryption failed: invalid token or wrong key") from exc

    def encrypt(self, data: Any) -> str:
        """Encrypt a JSON-serializable value. ``None`` becomes an empty string."""
        if data is None:
            return ""
        try:
            plaintext = json.dumps(data, separators=(",", ":"))
        except (TypeError, ValueError) as exc:
            raise EncryptionError(f"Encryption failed: {exc}") from exc
        return self.encrypt_text(plaintext)

    def decrypt(self, token: str) -> Any:
        """Decrypt a token produced by :meth:`encrypt`. Empty input gives ``None``."""
        if not token:
            return None
        plaintext = self.decrypt_text(token)
        try:
            return json.loads(plaintext)
        except ValueError as exc:
            raise EncryptionError(f"Decryption failed: {exc}") from exc
