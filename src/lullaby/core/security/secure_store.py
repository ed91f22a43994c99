"""Secure key-value storage for credential fragments and device identity."""

from __future__ import annotations

import json
import logging
import os
import threading
import uuid
from pathlib import Path
from typing import Protocol, runtime_checkable

from lullaby.core.security.cipher import EncryptionError, FieldCipher

logger = logging.getLogger(__name__)

DEVICE_ID_KEY = "device_installation_id"


@runtime_checkable
class SecureStore(Protocol):
    """Named secret storage. ``get`` returns ``None`` for absent names."""

    def get(self, name: str) -> str | None:
        ...

    def set(self, name: str, value: str) -> None:
        ...


class InMemorySecureStore:
    """Process-local store, used by tests and ephemeral servers."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._values: dict[str, str] = dict(initial or {})

    def get(self, name: str) -> str | None:
        return self._values.get(name)

    def set(self, name: str, value: str) -> None:
        self._values[name] = value


class EncryptedFileSecureStore:
    """JSON file mapping names to Fernet tokens.

    The file never holds plaintext values. Each write lands in a temporary
    file that is swapped into place, created with owner-only permissions.
    """

    def __init__(self, path: str | Path, cipher: FieldCipher) -> None:
        self._path = Path(path).expanduser()
        self._cipher = cipher
        self._lock = threading.Lock()

    @property
    def path(self) -> Path:
        return self._path

    def get(self, name: str) -> str | None:
        with self._lock:
            token = self._read().get(name)
        if token is None:
            return None
        try:
            return self._cipher.decrypt_text(token)
        except EncryptionError as exc:
            raise SecureStoreError(f"Cannot decrypt secure entry {name!r}") from exc

    def set(self, name: str, value: str) -> None:
        token = self._cipher.encrypt_text(value)
        with self._lock:
            entries = self._read()
            entries[name] = token
            self._write(entries)

    def _read(self) -> dict[str, str]:
        if not self._path.exists():
            return {}
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            raise SecureStoreError(f"Cannot read secure store at {self._path}: {exc}") from exc
        if not isinstance(data, dict):
            raise SecureStoreError(f"Secure store at {self._path} is not a JSON object")
        return data

    def _write(self, entries: dict[str, str]) -> None:
        tmp = self._path.with_suffix(self._path.suffix + ".tmp")
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            tmp.write_text(json.dumps(entries, indent=2, sort_keys=True), encoding="utf-8")
            os.chmod(tmp, 0o600)
            os.replace(tmp, self._path)
        except OSError as exc:
            raise SecureStoreError(f"Cannot write secure store at {self._path}: {exc}") from exc


class DeviceIdentity:
    """Stable per-installation identifier kept in a secure store.

    Generated once on first use. If the store is unreadable, an ephemeral
    identifier is used for the life of this object and the failure is logged.
    """

    def __init__(self, store: SecureStore) -> None:
        self._store = store
        self._ephemeral: str | None = None

    def get(self) -> str:
        try:
            existing = self._store.get(DEVICE_ID_KEY)
            if existing:
                return existing
            new_id = str(uuid.uuid4())
            self._store.set(DEVICE_ID_KEY, new_id)
            logger.info("Generated new device installation id")
            return new_id
        except SecureStoreError:
            logger.warning("Secure store unavailable, using an ephemeral device id", exc_info=True)
            if self._ephemeral is None:
                self._ephemeral = str(uuid.uuid4())
            return self._ephemeral


class SecureStoreError(Exception):
    """Raised when the secure store cannot be read or written."""
