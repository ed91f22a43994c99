"""Cloud API credential assembly from independently sourced fragments.

The credential is never stored whole. At read time it is rebuilt from:
- a prefix compiled into the release
- a middle segment shipped as a packaged resource file
- a remainder kept in the secure store under a fixed key
- a device factor (SHA-256 of the installation identifier)

Rule ``v1`` appends the first characters of the device factor after a dot,
so two installations never send the same credential. Resetting the
credential persists only the remainder. Prefix and middle segment change
only with a new release.
"""

from __future__ import annotations

import hashlib
import logging
from pathlib import Path
from typing import Protocol

from lullaby.core.security.secure_store import DeviceIdentity, SecureStore, SecureStoreError

logger = logging.getLogger(__name__)

CREDENTIAL_PREFIX = "lbk-"
REMAINDER_KEY = "cloud_api_credential_remainder"
# Placeholder shipped so that a fresh install can reach the cloud path;
# real deployments reset it with their own key.
DEFAULT_REMAINDER = "0000000000000000"
MIDDLE_RESOURCE = Path(__file__).with_name("resources") / "credential_fragment.txt"

RULE_V1 = "v1"
DEVICE_SEPARATOR = "."
DEVICE_FACTOR_LENGTH = 12


class CredentialError(Exception):
    """Raised when fragments cannot be combined into a credential."""


class FragmentSource(Protocol):
    def read(self) -> str | None:
        ...


class ConstantFragment:
    def __init__(self, value: str) -> None:
        self._value = value

    def read(self) -> str | None:
        return self._value


class ResourceFragment:
    """First line of a packaged text file."""

    def __init__(self, path: str | Path = MIDDLE_RESOURCE) -> None:
        self._path = Path(path)

    def read(self) -> str | None:
        try:
            return self._path.read_text(encoding="utf-8").strip()
        except OSError:
            logger.error("Credential resource %s is unreadable", self._path)
            return None


class StoredFragment:
    """Fragment kept in a ``SecureStore``, seeded from a default on first read."""

    def __init__(self, store: SecureStore, name: str = REMAINDER_KEY, default: str = DEFAULT_REMAINDER) -> None:
        self._store = store
        self._name = name
        self._default = default

    def read(self) -> str | None:
        try:
            value = self._store.get(self._name)
        except SecureStoreError:
            logger.warning("Secure store read failed, using default credential fragment", exc_info=True)
            return self._default
        if value:
            return value
        try:
            self._store.set(self._name, self._default)
            logger.info("Seeded credential fragment from default")
        except SecureStoreError:
            logger.warning("Secure store write failed while seeding credential fragment", exc_info=True)
        return self._default

    def write(self, value: str) -> bool:
        try:
            self._store.set(self._name, value)
        except SecureStoreError:
            logger.error("Secure store write failed, credential fragment not persisted", exc_info=True)
            return False
        return True


class DeviceFragment:
    def __init__(self, identity: DeviceIdentity) -> None:
        self._identity = identity

    def read(self) -> str | None:
        return hashlib.sha256(self._identity.get().encode("utf-8")).hexdigest()


class CredentialAssembler:
    """Combines fragments using a versioned rule.

    ``v1`` is ``prefix + middle + remainder + "." + device_factor[:12]``.
    """

    RULES = (RULE_V1,)

    def __init__(self, rule: str = RULE_V1) -> None:
        if rule not in self.RULES:
            raise CredentialError(f"Unknown credential rule {rule!r}")
        self.rule = rule

    def assemble(
        self,
        prefix: str | None,
        middle: str | None,
        remainder: str | None,
        device_factor: str | None,
    ) -> str:
        missing = [
            name
            for name, value in (
                ("prefix", prefix),
                ("middle", middle),
                ("remainder", remainder),
                ("device_factor", device_factor),
            )
            if not value
        ]
        if missing:
            raise CredentialError(f"Missing credential fragments: {', '.join(missing)}")
        return f"{prefix}{middle}{remainder}{self.device_suffix(device_factor)}"

    def device_suffix(self, device_factor: str) -> str:
        return f"{DEVICE_SEPARATOR}{device_factor[:DEVICE_FACTOR_LENGTH]}"

    def split(
        self,
        credential: str,
        prefix: str,
        middle: str,
        device_factor: str | None = None,
    ) -> tuple[str, str, str]:
        """Inverse of :meth:`assemble` using the known prefix/middle lengths.

        A trailing suffix for ``device_factor`` is dropped from the remainder,
        so a credential read back from :meth:`assemble` splits cleanly.
        """
        if device_factor:
            suffix = self.device_suffix(device_factor)
            if credential.endswith(suffix):
                credential = credential[: -len(suffix)]
        head = credential[: len(prefix)]
        mid = credential[len(prefix) : len(prefix) + len(middle)]
        rest = credential[len(prefix) + len(middle) :]
        return head, mid, rest


class SecretProvider:
    """Supplies the cloud credential. Never raises and never logs the value.

    A degraded credential (empty, or built from defaults) fails downstream as
    an authorization error, which the caller treats like any cloud failure.
    """

    def __init__(
        self,
        store: SecureStore,
        identity: DeviceIdentity | None = None,
        *,
        prefix: FragmentSource | None = None,
        middle: FragmentSource | None = None,
        assembler: CredentialAssembler | None = None,
        default_remainder: str = DEFAULT_REMAINDER,
    ) -> None:
        self._prefix = prefix or ConstantFragment(CREDENTIAL_PREFIX)
        self._middle = middle or ResourceFragment()
        self._remainder = StoredFragment(store, REMAINDER_KEY, default_remainder)
        self._device = DeviceFragment(identity or DeviceIdentity(store))
        self._assembler = assembler or CredentialAssembler()

    def get_credential(self) -> str:
        try:
            return self._assembler.assemble(
                self._prefix.read(),
                self._middle.read(),
                self._remainder.read(),
                self._device.read(),
            )
        except CredentialError as exc:
            logger.error("Cloud credential unavailable: %s", exc)
            return ""

    def reset_credential(self, new_value: str) -> bool:
        """Persist the remainder of ``new_value``. Returns whether it was stored.

        Nothing is stored when the prefix or middle segment belongs to another
        release, since the credential read back would differ from ``new_value``.
        """
        prefix = self._prefix.read() or ""
        middle = self._middle.read() or ""
        head, mid, rest = self._assembler.split(
            new_value.strip(), prefix, middle, self._device.read()
        )
        if head != prefix:
            logger.error("New credential prefix does not match this release, nothing stored")
            return False
        if mid != middle:
            logger.error("New credential middle segment does not match this release, nothing stored")
            return False
        if not rest:
            logger.error("New credential has no remainder, nothing stored")
            return False
        return self._remainder.write(rest)
