"""Tests for credential assembly and the SecretProvider."""

from __future__ import annotations

import hashlib
import logging

import pytest

from lullaby.core.security.credentials import (
    CREDENTIAL_PREFIX,
    DEFAULT_REMAINDER,
    REMAINDER_KEY,
    ConstantFragment,
    CredentialAssembler,
    CredentialError,
    ResourceFragment,
    SecretProvider,
)
from lullaby.core.security.secure_store import (
    DEVICE_ID_KEY,
    InMemorySecureStore,
    SecureStoreError,
)

MIDDLE = "mid-0001"


class BrokenStore:
    def get(self, name):
        raise SecureStoreError("unavailable")

    def set(self, name, value):
        raise SecureStoreError("unavailable")


def device_suffix(store: InMemorySecureStore) -> str:
    device_id = store.get(DEVICE_ID_KEY)
    return "." + hashlib.sha256(device_id.encode("utf-8")).hexdigest()[:12]


@pytest.fixture
def store() -> InMemorySecureStore:
    return InMemorySecureStore()


@pytest.fixture
def provider(store) -> SecretProvider:
    return SecretProvider(store, middle=ConstantFragment(MIDDLE))


class TestAssembler:
    def test_v1_appends_device_factor(self):
        factor = "abcdef0123456789abcdef"
        assert CredentialAssembler().assemble("p-", "m-", "r", factor) == "p-m-r.abcdef012345"

    def test_device_factor_required(self):
        with pytest.raises(CredentialError, match="device_factor"):
            CredentialAssembler().assemble("p-", "m-", "r", None)

    def test_unknown_rule(self):
        with pytest.raises(CredentialError):
            CredentialAssembler("v9")

    def test_split_without_device_suffix(self):
        assembler = CredentialAssembler()
        assert assembler.split("p-m-rest", "p-", "m-") == ("p-", "m-", "rest")

    def test_split_inverts_assemble(self):
        assembler = CredentialAssembler()
        credential = assembler.assemble("p-", "m-", "rest", "feedface" * 8)
        assert assembler.split(credential, "p-", "m-", "feedface" * 8) == ("p-", "m-", "rest")


class TestGetCredential:
    def test_first_use_seeds_default_remainder(self, provider, store):
        assert store.get(REMAINDER_KEY) is None
        credential = provider.get_credential()
        assert credential == f"{CREDENTIAL_PREFIX}{MIDDLE}{DEFAULT_REMAINDER}{device_suffix(store)}"
        assert store.get(REMAINDER_KEY) == DEFAULT_REMAINDER

    def test_uses_stored_remainder(self, provider, store):
        store.set(REMAINDER_KEY, "abc123")
        credential = provider.get_credential()
        assert credential == f"{CREDENTIAL_PREFIX}{MIDDLE}abc123{device_suffix(store)}"

    def test_installations_get_distinct_credentials(self):
        first = SecretProvider(InMemorySecureStore(), middle=ConstantFragment(MIDDLE))
        second = SecretProvider(InMemorySecureStore(), middle=ConstantFragment(MIDDLE))
        assert first.get_credential() != second.get_credential()

    def test_same_installation_is_stable(self, provider):
        assert provider.get_credential() == provider.get_credential()

    def test_whole_credential_never_stored(self, provider, store):
        credential = provider.get_credential()
        assert credential not in store._values.values()

    def test_broken_store_falls_back_to_default(self, caplog):
        provider = SecretProvider(BrokenStore(), middle=ConstantFragment(MIDDLE))
        with caplog.at_level(logging.WARNING):
            credential = provider.get_credential()
        assert credential.startswith(f"{CREDENTIAL_PREFIX}{MIDDLE}{DEFAULT_REMAINDER}.")
        assert credential not in caplog.text

    def test_missing_resource_yields_empty_credential(self, store, tmp_path, caplog):
        provider = SecretProvider(store, middle=ResourceFragment(tmp_path / "missing.txt"))
        assert provider.get_credential() == ""
        assert "unavailable" in caplog.text

    def test_packaged_middle_fragment(self):
        assert ResourceFragment().read()


class TestResetCredential:
    def test_persists_only_remainder(self, provider, store):
        new = f"{CREDENTIAL_PREFIX}{MIDDLE}fresh-remainder"
        assert provider.reset_credential(new) is True
        assert store.get(REMAINDER_KEY) == "fresh-remainder"
        assert provider.get_credential() == new + device_suffix(store)

    def test_accepts_assembled_credential(self, provider, store):
        store.set(REMAINDER_KEY, "abc123")
        assert provider.reset_credential(provider.get_credential()) is True
        assert store.get(REMAINDER_KEY) == "abc123"

    def test_mismatched_prefix_rejected(self, provider, store, caplog):
        with caplog.at_level(logging.ERROR):
            assert provider.reset_credential(f"zzzz{MIDDLE}rest") is False
        assert "prefix does not match" in caplog.text
        assert store.get(REMAINDER_KEY) is None

    def test_mismatched_middle_rejected(self, provider, store, caplog):
        with caplog.at_level(logging.ERROR):
            assert provider.reset_credential(f"{CREDENTIAL_PREFIX}other-01rest") is False
        assert "middle segment does not match" in caplog.text
        assert store.get(REMAINDER_KEY) is None
        assert provider.get_credential().startswith(f"{CREDENTIAL_PREFIX}{MIDDLE}{DEFAULT_REMAINDER}")

    def test_empty_remainder_rejected(self, provider, store):
        assert provider.reset_credential(f"{CREDENTIAL_PREFIX}{MIDDLE}") is False
        assert store.get(REMAINDER_KEY) is None

    def test_broken_store_does_not_raise(self):
        provider = SecretProvider(BrokenStore(), middle=ConstantFragment(MIDDLE))
        assert provider.reset_credential(f"{CREDENTIAL_PREFIX}{MIDDLE}x") is False
