import pytest

from parley.cloud.credentials import KEYRING_KEY, KEYRING_SERVICE, CredentialStore
from parley.errors import ConfigError


class _DummyKeyring:
    def __init__(self):
        self._store = {}

    def set_password(self, service, name, value):
        self._store[(service, name)] = value

    def get_password(self, service, name):
        return self._store.get((service, name))


class _BrokenKeyring:
    def get_password(self, service, name):
        raise RuntimeError("keychain locked")


def test_env_var_takes_precedence_over_keychain(monkeypatch):
    store = CredentialStore()
    dummy = _DummyKeyring()
    store._keyring = dummy
    dummy.set_password(KEYRING_SERVICE, KEYRING_KEY, "keychain-openai")
    monkeypatch.setenv("OPENAI_API_KEY", "env-openai")

    assert store.get_api_key_with_source() == ("env-openai", "env")


def test_keychain_used_when_env_missing(monkeypatch):
    store = CredentialStore()
    dummy = _DummyKeyring()
    store._keyring = dummy
    dummy.set_password(KEYRING_SERVICE, KEYRING_KEY, "  keychain-openai  ")
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)

    assert store.get_api_key_with_source() == ("keychain-openai", "keychain")
    assert store.require_api_key() == "keychain-openai"


def test_missing_key_is_config_error(monkeypatch):
    store = CredentialStore()
    store._keyring = _BrokenKeyring()
    monkeypatch.setenv("OPENAI_API_KEY", "   ")

    assert store.get_keychain_api_key() is None
    with pytest.raises(ConfigError):
        store.require_api_key()
