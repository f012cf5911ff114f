"""Credential lookup for the OpenAI API."""

from __future__ import annotations

import logging
import os
from typing import Optional, Tuple

from parley.errors import ConfigError

logger = logging.getLogger(__name__)

KEYRING_SERVICE = "parley"
ENV_VAR = "OPENAI_API_KEY"
KEYRING_KEY = "openai_api_key"


class CredentialStore:
    """Resolve the OpenAI API key from the environment, then the keychain."""

    def __init__(self, service_name: str = KEYRING_SERVICE):
        self.service_name = service_name
        self._keyring = None

        try:
            import keyring  # type: ignore

            self._keyring = keyring
        except Exception:
            self._keyring = None

    def get_env_api_key(self) -> Optional[str]:
        """Return API key from environment if present."""
        value = os.getenv(ENV_VAR, "").strip()
        return value or None

    def get_keychain_api_key(self) -> Optional[str]:
        """Return API key from keychain if present."""
        if self._keyring is None:
            return None
        try:
            value = self._keyring.get_password(self.service_name, KEYRING_KEY)
        except Exception as exc:
            logger.debug("Failed to read keychain credential: %s", exc)
            return None
        if value is None:
            return None
        value = value.strip()
        return value or None

    def get_api_key_with_source(self) -> Tuple[Optional[str], Optional[str]]:
        """Return the first configured key and where it came from."""
        for source, lookup in (("env", self.get_env_api_key), ("keychain", self.get_keychain_api_key)):
            value = lookup()
            if value:
                return value, source
        return None, None

    def require_api_key(self) -> str:
        key, source = self.get_api_key_with_source()
        if not key:
            raise ConfigError(f"{ENV_VAR} not configured")
        logger.debug("Using OpenAI API key from %s", source)
        return key
