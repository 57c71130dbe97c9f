"""Keyring slot for the Gemini API key.

`CapabilityGate` reads and writes the key through `CredentialStoreProtocol`;
the `credentials` command additionally reports availability and clears it.
"""

from __future__ import annotations

from dataclasses import dataclass

import keyring
from keyring.backend import KeyringBackend
from keyring.backends import fail
from keyring.errors import KeyringError, PasswordDeleteError

from .parsing import normalize_optional_string

KEYRING_SERVICE = "magicbook"
KEYRING_ACCOUNT = "gemini_api_key"


@dataclass(slots=True)
class KeyringCredentialStore:
    """One API key stored under `service_name`/`account_name`.

    Attributes:
        service_name: Keyring service identifier.
        account_name: Keyring account identifier.
        backend: Explicit keyring backend; `None` uses the configured default.
    """

    service_name: str = KEYRING_SERVICE
    account_name: str = KEYRING_ACCOUNT
    backend: KeyringBackend | None = None

    def _usable_backend(self) -> KeyringBackend | None:
        """Return the backend unless it is keyring's fail-only placeholder."""

        backend = self.backend if self.backend is not None else keyring.get_keyring()
        return None if isinstance(backend, fail.Keyring) else backend

    def is_available(self) -> bool:
        """Return whether a real keyring backend is configured."""

        return self._usable_backend() is not None

    def get_api_key(self) -> str | None:
        """Return the stored key; unreadable or missing keys are `None`."""

        backend = self._usable_backend()
        if backend is None:
            return None
        try:
            return normalize_optional_string(
                backend.get_password(self.service_name, self.account_name)
            )
        except KeyringError:
            return None

    def set_api_key(self, api_key: str) -> None:
        """Store a non-empty key.

        Raises:
            ValueError: If the key is blank.
            RuntimeError: If no keyring backend is configured.
        """

        normalized = normalize_optional_string(api_key)
        if normalized is None:
            raise ValueError("API key must be a non-empty string.")
        backend = self._usable_backend()
        if backend is None:
            raise RuntimeError(
                "Secure credential storage is unavailable because no keyring backend is "
                "configured. Install a keyring backend to persist API keys securely."
            )
        backend.set_password(self.service_name, self.account_name, normalized)

    def clear_api_key(self) -> bool:
        """Delete the stored key and report whether one existed."""

        backend = self._usable_backend()
        if backend is None or self.get_api_key() is None:
            return False
        try:
            backend.delete_password(self.service_name, self.account_name)
        except PasswordDeleteError:
            return False
        return True


def create_credential_store() -> KeyringCredentialStore:
    """Create the default keyring-backed store."""

    return KeyringCredentialStore()
