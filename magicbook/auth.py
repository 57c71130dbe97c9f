"""Capability authorization gate.

Responsibilities:
- Decide whether a provider API key is available before any story work starts.
- Run the interactive key-selection flow and persist the selected key.
- Mint `AuthorizedCapability` values, the only way into a story session.

Key types:
- `AuthorizedCapability`: proof that a usable API key was selected.
- `CapabilityGate`: has/request/authorize operations over key sources.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Protocol

from .errors import AuthError
from .parsing import normalize_optional_string
from .telemetry.logger import SessionLogger

KeyPrompt = Callable[[], str | None]


class CredentialStoreProtocol(Protocol):
    """Protocol for secure credential store operations used by the gate."""

    def get_api_key(self) -> str | None:
        """Return currently stored API key, if available."""

    def set_api_key(self, api_key: str) -> None:
        """Persist API key value in secure storage."""


@dataclass(frozen=True, slots=True)
class AuthorizedCapability:
    """Proof of authorization handed to the story session.

    Attributes:
        api_key: Provider API key; excluded from `repr`.
        source: Where the key came from (`prompt`, `cli`, `secure`, `env`, `config`).
    """

    api_key: str = field(repr=False)
    source: str


class CapabilityGate:
    """Gate all story access behind an available provider API key."""

    def __init__(
        self,
        credential_store: CredentialStoreProtocol,
        prompt_for_key: KeyPrompt,
        *,
        cli_api_key: str | None = None,
        env: Mapping[str, str] | None = None,
        config_api_key: str | None = None,
        store_selected_key: bool = True,
        logger: SessionLogger | None = None,
    ) -> None:
        """Initialize key sources, the interactive prompt, and persistence policy."""

        self._credential_store = credential_store
        self._prompt_for_key = prompt_for_key
        self._cli_api_key = normalize_optional_string(cli_api_key)
        self._env = env if env is not None else {}
        self._config_api_key = normalize_optional_string(config_api_key)
        self._store_selected_key = store_selected_key
        self._selected_api_key: str | None = None
        self._logger = logger

    def has_authorized_capability(self) -> bool:
        """Return whether any key source currently yields an API key."""

        return self._resolve_key() is not None

    def current_capability(self) -> AuthorizedCapability:
        """Return the capability for the highest-precedence available key.

        Raises:
            AuthError: If no key source yields an API key.
        """

        resolved = self._resolve_key()
        if resolved is None:
            raise AuthError("No Gemini API key has been selected.")
        api_key, source = resolved
        return AuthorizedCapability(api_key=api_key, source=source)

    def request_capability_authorization(self) -> AuthorizedCapability:
        """Prompt for a key, persist it when configured, and return the new capability.

        Raises:
            AuthError: If the prompt fails, no key is entered, or persistence fails.
        """

        try:
            entered = normalize_optional_string(self._prompt_for_key())
        except Exception as exc:
            self._log_failure("prompt", type(exc).__name__)
            raise AuthError(f"Key selection failed: {exc}") from exc
        if entered is None:
            self._log_failure("prompt", "EmptyKey")
            raise AuthError("No API key entered.")

        if self._store_selected_key:
            try:
                self._credential_store.set_api_key(entered)
            except Exception as exc:
                self._log_failure("store", type(exc).__name__)
                raise AuthError(f"Failed to store API key securely: {exc}") from exc

        self._selected_api_key = entered
        if self._logger is not None:
            self._logger.log_event(
                "auth", "authorized", source="prompt", stored=self._store_selected_key
            )
        return AuthorizedCapability(api_key=entered, source="prompt")

    def authorize(self) -> AuthorizedCapability:
        """Return the current capability, running the request flow when none exists."""

        if self.has_authorized_capability():
            return self.current_capability()
        return self.request_capability_authorization()

    def _resolve_key(self) -> tuple[str, str] | None:
        """Resolve `(api_key, source)` as prompt > cli > secure > env > config."""

        if self._selected_api_key is not None:
            return self._selected_api_key, "prompt"
        if self._cli_api_key is not None:
            return self._cli_api_key, "cli"
        stored = normalize_optional_string(self._credential_store.get_api_key())
        if stored is not None:
            return stored, "secure"
        env_key = normalize_optional_string(self._env.get("GEMINI_API_KEY"))
        if env_key is not None:
            return env_key, "env"
        if self._config_api_key is not None:
            return self._config_api_key, "config"
        return None

    def _log_failure(self, event: str, error_type: str) -> None:
        """Log an authorization failure when a logger is configured."""

        if self._logger is not None:
            self._logger.log_failure("auth", event, error_type)
