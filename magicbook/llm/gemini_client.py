"""Gemini HTTP client utilities for story, illustration, narration, and chat calls.

Responsibilities:
- Send minimal `generateContent` requests to the Gemini REST API.
- Normalize response extraction for text, inline images, and inline audio.
- Raise actionable provider exceptions for boundary-level error mapping.
"""

from __future__ import annotations

import base64
import binascii
import json
import re
import socket
from typing import Any

import requests


class GeminiProviderError(RuntimeError):
    """Raised when a Gemini request fails or returns malformed output."""

    def __init__(
        self,
        message: str,
        *,
        failure_kind: str = "unknown",
        status_code: int | None = None,
        provider_status: str | None = None,
    ) -> None:
        """Initialize provider error metadata for boundary-aware diagnostics."""

        super().__init__(message)
        self.failure_kind = failure_kind
        self.status_code = status_code
        self.provider_status = provider_status


class _GeminiBaseClient:
    """Shared Gemini HTTP settings and helpers used by capability-specific clients."""

    _MAX_PROVIDER_MESSAGE_CHARS = 180

    def __init__(
        self,
        *,
        api_key: str | None,
        base_url: str = "https://generativelanguage.googleapis.com/v1beta",
        timeout_seconds: float = 60.0,
    ) -> None:
        """Initialize Gemini HTTP client settings."""

        self.api_key = api_key.strip() if isinstance(api_key, str) else ""
        self.base_url = base_url.rstrip("/")
        self.timeout_seconds = timeout_seconds

    def _require_api_key(self) -> None:
        """Require API key presence before issuing Gemini requests."""

        if not self.api_key:
            raise GeminiProviderError(
                "Missing Gemini API key. Set `GEMINI_API_KEY`, use `--api-key`, or "
                "`--prompt-api-key`.",
                failure_kind="invalid_api_key",
            )

    def _generate_content(self, *, model: str, payload: dict[str, Any]) -> dict[str, Any]:
        """POST a `generateContent` request and return the decoded JSON payload."""

        self._require_api_key()
        endpoint = f"{self.base_url}/models/{model}:generateContent"
        headers = {
            "x-goog-api-key": self.api_key,
            "Content-Type": "application/json",
        }
        try:
            response = requests.post(
                endpoint,
                headers=headers,
                json=payload,
                timeout=self.timeout_seconds,
            )
            response.raise_for_status()
            raw_payload = bytes(response.content)
        except requests.HTTPError as exc:
            raise self._http_error_to_provider_error(exc) from exc
        except requests.RequestException as exc:
            failure_kind = self._classify_transport_failure(exc)
            if failure_kind == "timeout":
                detail = "Gemini request timed out."
            else:
                detail = f"Gemini request transport error: {self._short_message(str(exc))}"
            raise GeminiProviderError(detail, failure_kind=failure_kind) from exc
        except TimeoutError as exc:
            raise GeminiProviderError("Gemini request timed out.", failure_kind="timeout") from exc

        try:
            decoded = json.loads(raw_payload.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise GeminiProviderError("Gemini returned invalid JSON payload.") from exc
        if not isinstance(decoded, dict):
            raise GeminiProviderError("Gemini response root is not an object.")
        return decoded

    @staticmethod
    def _candidate_parts(payload: dict[str, Any]) -> list[dict[str, Any]]:
        """Return `candidates[0].content.parts` or raise when the structure is missing."""

        candidates = payload.get("candidates")
        if not isinstance(candidates, list) or not candidates:
            feedback = payload.get("promptFeedback")
            reason = feedback.get("blockReason") if isinstance(feedback, dict) else None
            if isinstance(reason, str) and reason:
                raise GeminiProviderError(
                    f"Gemini blocked the prompt ({reason}).",
                    failure_kind="blocked",
                )
            raise GeminiProviderError("Gemini response missing non-empty `candidates` list.")

        content = candidates[0].get("content") if isinstance(candidates[0], dict) else None
        parts = content.get("parts") if isinstance(content, dict) else None
        if not isinstance(parts, list):
            raise GeminiProviderError("Gemini response missing `candidates[0].content.parts`.")
        return [part for part in parts if isinstance(part, dict)]

    @classmethod
    def _inline_data(cls, payload: dict[str, Any]) -> tuple[str, bytes] | None:
        """Return `(mime_type, bytes)` of the first inline-data part, if any."""

        for part in cls._candidate_parts(payload):
            inline = part.get("inlineData")
            if not isinstance(inline, dict):
                continue
            data = inline.get("data")
            if not isinstance(data, str) or not data:
                continue
            try:
                decoded = base64.b64decode(data, validate=True)
            except (binascii.Error, ValueError) as exc:
                raise GeminiProviderError("Gemini inline data is not valid base64.") from exc
            mime_type = inline.get("mimeType")
            return (mime_type if isinstance(mime_type, str) else "application/octet-stream", decoded)
        return None

    @classmethod
    def _joined_text(cls, payload: dict[str, Any]) -> str:
        """Concatenate all text parts of the first candidate."""

        return "".join(
            part["text"]
            for part in cls._candidate_parts(payload)
            if isinstance(part.get("text"), str)
        )

    @staticmethod
    def _decode_error_body(exc: requests.HTTPError) -> str:
        """Decode an HTTP error body into a best-effort UTF-8 payload string."""

        response = exc.response
        if response is None:
            return ""
        return bytes(response.content).decode("utf-8", errors="replace").strip()

    @classmethod
    def _redact_sensitive_tokens(cls, text: str) -> str:
        """Redact API-key-like tokens from provider error content."""

        return re.sub(r"\bAIza[0-9A-Za-z_-]{20,}\b", "[redacted-key]", text)

    @classmethod
    def _short_message(cls, text: str) -> str:
        """Normalize and cap user-facing provider message length."""

        compact = " ".join(text.split())
        if len(compact) <= cls._MAX_PROVIDER_MESSAGE_CHARS:
            return compact
        return f"{compact[: cls._MAX_PROVIDER_MESSAGE_CHARS - 1]}..."

    @classmethod
    def _extract_provider_message(cls, body: str) -> tuple[str, str | None]:
        """Extract a concise provider message and optional `error.status` token."""

        if not body:
            return "", None

        try:
            payload = json.loads(body)
        except json.JSONDecodeError:
            return cls._short_message(cls._redact_sensitive_tokens(body)), None

        provider_status: str | None = None
        message: str | None = None
        if isinstance(payload, dict):
            error_payload = payload.get("error")
            if isinstance(error_payload, dict):
                status_value = error_payload.get("status")
                if isinstance(status_value, str) and status_value.strip():
                    provider_status = status_value.strip()
                message_value = error_payload.get("message")
                if isinstance(message_value, str) and message_value.strip():
                    message = message_value.strip()

        if message is None:
            message = body

        return cls._short_message(cls._redact_sensitive_tokens(message)), provider_status

    @staticmethod
    def _classify_http_failure(
        status_code: int,
        provider_message: str,
        provider_status: str | None,
    ) -> str:
        """Classify Gemini HTTP errors into deterministic diagnostic kinds."""

        message_lower = provider_message.lower()
        normalized_status = provider_status.upper() if provider_status is not None else ""

        if (
            status_code == 403
            or normalized_status == "PERMISSION_DENIED"
            or "caller does not have permission" in message_lower
        ):
            return "permission_denied"
        if status_code == 401 or "api key not valid" in message_lower:
            return "invalid_api_key"
        if status_code == 429 or normalized_status == "RESOURCE_EXHAUSTED":
            return "insufficient_quota"
        if status_code == 404 or normalized_status == "NOT_FOUND":
            return "invalid_model"
        if status_code in {408, 504} or normalized_status == "DEADLINE_EXCEEDED":
            return "timeout"
        return "http_error"

    @staticmethod
    def _classify_transport_failure(reason: object) -> str:
        """Classify network-layer failures into deterministic diagnostic kinds."""

        if isinstance(reason, TimeoutError | socket.timeout | requests.Timeout):
            return "timeout"
        return "transport"

    @classmethod
    def _http_error_to_provider_error(cls, exc: requests.HTTPError) -> GeminiProviderError:
        """Convert HTTP errors into normalized provider exceptions with metadata."""

        status_code = exc.response.status_code if exc.response is not None else 0
        body = cls._decode_error_body(exc)
        provider_message, provider_status = cls._extract_provider_message(body)
        failure_kind = cls._classify_http_failure(status_code, provider_message, provider_status)

        headline = {
            "permission_denied": "Gemini denied permission for this request",
            "invalid_api_key": "Gemini authentication failed",
            "insufficient_quota": "Gemini quota is exhausted for this request",
            "invalid_model": "Gemini rejected the selected model",
            "timeout": "Gemini request timed out",
        }.get(failure_kind, "Gemini request failed")

        if provider_message:
            detail = f"{headline} (HTTP {status_code}): {provider_message}"
        else:
            detail = f"{headline} (HTTP {status_code})."

        return GeminiProviderError(
            detail,
            failure_kind=failure_kind,
            status_code=status_code,
            provider_status=provider_status,
        )


class GeminiTextClient(_GeminiBaseClient):
    """Text generation: structured JSON output and multi-turn chat."""

    def generate_json(
        self,
        *,
        model: str,
        prompt: str,
        response_schema: dict[str, Any],
    ) -> Any:
        """Return the decoded JSON document produced for a schema-constrained prompt."""

        payload = {
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
            "generationConfig": {
                "responseMimeType": "application/json",
                "responseSchema": response_schema,
            },
        }
        text = self._joined_text(self._generate_content(model=model, payload=payload)).strip()
        if not text:
            raise GeminiProviderError("Gemini response text is empty.")
        try:
            return json.loads(text)
        except json.JSONDecodeError as exc:
            raise GeminiProviderError("Gemini response text is not valid JSON.") from exc

    def chat(
        self,
        *,
        model: str,
        system_instruction: str,
        turns: list[tuple[str, str]],
    ) -> str:
        """Return the model reply for `(role, text)` turns, where role is `user` or `model`."""

        payload = {
            "systemInstruction": {"parts": [{"text": system_instruction}]},
            "contents": [
                {"role": role, "parts": [{"text": text}]}
                for role, text in turns
            ],
        }
        return self._joined_text(self._generate_content(model=model, payload=payload)).strip()


class GeminiImageClient(_GeminiBaseClient):
    """Image generation returning inline image bytes."""

    def generate_image(
        self,
        *,
        model: str,
        prompt: str,
        aspect_ratio: str = "16:9",
        image_size: str | None = None,
    ) -> tuple[str, bytes]:
        """Return `(mime_type, image_bytes)` for the first generated image part."""

        image_config: dict[str, str] = {"aspectRatio": aspect_ratio}
        if image_size is not None:
            image_config["imageSize"] = image_size
        payload = {
            "contents": [{"parts": [{"text": prompt}]}],
            "generationConfig": {
                "responseModalities": ["TEXT", "IMAGE"],
                "imageConfig": image_config,
            },
        }
        inline = self._inline_data(self._generate_content(model=model, payload=payload))
        if inline is None:
            raise GeminiProviderError("No image generated in the response parts.")
        mime_type, data = inline
        if not mime_type.startswith("image/"):
            mime_type = "image/png"
        return mime_type, data


class GeminiSpeechClient(_GeminiBaseClient):
    """Speech synthesis returning raw audio bytes (24 kHz mono PCM16 for TTS models)."""

    def synthesize_speech(self, *, model: str, voice: str, text: str) -> bytes:
        """Return synthesized audio bytes for `text` spoken by a prebuilt voice."""

        payload = {
            "contents": [{"parts": [{"text": text}]}],
            "generationConfig": {
                "responseModalities": ["AUDIO"],
                "speechConfig": {
                    "voiceConfig": {"prebuiltVoiceConfig": {"voiceName": voice}},
                },
            },
        }
        inline = self._inline_data(self._generate_content(model=model, payload=payload))
        if inline is None or not inline[1]:
            raise GeminiProviderError("No audio generated.")
        return inline[1]
