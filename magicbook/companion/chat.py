"""Companion chat transcript with fallback replies.

Responsibilities:
- Keep an append-only transcript seeded with the companion greeting.
- Send the full transcript as context with every new message.
- Degrade provider failures to a single visible fallback message.
"""

from __future__ import annotations

from ..llm.asset_provider import AssetProvider
from ..llm.prompts import COMPANION_GREETING
from ..models.datatypes import ChatMessage, ChatRole
from ..telemetry.logger import SessionLogger

EMPTY_REPLY_FALLBACK = "I'm not sure what to say, but I'm here!"
FAILURE_FALLBACK = "Oh no, my magic is a bit fizzy right now. Let's try again!"


class CompanionChat:
    """Single-conversation companion chat over an asset provider."""

    def __init__(self, provider: AssetProvider, logger: SessionLogger | None = None) -> None:
        """Initialize the transcript with the assistant greeting."""

        self._provider = provider
        self._logger = logger
        self._messages: list[ChatMessage] = [ChatMessage(ChatRole.ASSISTANT, COMPANION_GREETING)]
        self._sending = False

    @property
    def transcript(self) -> tuple[ChatMessage, ...]:
        """Return the transcript in order."""

        return tuple(self._messages)

    @property
    def is_sending(self) -> bool:
        """Return whether a reply is outstanding."""

        return self._sending

    async def send(self, text: str) -> ChatMessage | None:
        """Append `text` and the companion reply; ignore blank or overlapping sends."""

        message = text.strip()
        if not message or self._sending:
            return None

        history = tuple(self._messages)
        self._messages.append(ChatMessage(ChatRole.USER, message))
        self._sending = True
        try:
            reply = await self._provider.send_companion_message(history, message)
        except Exception as exc:
            if self._logger is not None:
                self._logger.log_failure("chat", "reply-failed", type(exc).__name__)
            reply_text = FAILURE_FALLBACK
        else:
            reply_text = reply.strip() if isinstance(reply, str) else ""
            if not reply_text:
                if self._logger is not None:
                    self._logger.log_warning("chat", "empty-reply")
                reply_text = EMPTY_REPLY_FALLBACK
        finally:
            self._sending = False

        answer = ChatMessage(ChatRole.ASSISTANT, reply_text)
        self._messages.append(answer)
        if self._logger is not None:
            self._logger.log_event("chat", "replied", messages=len(self._messages))
        return answer
