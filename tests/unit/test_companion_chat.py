"""Unit tests for the companion chat transcript."""

from __future__ import annotations

import asyncio
import io

from magicbook.companion.chat import EMPTY_REPLY_FALLBACK, FAILURE_FALLBACK, CompanionChat
from magicbook.errors import GenerationError
from magicbook.llm.prompts import COMPANION_GREETING
from magicbook.models.datatypes import ChatMessage, ChatRole
from magicbook.telemetry.logger import SessionLogger
from tests.fakes import ScriptedAssetProvider


def test_transcript_starts_with_greeting_and_sends_full_history() -> None:
    """Each send passes the prior transcript plus the new message."""

    async def scenario() -> None:
        provider = ScriptedAssetProvider(chat_replies=["Robots love music!", "Beep boop!"])
        chat = CompanionChat(provider)

        first = await chat.send("  Can robots whistle?  ")
        second = await chat.send("How?")

        greeting = ChatMessage(ChatRole.ASSISTANT, COMPANION_GREETING)
        assert first == ChatMessage(ChatRole.ASSISTANT, "Robots love music!")
        assert second == ChatMessage(ChatRole.ASSISTANT, "Beep boop!")
        assert provider.chat_calls[0] == ((greeting,), "Can robots whistle?")
        assert provider.chat_calls[1][0] == (
            greeting,
            ChatMessage(ChatRole.USER, "Can robots whistle?"),
            first,
        )
        assert [message.role for message in chat.transcript] == [
            ChatRole.ASSISTANT,
            ChatRole.USER,
            ChatRole.ASSISTANT,
            ChatRole.USER,
            ChatRole.ASSISTANT,
        ]

    asyncio.run(scenario())


def test_failure_and_empty_reply_degrade_to_fallback_messages() -> None:
    """Provider errors never abort the chat."""

    async def scenario() -> None:
        provider = ScriptedAssetProvider(chat_replies=[GenerationError("down"), "   "])
        chat = CompanionChat(provider)

        failed = await chat.send("hello")
        empty = await chat.send("hello again")

        assert failed is not None and failed.text == FAILURE_FALLBACK
        assert empty is not None and empty.text == EMPTY_REPLY_FALLBACK
        assert len(chat.transcript) == 5
        assert chat.is_sending is False

    asyncio.run(scenario())


def test_blank_and_overlapping_sends_are_ignored() -> None:
    """Nothing is appended for blank input or while a reply is outstanding."""

    async def scenario() -> None:
        release = asyncio.Event()

        class SlowProvider(ScriptedAssetProvider):
            async def send_companion_message(self, history, new_message):  # type: ignore[no-untyped-def]
                await release.wait()
                return "done"

        chat = CompanionChat(SlowProvider())
        assert await chat.send("   ") is None

        pending = asyncio.create_task(chat.send("first"))
        await asyncio.sleep(0)
        assert chat.is_sending is True
        assert await chat.send("second") is None

        release.set()
        reply = await pending
        assert reply is not None and reply.text == "done"
        assert [message.text for message in chat.transcript][1:] == ["first", "done"]

    asyncio.run(scenario())


def test_empty_reply_is_logged_as_warning() -> None:
    """An empty model reply is a recoverable anomaly in the session log."""

    async def scenario() -> None:
        sink = io.StringIO()
        provider = ScriptedAssetProvider(chat_replies=["   "])
        chat = CompanionChat(provider, logger=SessionLogger(sink=sink, level="WARNING"))

        reply = await chat.send("hello")

        assert reply == ChatMessage(ChatRole.ASSISTANT, EMPTY_REPLY_FALLBACK)
        assert sink.getvalue().splitlines() == [
            "[story] level=WARNING component=chat event=empty-reply"
        ]

    asyncio.run(scenario())
