"""Prompt template library for story, illustration, narration, and chat calls.

Responsibilities:
- Centralize prompt construction for every generative capability.
- Keep the story JSON schema next to the prompt that requests it.
"""

from __future__ import annotations

from typing import Any

STORY_SUGGESTIONS = (
    "A space-traveling cat looking for the moon's milk",
    "A shy dragon who loves baking rainbow cupcakes",
    "The secret underwater kingdom of glowing jellyfish",
    "A little robot who wants to learn how to whistle",
)

COMPANION_GREETING = (
    "Hi there! I'm your Magic Companion. Have a question about a story or anything else?"
)


class PromptLibrary:
    """Build prompt strings for supported generative tasks."""

    def story_prompt(self, prompt: str, min_pages: int = 4, max_pages: int = 6) -> str:
        """Return the story-structure prompt for a user idea."""

        return (
            f'Write a short story for children based on this prompt: "{prompt}".\n'
            f"The story should be divided into {min_pages}-{max_pages} distinct pages.\n"
            'Return a JSON object with a "title" string and a "pages" array of strings.'
        )

    def story_response_schema(self) -> dict[str, Any]:
        """Return the JSON schema constraining the story-structure response."""

        return {
            "type": "OBJECT",
            "properties": {
                "title": {"type": "STRING"},
                "pages": {"type": "ARRAY", "items": {"type": "STRING"}},
            },
            "required": ["title", "pages"],
        }

    def illustration_prompt(self, page_text: str, story_title: str) -> str:
        """Return the illustration prompt for one page."""

        return (
            f'A whimsical, kid-friendly illustration for a story titled "{story_title}". '
            f"Scene: {page_text}. "
            "Style: Vibrant, colorful, 3D animated movie style."
        )

    def narration_prompt(self, page_text: str) -> str:
        """Return the text-to-speech instruction for one page."""

        return f"Read this story page warmly and expressively: {page_text}"

    def companion_system_instruction(self) -> str:
        """Return the system instruction for the companion chat model."""

        return (
            "You are a friendly, helpful, and magical AI companion for children. "
            "You help explain things from their storybooks or just chat about fun things. "
            "Keep your answers simple, encouraging, and safe for kids."
        )
