"""Domain exceptions for story orchestration and CLI diagnostics."""

from __future__ import annotations


class MagicbookError(RuntimeError):
    """Base class for Magicbook domain failures."""


class GenerationError(MagicbookError):
    """Raised when a generative provider call fails; recoverable by a manual retry."""


class PermissionDenied(MagicbookError):
    """Raised when the provider reports the caller lacks entitlement for a capability tier."""


class AuthError(MagicbookError):
    """Raised when the capability authorization flow itself fails."""


class StoryCreationError(GenerationError):
    """Raised when a prompt could not be turned into a story.

    Attributes:
        notice: User-visible message shown after returning to the pre-story state.
    """

    DEFAULT_NOTICE = "Magic wand failure! Please try again with a different prompt."

    def __init__(self, detail: str, *, notice: str | None = None) -> None:
        """Initialize a story-creation failure with a user-facing notice."""

        super().__init__(detail)
        self.notice = notice or self.DEFAULT_NOTICE


class SessionStageError(RuntimeError):
    """Raised when a specific CLI session stage fails."""

    def __init__(
        self,
        *,
        stage: str,
        detail: str,
        hint: str | None = None,
    ) -> None:
        """Initialize a stage-scoped session error."""

        super().__init__(detail)
        self.stage = stage
        self.detail = detail
        self.hint = hint
