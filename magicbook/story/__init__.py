"""Story document, page orchestration, narration playback, and session."""

from .document import StoryDocument, new_story_id
from .orchestrator import PageOrchestrator
from .playback import NARRATION_FAILURE_NOTICE, PlaybackController, PlaybackState
from .session import StorySession

__all__ = [
    "NARRATION_FAILURE_NOTICE",
    "PageOrchestrator",
    "PlaybackController",
    "PlaybackState",
    "StoryDocument",
    "StorySession",
    "new_story_id",
]
