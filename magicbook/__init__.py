"""Top-level package for Magicbook.

This package turns a story prompt into an illustrated, narrated children's
story read page by page. The main entry point is `StorySession`, which can only
be constructed from an `AuthorizedCapability` minted by `CapabilityGate`.
"""

from .auth import AuthorizedCapability, CapabilityGate
from .story.session import StorySession

__all__ = ["AuthorizedCapability", "CapabilityGate", "StorySession", "__version__"]

__version__ = "0.1.0"
