"""Core datatypes shared across Magicbook modules.

Responsibilities:
- Represent story, page, and illustration records exchanged between components.
- Keep page records immutable so every change flows through the document model.

Key types:
- `Story`, `Page`, `StorySkeleton`, `IllustrationAsset`, `IllustrationFailure`,
  `ChatMessage`, and the `IllustrationStatus`, `FailureKind`, `QualityTier`,
  `ChatRole` enums.
"""

from __future__ import annotations

import base64
from dataclasses import dataclass
from enum import Enum


class IllustrationStatus(str, Enum):
    """Lifecycle of one page illustration."""

    ABSENT = "absent"
    PENDING = "pending"
    READY = "ready"
    FAILED = "failed"


class FailureKind(str, Enum):
    """Classification of a failed illustration fetch."""

    PERMISSION_DENIED = "permission_denied"
    TRANSIENT = "transient"


class QualityTier(str, Enum):
    """Requested illustration resolution.

    `LOW` is served by the standard image model; higher tiers require the pro
    image model, which is the capability that may be denied.
    """

    LOW = "1K"
    MEDIUM = "2K"
    HIGH = "4K"

    @property
    def uses_pro_model(self) -> bool:
        """Return whether this tier requires the pro image model."""

        return self is not QualityTier.LOW

    @classmethod
    def parse(cls, value: object) -> "QualityTier":
        """Parse a tier from its size label (`1K`) or name (`low`)."""

        if isinstance(value, QualityTier):
            return value
        token = str(value).strip()
        for tier in cls:
            if token.upper() == tier.value or token.lower() == tier.name.lower():
                return tier
        supported = ", ".join(tier.value for tier in cls)
        raise ValueError(f"Unsupported image quality `{token}`; supported: {supported}.")


class ChatRole(str, Enum):
    """Author of one companion chat message."""

    USER = "user"
    ASSISTANT = "assistant"


@dataclass(frozen=True, slots=True)
class IllustrationAsset:
    """Renderable image returned by the illustration provider.

    Attributes:
        mime_type: Image MIME type, for example `image/png`.
        data: Raw image bytes.
    """

    mime_type: str
    data: bytes

    def data_url(self) -> str:
        """Return the image as a `data:` URL."""

        encoded = base64.b64encode(self.data).decode("ascii")
        return f"data:{self.mime_type};base64,{encoded}"

    @property
    def file_extension(self) -> str:
        """Return a filename extension matching the MIME type."""

        subtype = self.mime_type.split("/", 1)[-1].lower()
        return {"jpeg": "jpg", "svg+xml": "svg"}.get(subtype, subtype or "bin")


@dataclass(frozen=True, slots=True)
class IllustrationFailure:
    """Why the last illustration fetch for a page failed."""

    kind: FailureKind
    detail: str = ""


@dataclass(frozen=True, slots=True)
class Page:
    """One story page and its illustration state.

    Attributes:
        text: Page text; never changes after creation.
        illustration: Illustration asset once `status` is `READY`.
        status: Illustration lifecycle state.
        failure: Failure classification while `status` is `FAILED`.
    """

    text: str
    illustration: IllustrationAsset | None = None
    status: IllustrationStatus = IllustrationStatus.ABSENT
    failure: IllustrationFailure | None = None


@dataclass(frozen=True, slots=True)
class Story:
    """A generated story.

    Attributes:
        id: Opaque session-local identifier.
        title: Story title.
        pages: Ordered pages; the count never changes after creation.
    """

    id: str
    title: str
    pages: tuple[Page, ...]


@dataclass(frozen=True, slots=True)
class StorySkeleton:
    """Title and ordered page texts returned by the story model."""

    title: str
    page_texts: tuple[str, ...]


@dataclass(frozen=True, slots=True)
class ChatMessage:
    """One companion chat transcript entry."""

    role: ChatRole
    text: str
