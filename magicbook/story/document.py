"""In-memory story document with a single sanctioned page mutation path.

Responsibilities:
- Build a story from a generated skeleton with every page `ABSENT`.
- Merge partial page updates while enforcing page invariants.
- Notify observers after each applied update.

Key types:
- `StoryDocument`: owner of the current `Story` value.
"""

from __future__ import annotations

from collections import deque
from collections.abc import Callable
import dataclasses
import secrets
import string

from ..models.datatypes import IllustrationStatus, Page, Story, StorySkeleton

PageObserver = Callable[[int, Page], None]

_STORY_ID_ALPHABET = string.ascii_lowercase + string.digits
_STORY_ID_LENGTH = 9
_MUTABLE_PAGE_FIELDS = frozenset({"illustration", "status", "failure"})


def new_story_id() -> str:
    """Return an opaque 9-character story identifier."""

    return "".join(secrets.choice(_STORY_ID_ALPHABET) for _ in range(_STORY_ID_LENGTH))


class StoryDocument:
    """Hold one story and route every page change through `apply_page_update`."""

    def __init__(self, story: Story) -> None:
        """Initialize the document around an already-built story."""

        if not story.pages:
            raise ValueError("A story needs at least one page.")
        self._story = story
        self._observers: list[PageObserver] = []
        self._pending: deque[tuple[int, Page]] = deque()
        self._notifying = False

    @classmethod
    def from_skeleton(cls, skeleton: StorySkeleton, story_id: str | None = None) -> "StoryDocument":
        """Create a document whose pages mirror the skeleton texts in order."""

        story = Story(
            id=story_id or new_story_id(),
            title=skeleton.title,
            pages=tuple(Page(text=text) for text in skeleton.page_texts),
        )
        return cls(story)

    @property
    def story(self) -> Story:
        """Return the current immutable story value."""

        return self._story

    @property
    def page_count(self) -> int:
        """Return the fixed number of pages."""

        return len(self._story.pages)

    def page(self, index: int) -> Page:
        """Return the page at `index`."""

        self._require_index(index)
        return self._story.pages[index]

    def subscribe(self, observer: PageObserver) -> Callable[[], None]:
        """Register a page observer and return a callable that unregisters it."""

        self._observers.append(observer)

        def _unsubscribe() -> None:
            if observer in self._observers:
                self._observers.remove(observer)

        return _unsubscribe

    def apply_page_update(self, index: int, **fields: object) -> Page:
        """Merge `fields` into the page at `index`, validate it, and notify observers.

        Only `illustration`, `status`, and `failure` may change; all other pages
        and fields are preserved.

        Raises:
            IndexError: If `index` is outside the story.
            ValueError: If a field is not mutable or the merged page breaks an invariant.
        """

        self._require_index(index)
        unknown = sorted(set(fields).difference(_MUTABLE_PAGE_FIELDS))
        if unknown:
            raise ValueError(f"Page field(s) cannot be updated: {', '.join(unknown)}.")

        updated = dataclasses.replace(self._story.pages[index], **fields)
        self._validate_page(updated)

        pages = list(self._story.pages)
        pages[index] = updated
        self._story = dataclasses.replace(self._story, pages=tuple(pages))

        self._pending.append((index, updated))
        self._deliver_pending()
        return updated

    def _deliver_pending(self) -> None:
        """Deliver queued updates in order; updates made by observers are queued, not nested."""

        if self._notifying:
            return
        self._notifying = True
        try:
            while self._pending:
                index, page = self._pending.popleft()
                for observer in list(self._observers):
                    observer(index, page)
        finally:
            self._notifying = False

    def _require_index(self, index: int) -> None:
        """Reject indices outside `[0, page_count)`."""

        if not 0 <= index < len(self._story.pages):
            raise IndexError(f"Page index {index} is outside story of {self.page_count} pages.")

    @staticmethod
    def _validate_page(page: Page) -> None:
        """Enforce the status/illustration/failure pairing for one page."""

        if page.status is IllustrationStatus.READY and page.illustration is None:
            raise ValueError("A `ready` page requires an illustration.")
        if page.status is not IllustrationStatus.READY and page.illustration is not None:
            raise ValueError("Only a `ready` page may hold an illustration.")
        if page.status is IllustrationStatus.FAILED and page.failure is None:
            raise ValueError("A `failed` page requires a failure classification.")
        if page.status is not IllustrationStatus.FAILED and page.failure is not None:
            raise ValueError("Only a `failed` page may hold a failure classification.")
