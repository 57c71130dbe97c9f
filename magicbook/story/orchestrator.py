"""Page orchestration: view cursor, fetch-on-view, and failure classification.

Responsibilities:
- Move the view cursor, stopping narration before every move.
- Issue exactly one illustration fetch whenever the viewed page is `ABSENT`.
- Apply fetch results monotonically using per-page generation tokens.
- Classify failures as permission-denied or transient and expose the
  re-authorization affordance.

Key types:
- `PageOrchestrator`: event-driven orchestration over one `StoryDocument`.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable

from ..errors import PermissionDenied
from ..llm.asset_provider import AssetProvider
from ..models.datatypes import (
    FailureKind,
    IllustrationFailure,
    IllustrationStatus,
    Page,
    QualityTier,
)
from ..telemetry.logger import SessionLogger
from .document import StoryDocument
from .playback import PlaybackController, PlaybackState


class PageOrchestrator:
    """Drive illustration fetches and narration lifecycle for the viewed page.

    All public methods are synchronous state transitions; fetches are spawned
    as tasks on the running event loop. Revisiting a `FAILED` page through
    navigation clears it to `ABSENT`, which re-issues its fetch.
    """

    def __init__(
        self,
        document: StoryDocument,
        provider: AssetProvider,
        quality: QualityTier = QualityTier.LOW,
        *,
        playback: PlaybackController | None = None,
        logger: SessionLogger | None = None,
    ) -> None:
        """Initialize the orchestrator at page 0 and subscribe to page changes."""

        self._document = document
        self._provider = provider
        self._quality = quality
        self._playback = playback
        self._logger = logger
        self._cursor = 0
        self._generations = [0] * document.page_count
        self._in_flight: dict[int, set[int]] = {i: set() for i in range(document.page_count)}
        self._tasks: set[asyncio.Task[None]] = set()
        self._opened = False
        self._closed = False
        self.needs_reauthorization = False
        self._unsubscribe: Callable[[], None] = document.subscribe(self._on_page_changed)

    @property
    def document(self) -> StoryDocument:
        """Return the orchestrated document."""

        return self._document

    @property
    def current_index(self) -> int:
        """Return the viewed page index."""

        return self._cursor

    @property
    def current_page(self) -> Page:
        """Return the viewed page."""

        return self._document.page(self._cursor)

    @property
    def quality(self) -> QualityTier:
        """Return the illustration quality tier used for new fetches."""

        return self._quality

    @property
    def closed(self) -> bool:
        """Return whether the orchestrator has been torn down."""

        return self._closed

    def open(self) -> None:
        """Start viewing page 0, issuing its fetch when needed."""

        if self._opened or self._closed:
            return
        # raises outside a running loop, before any state changes
        asyncio.get_running_loop()
        self._opened = True
        self._log("opened", page=self._cursor, pages=self._document.page_count)
        self._arrive(self._cursor)

    def next_page(self) -> bool:
        """Move to the next page; return `False` at the last page."""

        return self._navigate(self._cursor + 1)

    def previous_page(self) -> bool:
        """Move to the previous page; return `False` at the first page."""

        return self._navigate(self._cursor - 1)

    def retry_illustration(self, index: int | None = None) -> bool:
        """Clear a `FAILED` or `PENDING` page back to `ABSENT`.

        Any fetch still outstanding for that page becomes stale. The viewed
        page is re-fetched immediately; other pages wait until visited.
        """

        target = self._cursor if index is None else index
        page = self._document.page(target)
        if self._closed or page.status not in {IllustrationStatus.FAILED, IllustrationStatus.PENDING}:
            return False
        self._generations[target] += 1
        self._log("retry", page=target, previous=page.status)
        self._document.apply_page_update(
            target, status=IllustrationStatus.ABSENT, illustration=None, failure=None
        )
        self._evaluate_trigger()
        return True

    def toggle_narration(self) -> PlaybackState:
        """Toggle narration of the viewed page's text."""

        if self._playback is None:
            raise RuntimeError("No playback controller is attached to this orchestrator.")
        return self._playback.toggle_narration(self.current_page.text)

    def acknowledge_reauthorization(self) -> None:
        """Clear the re-authorization affordance after a new key was selected."""

        self.needs_reauthorization = False

    def outstanding_fetches(self, index: int) -> int:
        """Return how many in-flight fetches are attributable to page `index`."""

        current = self._generations[index]
        return sum(1 for token in self._in_flight[index] if token == current)

    def close(self) -> None:
        """Stop narration and detach from the document; late results are discarded."""

        if self._closed:
            return
        self._closed = True
        if self._playback is not None:
            self._playback.stop(reason="teardown")
        self._unsubscribe()
        self._log("closed", outstanding=len(self._tasks))

    async def drain(self) -> None:
        """Await every fetch task spawned so far, including ones spawned while draining."""

        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def _navigate(self, target: int) -> bool:
        """Stop narration and move the cursor; out-of-range targets are a no-op."""

        if self._closed or not 0 <= target < self._document.page_count:
            return False
        if self._playback is not None:
            self._playback.stop(reason="navigation")
        self._cursor = target
        self._log("navigated", page=target)
        self._arrive(target)
        return True

    def _arrive(self, index: int) -> None:
        """Re-arm a previously failed page, then evaluate the trigger."""

        if self._document.page(index).status is IllustrationStatus.FAILED:
            self._document.apply_page_update(
                index, status=IllustrationStatus.ABSENT, failure=None
            )
        self._evaluate_trigger()

    def _on_page_changed(self, index: int, page: Page) -> None:
        """React to document updates for the viewed page."""

        if index == self._cursor:
            self._evaluate_trigger()

    def _evaluate_trigger(self) -> None:
        """Issue a fetch when the viewed page has no asset and no fetch outstanding."""

        if not self._opened or self._closed:
            return
        if self._document.page(self._cursor).status is IllustrationStatus.ABSENT:
            self._issue_fetch(self._cursor)

    def _issue_fetch(self, index: int) -> None:
        """Mark the page `PENDING` and spawn one fetch stamped with a fresh generation."""

        loop = asyncio.get_running_loop()
        self._generations[index] += 1
        token = self._generations[index]
        page = self._document.page(index)
        self._in_flight[index].add(token)
        self._document.apply_page_update(index, status=IllustrationStatus.PENDING)
        task = loop.create_task(self._fetch_illustration(index, token, page.text))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        self._log("fetch-issued", page=index, generation=token, quality=self._quality)

    async def _fetch_illustration(self, index: int, token: int, page_text: str) -> None:
        """Fetch one illustration and apply the result if it is still current."""

        title = self._document.story.title
        try:
            asset = await self._provider.generate_illustration(page_text, title, self._quality)
        except PermissionDenied as exc:
            self._settle(
                index,
                token,
                status=IllustrationStatus.FAILED,
                failure=IllustrationFailure(FailureKind.PERMISSION_DENIED, str(exc)),
            )
            return
        except Exception as exc:
            self._settle(
                index,
                token,
                status=IllustrationStatus.FAILED,
                failure=IllustrationFailure(FailureKind.TRANSIENT, str(exc)),
            )
            return
        self._settle(index, token, status=IllustrationStatus.READY, illustration=asset)

    def _settle(self, index: int, token: int, **fields: object) -> None:
        """Apply a completed fetch unless its generation is stale or the story is gone."""

        self._in_flight[index].discard(token)
        if self._closed or token != self._generations[index]:
            self._debug("fetch-discarded", page=index, generation=token, outcome=fields["status"])
            return

        failure = fields.get("failure")
        if isinstance(failure, IllustrationFailure):
            if failure.kind is FailureKind.PERMISSION_DENIED:
                self.needs_reauthorization = True
            if self._logger is not None:
                self._logger.log_failure(
                    "orchestrator", "fetch-failed", failure.kind.value, page=index, generation=token
                )
        else:
            self._log("fetch-ready", page=index, generation=token)
        self._document.apply_page_update(index, **fields)

    def _log(self, event: str, **context: object) -> None:
        """Emit an orchestrator event when a logger is configured."""

        if self._logger is not None:
            self._logger.log_event("orchestrator", event, **context)

    def _debug(self, event: str, **context: object) -> None:
        """Emit an orchestrator diagnostic when a logger is configured."""

        if self._logger is not None:
            self._logger.log_debug("orchestrator", event, **context)
