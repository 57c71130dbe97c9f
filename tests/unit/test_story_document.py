"""Unit tests for the story document and its single mutation path."""

from __future__ import annotations

import pytest

from magicbook.models.datatypes import (
    FailureKind,
    IllustrationAsset,
    IllustrationFailure,
    IllustrationStatus,
    Page,
    StorySkeleton,
)
from magicbook.story.document import StoryDocument, new_story_id
from tests.fakes import WHISTLING_ROBOT

ASSET = IllustrationAsset(mime_type="image/png", data=b"png")


def test_from_skeleton_builds_absent_pages_in_order() -> None:
    """Each skeleton entry becomes one absent page with identical text."""

    document = StoryDocument.from_skeleton(WHISTLING_ROBOT, story_id="abc123xyz")

    assert document.story.id == "abc123xyz"
    assert document.story.title == "The Whistling Robot"
    assert document.page_count == 5
    assert [page.text for page in document.story.pages] == list(WHISTLING_ROBOT.page_texts)
    assert all(page.status is IllustrationStatus.ABSENT for page in document.story.pages)
    assert all(page.illustration is None for page in document.story.pages)


def test_new_story_id_is_nine_lowercase_alphanumerics() -> None:
    """Generated identifiers are opaque 9-character tokens."""

    story_id = new_story_id()

    assert len(story_id) == 9
    assert story_id.isalnum() and story_id == story_id.lower()


def test_apply_page_update_merges_fields_and_preserves_other_pages() -> None:
    """Only the addressed page changes, and only the given fields."""

    document = StoryDocument.from_skeleton(WHISTLING_ROBOT)
    before = document.story.pages

    updated = document.apply_page_update(2, status=IllustrationStatus.READY, illustration=ASSET)

    assert updated.text == before[2].text
    assert document.page(2) == Page(text=before[2].text, illustration=ASSET, status=IllustrationStatus.READY)
    assert document.story.pages[:2] == before[:2]
    assert document.story.pages[3:] == before[3:]


@pytest.mark.parametrize(
    "fields",
    [
        {"status": IllustrationStatus.READY},
        {"illustration": ASSET},
        {"status": IllustrationStatus.FAILED},
        {"failure": IllustrationFailure(FailureKind.TRANSIENT)},
    ],
)
def test_apply_page_update_rejects_broken_pairings(fields: dict[str, object]) -> None:
    """Status, illustration, and failure must agree after every update."""

    document = StoryDocument.from_skeleton(WHISTLING_ROBOT)

    with pytest.raises(ValueError):
        document.apply_page_update(0, **fields)
    assert document.page(0).status is IllustrationStatus.ABSENT


def test_apply_page_update_rejects_text_changes_and_bad_index() -> None:
    """Page text is immutable and indices are bounds-checked."""

    document = StoryDocument.from_skeleton(WHISTLING_ROBOT)

    with pytest.raises(ValueError, match="text"):
        document.apply_page_update(0, text="rewritten")
    with pytest.raises(IndexError):
        document.apply_page_update(5, status=IllustrationStatus.PENDING)


def test_observers_receive_updates_until_unsubscribed() -> None:
    """Observers see `(index, page)` for each applied update."""

    document = StoryDocument.from_skeleton(WHISTLING_ROBOT)
    seen: list[tuple[int, IllustrationStatus]] = []
    unsubscribe = document.subscribe(lambda index, page: seen.append((index, page.status)))

    document.apply_page_update(1, status=IllustrationStatus.PENDING)
    unsubscribe()
    document.apply_page_update(1, status=IllustrationStatus.ABSENT)

    assert seen == [(1, IllustrationStatus.PENDING)]


def test_updates_made_by_observers_are_delivered_in_order() -> None:
    """An update applied inside an observer is queued behind the current one."""

    document = StoryDocument.from_skeleton(WHISTLING_ROBOT)
    first_seen: list[IllustrationStatus] = []
    second_seen: list[IllustrationStatus] = []

    def chain(index: int, page: Page) -> None:
        first_seen.append(page.status)
        if page.status is IllustrationStatus.ABSENT:
            document.apply_page_update(index, status=IllustrationStatus.PENDING)

    document.subscribe(chain)
    document.subscribe(lambda index, page: second_seen.append(page.status))
    document.apply_page_update(0, status=IllustrationStatus.ABSENT)

    assert first_seen == [IllustrationStatus.ABSENT, IllustrationStatus.PENDING]
    assert second_seen == [IllustrationStatus.ABSENT, IllustrationStatus.PENDING]
    assert document.page(0).status is IllustrationStatus.PENDING


def test_document_requires_pages() -> None:
    """An empty skeleton cannot form a story."""

    with pytest.raises(ValueError):
        StoryDocument.from_skeleton(StorySkeleton(title="Empty", page_texts=()))
