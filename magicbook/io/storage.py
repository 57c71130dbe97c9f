"""Output-directory storage for viewing aids.

Responsibilities:
- Write illustration images and narration WAV files for the terminal reader.
- Keep file naming deterministic per story and page.
"""

from __future__ import annotations

from pathlib import Path

from ..models.datatypes import IllustrationAsset


class ArtifactStore:
    """Filesystem-backed store rooted at the configured output directory."""

    def __init__(self, root: Path) -> None:
        """Initialize the store with a root output directory."""

        self.root = root

    def save_audio(self, relative_path: Path, data: bytes) -> Path:
        """Save audio bytes and return final path."""

        return self._write_bytes(relative_path, data)

    def save_illustration(self, story_id: str, page_index: int, asset: IllustrationAsset) -> Path:
        """Save a page illustration as `<story_id>/page-<NN>.<ext>` and return its path."""

        relative = Path(story_id) / f"page-{page_index + 1:02d}.{asset.file_extension}"
        return self._write_bytes(relative, asset.data)

    def _write_bytes(self, relative_path: Path, data: bytes) -> Path:
        """Write bytes below the root, creating parent directories."""

        path = self.root / relative_path
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
        return path
