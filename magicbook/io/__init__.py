"""Filesystem output helpers."""

from .storage import ArtifactStore

__all__ = ["ArtifactStore"]
