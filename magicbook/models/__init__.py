"""Shared typed data models for Magicbook.

This package contains dataclasses and enums used across story, provider, and
CLI modules to avoid cross-module coupling and circular imports.
"""

from .datatypes import (
    ChatMessage,
    ChatRole,
    FailureKind,
    IllustrationAsset,
    IllustrationFailure,
    IllustrationStatus,
    Page,
    QualityTier,
    Story,
    StorySkeleton,
)

__all__ = [
    "ChatMessage",
    "ChatRole",
    "FailureKind",
    "IllustrationAsset",
    "IllustrationFailure",
    "IllustrationStatus",
    "Page",
    "QualityTier",
    "Story",
    "StorySkeleton",
]
