"""Generative provider abstractions.

This package defines the asset provider contract, its Gemini implementation,
the underlying HTTP clients, and the prompt library.
"""

from .asset_provider import AssetProvider, GeminiAssetProvider, parse_story_skeleton
from .gemini_client import (
    GeminiImageClient,
    GeminiProviderError,
    GeminiSpeechClient,
    GeminiTextClient,
)
from .prompts import PromptLibrary

__all__ = [
    "AssetProvider",
    "GeminiAssetProvider",
    "GeminiImageClient",
    "GeminiProviderError",
    "GeminiSpeechClient",
    "GeminiTextClient",
    "PromptLibrary",
    "parse_story_skeleton",
]
