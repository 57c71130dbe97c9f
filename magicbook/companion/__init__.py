"""Companion chat assistant."""

from .chat import EMPTY_REPLY_FALLBACK, FAILURE_FALLBACK, CompanionChat

__all__ = ["CompanionChat", "EMPTY_REPLY_FALLBACK", "FAILURE_FALLBACK"]
