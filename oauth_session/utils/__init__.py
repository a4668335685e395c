"""Utility functions package for the OAuth session coordinator.

Exposed functions:
    format_duration: Formats time durations into human-readable strings.
    mask_token: Shortens secrets for display.
"""

from .helpers import format_duration, mask_token

__all__ = ["format_duration", "mask_token"]
