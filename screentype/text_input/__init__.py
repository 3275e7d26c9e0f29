"""Tiered text input with verification and visual fallback."""

from .handler import EditableTarget, InputTier, TextInputHandler
from .verification import VerificationResult, classify

__all__ = [
    "EditableTarget",
    "InputTier",
    "TextInputHandler",
    "VerificationResult",
    "classify",
]
