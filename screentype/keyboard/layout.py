"""Geometric model of a standard QWERTY soft keyboard.

Key positions are fractions of the keyboard's bounding box, so the same
layout serves every screen size. The keyboard is split into four rows of
equal height: three staggered letter rows and a bottom row with space and
enter.
"""

from dataclasses import dataclass
from typing import Dict, Optional, Tuple

LETTER_ROWS = ("qwertyuiop", "asdfghjkl", "zxcvbnm")
ROW_COUNT = 4
KEYS_PER_ROW = 10

# Stagger of each letter row, in key widths
_ROW_OFFSETS = (0.0, 0.5, 1.5)

SPACE = "space"
BACKSPACE = "backspace"
ENTER = "enter"
SHIFT = "shift"


@dataclass(frozen=True)
class KeyboardRegion:
    """Normalized bounding box of a soft keyboard within a screenshot."""

    left: float
    top: float
    width: float
    height: float

    @property
    def right(self) -> float:
        return self.left + self.width

    @property
    def bottom(self) -> float:
        return self.top + self.height

    def contains(self, x: float, y: float) -> bool:
        return self.left <= x <= self.right and self.top <= y <= self.bottom


@dataclass(frozen=True)
class KeySpec:
    """A key and its centroid relative to the keyboard region."""

    key: str
    x: float
    y: float

    def absolute(self, region: KeyboardRegion) -> Tuple[float, float]:
        """Normalized screen coordinate of this key inside region."""
        return region.left + self.x * region.width, region.top + self.y * region.height

    def pixel(
        self, region: KeyboardRegion, screen_size: Tuple[int, int]
    ) -> Tuple[float, float]:
        """Pixel coordinate of this key for a screen of screen_size (w, h)."""
        x, y = self.absolute(region)
        return x * screen_size[0], y * screen_size[1]


def _row_center(row: int) -> float:
    return (row + 0.5) / ROW_COUNT


def _build_keys() -> Dict[str, KeySpec]:
    keys: Dict[str, KeySpec] = {}
    for row, (letters, offset) in enumerate(zip(LETTER_ROWS, _ROW_OFFSETS)):
        for column, letter in enumerate(letters):
            x = (offset + column + 0.5) / KEYS_PER_ROW
            keys[letter] = KeySpec(letter, x, _row_center(row))

    keys[SHIFT] = KeySpec(SHIFT, 0.075, _row_center(2))
    keys[BACKSPACE] = KeySpec(BACKSPACE, 0.925, _row_center(2))
    keys[SPACE] = KeySpec(SPACE, 0.5, _row_center(3))
    keys[ENTER] = KeySpec(ENTER, 0.9, _row_center(3))
    return keys


KEYS: Dict[str, KeySpec] = _build_keys()

_CHAR_ALIASES = {" ": SPACE, "\n": ENTER, "\b": BACKSPACE}


def key_for(char: str) -> Optional[KeySpec]:
    """Resolve a character or control key name to its KeySpec.

    Letters match case-insensitively; space, newline and backspace map to
    their control keys. Anything else has no key on this layout.
    """
    if char in KEYS:
        return KEYS[char]
    if char in _CHAR_ALIASES:
        return KEYS[_CHAR_ALIASES[char]]
    if len(char) == 1 and char.lower() in KEYS:
        return KEYS[char.lower()]
    return None
