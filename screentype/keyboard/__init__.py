"""Visual typing on a soft keyboard.

This package contains the pieces of the visual keyboard agent:
- layout: key positions of a standard QWERTY keyboard
- pinyin: text to key sequence conversion
- glyphs: glyph rendering and similarity scoring
- scanner: keyboard and candidate detection in screenshots
- agent: the KeyboardAgent that ties them together
"""

from .agent import KeyboardAgent, select_candidate
from .glyphs import CANDIDATE_MATCH_THRESHOLD, GlyphRenderer, glyph_similarity
from .layout import KEYS, KeyboardRegion, KeySpec, key_for
from .pinyin import PhoneticToken, to_phonetic
from .scanner import CandidateRegion, KeyboardScanner

__all__ = [
    "CANDIDATE_MATCH_THRESHOLD",
    "CandidateRegion",
    "GlyphRenderer",
    "KEYS",
    "KeySpec",
    "KeyboardAgent",
    "KeyboardRegion",
    "KeyboardScanner",
    "PhoneticToken",
    "glyph_similarity",
    "key_for",
    "select_candidate",
    "to_phonetic",
]
