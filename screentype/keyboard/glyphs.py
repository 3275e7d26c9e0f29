"""Glyph rendering and similarity scoring for candidate matching.

Candidates are recognised by comparing their pixels with a rendering of the
expected characters, not by reading text. Both images are reduced to an ink
mask, cropped to the ink, padded square and resized to a fixed grid before
they are correlated.
"""

from typing import Optional, Tuple

import numpy as np
from loguru import logger
from PIL import Image, ImageDraw, ImageFont

# Minimum similarity for a candidate to be tapped
CANDIDATE_MATCH_THRESHOLD = 0.6

# Gray-level distance from the background that counts as ink
INK_THRESHOLD = 60

_GRID_SIZE = 32
_RENDER_PADDING = 4
# Private-use codepoint no font maps; it draws as the missing-glyph placeholder
_UNASSIGNED_CODEPOINT = "\U0010FFFD"


def _background_level(gray: np.ndarray) -> float:
    border = np.concatenate([gray[0], gray[-1], gray[:, 0], gray[:, -1]])
    return float(np.median(border))


def ink_mask(image: Image.Image) -> np.ndarray:
    """Boolean mask of pixels that differ from the image's border color."""
    gray = np.asarray(image.convert("L"), dtype=np.float32)
    if gray.size == 0:
        return np.zeros((0, 0), dtype=bool)
    return np.abs(gray - _background_level(gray)) > INK_THRESHOLD


def _normalize(mask: np.ndarray) -> Optional[Tuple[np.ndarray, float]]:
    """Crop a mask to its ink and scale it onto the comparison grid.

    Returns:
        (grid, aspect ratio of the ink box) or None when there is no ink
    """
    rows = np.flatnonzero(mask.any(axis=1))
    cols = np.flatnonzero(mask.any(axis=0))
    if rows.size == 0 or cols.size == 0:
        return None

    cropped = mask[rows[0] : rows[-1] + 1, cols[0] : cols[-1] + 1]
    height, width = cropped.shape
    side = max(height, width)
    square = np.zeros((side, side), dtype=np.uint8)
    top = (side - height) // 2
    left = (side - width) // 2
    square[top : top + height, left : left + width] = cropped * 255

    grid = Image.fromarray(square).resize(
        (_GRID_SIZE, _GRID_SIZE), Image.Resampling.BILINEAR
    )
    return np.asarray(grid, dtype=np.float32) / 255.0, width / height


def glyph_similarity(a: Image.Image, b: Image.Image) -> float:
    """Score how alike two rendered glyphs look.

    The score is the normalized cross-correlation of the two ink grids,
    clipped at zero and scaled by how close their aspect ratios are.

    Returns:
        A value in [0, 1]; 1 for identical shapes, 0 when either is blank
    """
    normalized_a = _normalize(ink_mask(a))
    normalized_b = _normalize(ink_mask(b))
    if normalized_a is None or normalized_b is None:
        return 0.0

    grid_a, ratio_a = normalized_a
    grid_b, ratio_b = normalized_b

    centered_a = grid_a - grid_a.mean()
    centered_b = grid_b - grid_b.mean()
    denominator = float(np.linalg.norm(centered_a) * np.linalg.norm(centered_b))
    if denominator == 0.0:
        # Both grids are uniform (solid blocks)
        correlation = 1.0 if np.allclose(grid_a, grid_b) else 0.0
    else:
        correlation = float((centered_a * centered_b).sum()) / denominator

    aspect = min(ratio_a, ratio_b) / max(ratio_a, ratio_b)
    return max(0.0, min(1.0, correlation * aspect))


class GlyphRenderer:
    """Renders the glyphs a candidate bar is expected to show.

    The font is loaded lazily on first use. A font that fails to load is
    remembered so the failure is logged once, not on every token.
    """

    def __init__(self, font_path: Optional[str] = None, size: int = 48):
        """Initialize the renderer.

        Args:
            font_path: TrueType/OpenType font covering the target script.
                       Pillow's bundled font is used when None; it has no
                       CJK coverage, so Han characters render as None and
                       candidate matching falls back to degraded commits.
            size: Font size in pixels
        """
        self.font_path = font_path
        self.size = size
        self._font = None
        self._font_failed = False
        self._missing_glyph: Optional[Image.Image] = None
        self._missing_glyph_checked = False

    def _get_font(self):
        if self._font is not None or self._font_failed:
            return self._font

        try:
            if self.font_path:
                self._font = ImageFont.truetype(self.font_path, self.size)
            else:
                self._font = ImageFont.load_default(size=self.size)
            logger.debug(f"GlyphRenderer: loaded font {self.font_path or '<default>'}")
        except OSError as e:
            logger.warning(f"GlyphRenderer: failed to load font {self.font_path}: {e}")
            self._font_failed = True
        return self._font

    def _draw(self, font, text: str) -> Optional[Image.Image]:
        try:
            left, top, right, bottom = ImageDraw.Draw(Image.new("L", (1, 1))).textbbox(
                (0, 0), text, font=font
            )
        except UnicodeEncodeError:
            # Bitmap fonts only cover Latin-1
            return None
        if right <= left or bottom <= top:
            return None

        image = Image.new(
            "L",
            (right - left + 2 * _RENDER_PADDING, bottom - top + 2 * _RENDER_PADDING),
            255,
        )
        ImageDraw.Draw(image).text(
            (_RENDER_PADDING - left, _RENDER_PADDING - top), text, font=font, fill=0
        )
        return image

    def _is_missing_glyph(self, font, image: Image.Image) -> bool:
        """Whether image is the font's placeholder for characters it lacks."""
        if not self._missing_glyph_checked:
            self._missing_glyph = self._draw(font, _UNASSIGNED_CODEPOINT)
            self._missing_glyph_checked = True

        missing = self._missing_glyph
        return (
            missing is not None
            and image.size == missing.size
            and image.tobytes() == missing.tobytes()
        )

    def render(self, text: str) -> Optional[Image.Image]:
        """Render text black on white.

        Returns:
            Grayscale image of the text, or None if it cannot be rendered or
            the font has no glyph for it
        """
        font = self._get_font()
        if font is None or not text:
            return None

        image = self._draw(font, text)
        if image is None:
            return None
        for char in set(text):
            glyph = image if char == text else self._draw(font, char)
            if glyph is not None and self._is_missing_glyph(font, glyph):
                logger.debug(f"GlyphRenderer: font has no glyph for '{char}'")
                return None
        return image
