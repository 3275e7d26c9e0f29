"""Soft keyboard and candidate bar detection from screenshots.

Detection is structural rather than learned. A keyboard shows up as a stack
of horizontal bands, one per key row, in which every pixel row crosses many
key borders. Candidates are the ink clusters in the strip directly above it.
"""

from dataclasses import dataclass
from typing import Callable, List, Optional, Tuple

import numpy as np
from loguru import logger
from PIL import Image

from screentype.keyboard.glyphs import INK_THRESHOLD
from screentype.keyboard.layout import ROW_COUNT, KeyboardRegion

# Gray-level step between neighbouring pixels counted as an edge
EDGE_THRESHOLD = 24
# Edges a pixel row needs to belong to a key row (two per key)
MIN_ROW_EDGES = 8
# Shortest key row, as a fraction of screen height
MIN_BAND_FRACTION = 0.015
# Largest gap between key rows, relative to the taller of the two rows
MAX_GAP_RATIO = 1.5
KEYBOARD_MIN_FRACTION = 0.2
KEYBOARD_MAX_FRACTION = 0.6
# The keyboard must end this close to the bottom (room for a navigation bar)
BOTTOM_SLACK = 0.15

CANDIDATE_STRIP_FRACTION = 0.07
# Narrowest blank gap separating two candidates, as a fraction of width
CANDIDATE_GAP_FRACTION = 0.02
MIN_CANDIDATE_WIDTH = 4
GLYPH_PADDING = 2

DebugHook = Callable[[Image.Image, str], None]


@dataclass(frozen=True)
class CandidateRegion:
    """Normalized bounding box of one candidate word and its pixels."""

    left: float
    top: float
    width: float
    height: float
    glyph: Image.Image

    def center_pixel(self, screen_size: Tuple[int, int]) -> Tuple[float, float]:
        return (
            (self.left + self.width / 2) * screen_size[0],
            (self.top + self.height / 2) * screen_size[1],
        )


def _grayscale(image: Image.Image) -> np.ndarray:
    return np.asarray(image.convert("L"), dtype=np.float32)


def _runs(flags: np.ndarray) -> List[Tuple[int, int]]:
    """Half-open (start, end) ranges of consecutive True values."""
    padded = np.concatenate([[False], flags.astype(bool), [False]])
    changes = np.flatnonzero(padded[1:] != padded[:-1])
    return list(zip(changes[0::2].tolist(), changes[1::2].tolist()))


def _merge_runs(runs: List[Tuple[int, int]], min_gap: int) -> List[Tuple[int, int]]:
    merged: List[Tuple[int, int]] = []
    for start, end in runs:
        if merged and start - merged[-1][1] < min_gap:
            merged[-1] = (merged[-1][0], end)
        else:
            merged.append((start, end))
    return merged


def _key_row_clusters(bands: List[Tuple[int, int]]) -> List[List[Tuple[int, int]]]:
    """Group bands into evenly stacked clusters, bottom-most first."""
    clusters: List[List[Tuple[int, int]]] = []
    for band in reversed(bands):
        if clusters:
            below = clusters[-1][-1]
            gap = below[0] - band[1]
            height = max(band[1] - band[0], below[1] - below[0])
            if gap <= height * MAX_GAP_RATIO:
                clusters[-1].append(band)
                continue
        clusters.append([band])
    return clusters


class KeyboardScanner:
    """Locates the soft keyboard and candidate words in screenshots."""

    def __init__(self, debug_hook: Optional[DebugHook] = None):
        """Initialize the scanner.

        Args:
            debug_hook: Optional callback receiving each scanned screenshot
                        and a label describing the scan
        """
        self.debug_hook = debug_hook

    def _debug(self, image: Image.Image, label: str) -> None:
        if self.debug_hook is None:
            return
        try:
            self.debug_hook(image, label)
        except Exception as e:
            logger.warning(f"KeyboardScanner: debug hook failed (ignored): {e}")

    def find_keyboard(self, screenshot: Image.Image) -> Optional[KeyboardRegion]:
        """Locate the soft keyboard.

        Returns:
            The keyboard region, or None if no keyboard is visible
        """
        gray = _grayscale(screenshot)
        height = gray.shape[0]
        if height < 2 or gray.shape[1] < 2:
            self._debug(screenshot, "keyboard: none")
            return None

        edges = (np.abs(np.diff(gray, axis=1)) > EDGE_THRESHOLD).sum(axis=1)
        min_band = max(2, int(height * MIN_BAND_FRACTION))
        bands = [
            (start, end)
            for start, end in _runs(edges >= MIN_ROW_EDGES)
            if end - start >= min_band
        ]

        for cluster in _key_row_clusters(bands):
            if len(cluster) < ROW_COUNT:
                continue

            # Bottom ROW_COUNT rows; anything above is a number row or a candidate bar
            rows = sorted(cluster[:ROW_COUNT])
            gaps = [lower[0] - upper[1] for upper, lower in zip(rows, rows[1:])]
            half_gap = sum(gaps) / len(gaps) / 2
            top = max(0.0, rows[0][0] - half_gap)
            bottom = min(float(height), rows[-1][1] + half_gap)

            fraction = (bottom - top) / height
            if bottom < height * (1 - BOTTOM_SLACK):
                logger.debug(f"KeyboardScanner: key rows end too high ({bottom:.0f}px)")
                continue
            if not KEYBOARD_MIN_FRACTION <= fraction <= KEYBOARD_MAX_FRACTION:
                logger.debug(
                    f"KeyboardScanner: key rows cover {fraction:.0%} of the screen"
                )
                continue

            # Soft keyboards span the full screen width
            region = KeyboardRegion(0.0, top / height, 1.0, (bottom - top) / height)
            logger.debug(f"KeyboardScanner: keyboard found at {region}")
            self._debug(screenshot, f"keyboard: {region.top:.3f}-{region.bottom:.3f}")
            return region

        logger.debug(f"KeyboardScanner: no keyboard among {len(bands)} band(s)")
        self._debug(screenshot, "keyboard: none")
        return None

    def find_candidates(
        self, screenshot: Image.Image, keyboard: KeyboardRegion
    ) -> List[CandidateRegion]:
        """Locate candidate words in the strip above the keyboard.

        Returns:
            Candidate regions ordered left to right
        """
        gray = _grayscale(screenshot)
        height, width = gray.shape
        strip_bottom = int(round(keyboard.top * height))
        strip_top = max(0, strip_bottom - int(height * CANDIDATE_STRIP_FRACTION))
        if strip_bottom - strip_top < 2:
            self._debug(screenshot, "candidates: 0")
            return []

        strip = gray[strip_top:strip_bottom]
        ink = np.abs(strip - np.median(strip)) > INK_THRESHOLD
        min_gap = max(2, int(width * CANDIDATE_GAP_FRACTION))
        columns = _merge_runs(_runs(ink.any(axis=0)), min_gap)

        candidates = []
        for x0, x1 in columns:
            if x1 - x0 < MIN_CANDIDATE_WIDTH:
                continue
            ink_rows = np.flatnonzero(ink[:, x0:x1].any(axis=1))
            y0 = strip_top + int(ink_rows[0])
            y1 = strip_top + int(ink_rows[-1]) + 1

            glyph = screenshot.crop(
                (
                    max(0, x0 - GLYPH_PADDING),
                    max(0, y0 - GLYPH_PADDING),
                    min(width, x1 + GLYPH_PADDING),
                    min(height, y1 + GLYPH_PADDING),
                )
            ).convert("L")
            candidates.append(
                CandidateRegion(
                    left=x0 / width,
                    top=y0 / height,
                    width=(x1 - x0) / width,
                    height=(y1 - y0) / height,
                    glyph=glyph,
                )
            )

        logger.debug(f"KeyboardScanner: {len(candidates)} candidate(s) found")
        self._debug(screenshot, f"candidates: {len(candidates)}")
        return candidates
