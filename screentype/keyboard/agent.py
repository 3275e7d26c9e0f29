"""Visual keyboard agent.

Types text by tapping keys on the soft keyboard visible in a screenshot.
Chinese characters are typed as pinyin and committed by tapping the
candidate whose pixels best match a rendering of the character.
"""

from dataclasses import dataclass
from typing import Awaitable, Callable, List, Optional, Sequence, Tuple

from loguru import logger
from PIL import Image

from screentype.device.base import GestureDevice
from screentype.keyboard.glyphs import (
    CANDIDATE_MATCH_THRESHOLD,
    GlyphRenderer,
    glyph_similarity,
)
from screentype.keyboard.layout import SHIFT, SPACE, KeyboardRegion, key_for
from screentype.keyboard.pinyin import PhoneticToken, to_phonetic
from screentype.keyboard.scanner import CandidateRegion, KeyboardScanner
from screentype.settings import KeyboardConfig
from screentype.utils import settle

ScreenshotProvider = Callable[[], Awaitable[Optional[Image.Image]]]


@dataclass(frozen=True)
class _Surface:
    """Keyboard location in the most recent screenshot."""

    keyboard: KeyboardRegion
    size: Tuple[int, int]


def select_candidate(
    expected: Image.Image,
    candidates: Sequence[CandidateRegion],
    threshold: float = CANDIDATE_MATCH_THRESHOLD,
) -> Optional[Tuple[CandidateRegion, float]]:
    """Pick the candidate that best matches the expected glyph.

    Returns:
        (candidate, score) for the single best candidate scoring at least
        threshold, or None if no candidate qualifies
    """
    best: Optional[Tuple[CandidateRegion, float]] = None
    for index, candidate in enumerate(candidates):
        score = glyph_similarity(expected, candidate.glyph)
        logger.debug(f"Candidate {index}: score {score:.3f}")
        if best is None or score > best[1]:
            best = (candidate, score)

    if best is None or best[1] < threshold:
        return None
    return best


def _is_latin_letter(token: PhoneticToken) -> bool:
    return not token.needs_candidate and token.keys.isascii() and token.keys.isalpha()


def _unmapped_chars(tokens: Sequence[PhoneticToken]) -> str:
    """Characters of the tokens' keys that the layout cannot type, in order."""
    return "".join(
        char for token in tokens for char in token.keys if key_for(char) is None
    )


class KeyboardAgent:
    """Types text on a visible soft keyboard.

    The agent keeps no state between calls: keyboard and candidate regions
    are recomputed from every screenshot and dropped when type() returns.
    There are no retries at this level.
    """

    def __init__(
        self,
        device: GestureDevice,
        scanner: Optional[KeyboardScanner] = None,
        renderer: Optional[GlyphRenderer] = None,
        config: Optional[KeyboardConfig] = None,
    ):
        self.device = device
        self.config = config or KeyboardConfig()
        self.scanner = scanner or KeyboardScanner()
        self.renderer = renderer or GlyphRenderer(
            self.config.glyph_font, self.config.glyph_size
        )
        self.threshold = (
            self.config.match_threshold
            if self.config.match_threshold is not None
            else CANDIDATE_MATCH_THRESHOLD
        )

    async def type(
        self,
        text: str,
        screenshot: Image.Image,
        screenshot_provider: ScreenshotProvider,
    ) -> bool:
        """Type text on the keyboard shown in screenshot.

        Args:
            text: Text to type
            screenshot: Current screen, used to locate the keyboard
            screenshot_provider: Coroutine function returning a fresh
                                 screenshot (or None on capture failure)

        Returns:
            True if every token was typed and committed. A failure aborts the
            remaining tokens without undoing the ones already typed. Text
            holding characters with no key on the layout fails before any
            tap, unless skip_unmapped_keys is set, in which case those
            characters are left out.
        """
        tokens = to_phonetic(text)
        if not tokens:
            logger.warning("KeyboardAgent: nothing to type")
            return False

        unmapped = _unmapped_chars(tokens)
        if unmapped and not self.config.skip_unmapped_keys:
            logger.error(f"KeyboardAgent: no key for {unmapped!r}, not typing")
            return False

        keyboard = self.scanner.find_keyboard(screenshot)
        if keyboard is None:
            logger.error("KeyboardAgent: no soft keyboard visible")
            return False

        surface = _Surface(keyboard, screenshot.size)
        logger.debug(f"KeyboardAgent: typing {len(tokens)} token(s)")

        for index, token in enumerate(tokens):
            if not await self._tap_keys(token.keys, surface):
                return False

            if token.needs_candidate:
                surface = await self._commit_candidate(token, surface, screenshot_provider)
                if surface is None:
                    logger.error(f"KeyboardAgent: could not commit '{token.source}'")
                    return False
            elif self._ends_latin_word(tokens, index):
                if not await self._tap_commit_key(surface):
                    return False

        logger.debug("KeyboardAgent: typing complete")
        return True

    async def _tap(self, key: str, surface: _Surface) -> bool:
        spec = key_for(key)
        if spec is None:
            logger.warning(f"KeyboardAgent: no key for {key!r}, skipping")
            return True

        x, y = spec.pixel(surface.keyboard, surface.size)
        if not await self.device.perform_tap(x, y):
            logger.error(f"KeyboardAgent: tap on key {spec.key!r} failed")
            return False
        await settle(self.config.key_delay_ms)
        return True

    async def _tap_keys(self, keys: str, surface: _Surface) -> bool:
        for char in keys:
            if char.isascii() and char.isupper():
                if not await self._tap(SHIFT, surface):
                    return False
            if not await self._tap(char, surface):
                return False
        return True

    def _ends_latin_word(self, tokens: List[PhoneticToken], index: int) -> bool:
        if not self.config.passthrough_commit_key:
            return False
        if not _is_latin_letter(tokens[index]):
            return False
        return index + 1 == len(tokens) or not _is_latin_letter(tokens[index + 1])

    async def _tap_commit_key(self, surface: _Surface) -> bool:
        return await self._tap(self.config.passthrough_commit_key, surface)

    async def _commit_candidate(
        self,
        token: PhoneticToken,
        surface: _Surface,
        screenshot_provider: ScreenshotProvider,
    ) -> Optional[_Surface]:
        """Pick and tap the candidate for token.

        Returns:
            The keyboard location in the fresh screenshot, or None on failure
        """
        await settle(self.config.candidate_delay_ms)

        fresh = await screenshot_provider()
        if fresh is None:
            logger.error("KeyboardAgent: screenshot capture failed")
            return None

        keyboard = self.scanner.find_keyboard(fresh)
        if keyboard is None:
            logger.error("KeyboardAgent: keyboard disappeared while typing")
            return None
        surface = _Surface(keyboard, fresh.size)

        candidates = self.scanner.find_candidates(fresh, keyboard)
        expected = self.renderer.render(token.source)
        choice = None
        if expected is not None and candidates:
            choice = select_candidate(expected, candidates, self.threshold)

        if choice is not None:
            candidate, score = choice
            logger.debug(
                f"KeyboardAgent: '{token.source}' matched candidate with score {score:.3f}"
            )
            x, y = candidate.center_pixel(surface.size)
            if not await self.device.perform_tap(x, y):
                logger.error("KeyboardAgent: tap on candidate failed")
                return None
            await settle(self.config.key_delay_ms)
            return surface

        if not self.config.allow_degraded_commit:
            logger.error(
                f"KeyboardAgent: no candidate for '{token.source}' "
                f"among {len(candidates)} above threshold {self.threshold}"
            )
            return None

        # Degraded mode: space commits the input method's default candidate
        logger.warning(
            f"KeyboardAgent: no matching candidate for '{token.source}', "
            "committing the default candidate"
        )
        if not await self._tap(SPACE, surface):
            return None
        return surface
