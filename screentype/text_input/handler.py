"""Tiered text input.

TextInputHandler enters text through increasingly expensive strategies:

1. DIRECT_SET: replace the field's text through the accessibility tree
2. CLIPBOARD_PASTE: copy the text to the clipboard and paste it
3. VISUAL_SIMULATION: tap it out on the visible soft keyboard

Each accessibility tier is verified by reading the field back. Tiers run in
order, each at most once per call, and there is no backtracking.
"""

import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

from loguru import logger
from PIL import Image

from screentype.device.base import AccessibilityTree, Clipboard, GestureDevice
from screentype.keyboard.agent import KeyboardAgent
from screentype.settings import TextInputConfig
from screentype.telemetry import set_span_attributes, start_span
from screentype.text_input.verification import VerificationResult, classify
from screentype.utils import settle


class InputTier(Enum):
    """Text entry strategies, in the order they are tried."""

    DIRECT_SET = "direct_set"
    CLIPBOARD_PASTE = "clipboard_paste"
    VISUAL_SIMULATION = "visual_simulation"


@dataclass
class EditableTarget:
    """An editable accessibility node and its length limit, if any."""

    node: Any
    max_length: Optional[int] = None

    def truncate(self, text: str) -> str:
        if self.max_length is not None and self.max_length < len(text):
            return text[: self.max_length]
        return text


class TextInputHandler:
    """Enters text into the target app with verification and fallbacks.

    One handler may serve many calls, but only one input_text call may run
    against a given surface at a time; concurrent calls are not guarded.
    """

    def __init__(
        self,
        device: GestureDevice,
        accessibility: AccessibilityTree,
        clipboard: Clipboard,
        agent: Optional[KeyboardAgent] = None,
        config: Optional[TextInputConfig] = None,
        screenshot_timeout_ms: int = 2000,
    ):
        """Initialize the handler.

        Args:
            device: Gesture and screenshot primitives
            accessibility: Accessibility tree of the target app
            clipboard: System clipboard used by the paste tier
            agent: Visual keyboard agent; one is built on device if omitted
            config: Delays and tier selection
            screenshot_timeout_ms: Screenshots slower than this count as failed
        """
        self.device = device
        self.accessibility = accessibility
        self.clipboard = clipboard
        self.agent = agent or KeyboardAgent(device)
        self.config = config or TextInputConfig()
        self.screenshot_timeout_ms = screenshot_timeout_ms

    async def input_text(self, text: str) -> bool:
        """Enter text into the focused (or first) editable field.

        Returns:
            True if any tier succeeded. A partial match counts as success.
        """
        if not text:
            logger.warning("Empty text provided")
            return False

        logger.debug(f"Inputting text: '{text}' ({len(text)} chars)")

        with start_span("text_input", **{"text.length": len(text)}):
            success = await self._input_text(text)
            set_span_attributes(**{"text_input.success": success})
            return success

    async def _input_text(self, text: str) -> bool:
        target = await self._acquire_target()
        if target is not None:
            truncated = target.truncate(text)
            if len(truncated) < len(text):
                logger.debug(f"Text truncated to max length {target.max_length}")
            text = truncated

        if target is None:
            logger.info("No editable target, typing on the soft keyboard")
        elif self.config.force_visual:
            logger.info("Visual input forced by configuration")
        else:
            result = await self._run_tier(InputTier.DIRECT_SET, target, text)
            if result.is_success:
                logger.info(f"Text input successful via {InputTier.DIRECT_SET.value}")
                return True

            logger.warning("Set-text verification failed, falling back to clipboard paste")
            result = await self._run_tier(InputTier.CLIPBOARD_PASTE, target, text)
            if result.is_success:
                logger.info(f"Text input successful via {InputTier.CLIPBOARD_PASTE.value}")
                return True

            logger.warning("Clipboard paste failed, falling back to the soft keyboard")

        with start_span(f"text_input.{InputTier.VISUAL_SIMULATION.value}"):
            success = await self._visual_simulation(text)
            set_span_attributes(**{"tier.success": success})

        if success:
            logger.info(f"Text input successful via {InputTier.VISUAL_SIMULATION.value}")
        else:
            logger.error("All text input methods failed")
        return success

    async def _run_tier(
        self, tier: InputTier, target: EditableTarget, text: str
    ) -> VerificationResult:
        with start_span(f"text_input.{tier.value}"):
            if tier is InputTier.DIRECT_SET:
                result = await self._direct_set(target, text)
            else:
                result = await self._clipboard_paste(target, text)
            set_span_attributes(**{"tier.result": result.value})

        if result is VerificationResult.PARTIAL_MATCH:
            logger.info(f"{tier.value}: field holds only part of the text")
        return result

    async def _acquire_target(self) -> Optional[EditableTarget]:
        """Find an editable node, focusing the first one if none has focus."""
        node = None
        try:
            node = await self.accessibility.find_focused_editable()
        except Exception as e:
            logger.warning(f"Failed to query focused node: {e}")

        if node is not None:
            logger.debug("Found focused editable node")
        else:
            logger.debug("No focused editable node, searching for editable node...")
            try:
                node = await self.accessibility.find_first_editable()
            except Exception as e:
                logger.warning(f"Failed to search for editable node: {e}")
                return None

            if node is None:
                logger.debug("No editable node found")
                return None

            try:
                focused = await self.accessibility.focus(node)
            except Exception as e:
                logger.warning(f"Focus action raised: {e}")
                focused = False

            if not focused:
                logger.warning("Found editable node but failed to focus it")
                return None
            await settle(self.config.focus_delay_ms)

        max_length = None
        try:
            max_length = await self.accessibility.max_length(node)
        except Exception as e:
            logger.warning(f"Failed to get max length: {e}")

        if max_length is not None and max_length <= 0:
            max_length = None
        return EditableTarget(node, max_length)

    async def _verify(self, target: EditableTarget, expected: str) -> VerificationResult:
        await settle(self.config.verify_delay_ms)
        try:
            actual = await self.accessibility.read_text(target.node)
        except Exception as e:
            logger.warning(f"Failed to read back field content: {e}")
            return VerificationResult.NO_MATCH

        if actual is None:
            logger.warning("Failed to get text from node")
            return VerificationResult.NO_MATCH
        return classify(expected, actual)

    async def _direct_set(self, target: EditableTarget, text: str) -> VerificationResult:
        # Set-text replaces all existing content, no need to clear first
        try:
            accepted = await self.accessibility.set_text(target.node, text)
        except Exception as e:
            logger.warning(f"Set-text action raised: {e}")
            return VerificationResult.NO_MATCH

        if not accepted:
            logger.warning("Set-text action was rejected")
            return VerificationResult.NO_MATCH
        return await self._verify(target, text)

    async def _clipboard_paste(
        self, target: EditableTarget, text: str
    ) -> VerificationResult:
        # Set-text failed, so the field may still hold old content
        try:
            cleared = await self.accessibility.set_text(target.node, "")
        except Exception as e:
            logger.debug(f"Clearing field before paste raised: {e}")
            cleared = False
        if not cleared:
            logger.warning("Could not clear field before paste, old content may remain")
        await settle(self.config.clear_delay_ms)

        try:
            await self.clipboard.set_clipboard_text(text)
        except Exception as e:
            logger.error(f"Clipboard not available: {e}")
            return VerificationResult.NO_MATCH

        try:
            pasted = await self.accessibility.paste(target.node)
        except Exception as e:
            logger.warning(f"Paste action raised: {e}")
            return VerificationResult.NO_MATCH

        if not pasted:
            logger.warning("Paste action was rejected")
            return VerificationResult.NO_MATCH
        return await self._verify(target, text)

    async def capture_screenshot(self) -> Optional[Image.Image]:
        """Take a screenshot, treating a timeout or error as no screenshot."""
        timeout_s = self.screenshot_timeout_ms / 1000
        try:
            return await asyncio.wait_for(
                self.device.take_screenshot(self.screenshot_timeout_ms), timeout_s
            )
        except asyncio.TimeoutError:
            logger.error(f"Screenshot timed out after {self.screenshot_timeout_ms}ms")
        except Exception as e:
            logger.error(f"Screenshot failed: {e}")
        return None

    async def _visual_simulation(self, text: str) -> bool:
        try:
            await self.device.bring_to_foreground()
        except Exception as e:
            logger.warning(f"Failed to bring automation surface forward: {e}")

        screenshot = await self.capture_screenshot()
        if screenshot is None:
            return False

        try:
            return await self.agent.type(text, screenshot, self.capture_screenshot)
        except Exception as e:
            logger.exception(f"Visual typing failed: {e}")
            return False
