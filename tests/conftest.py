"""Pytest configuration and fixtures."""

import asyncio
from io import StringIO
from typing import Callable, Iterable, List, Optional, Tuple

import pytest
from loguru import logger
from PIL import Image, ImageDraw

SCREEN_SIZE = (400, 800)
PANEL_TOP = 424
KEYBOARD_TOP = 480
ROW_PITCH = 80
KEYS_PER_ROW = (10, 9, 7, 5)
PANEL_COLOR = (40, 40, 40)
KEY_COLOR = (200, 200, 200)
CANDIDATE_COLOR = (230, 230, 230)
CANDIDATE_Y = 436
CANDIDATE_SIZE = 32


def draw_shape(draw: ImageDraw.ImageDraw, shape: str, x: int, y: int, size: int, fill) -> None:
    """Draw one of a few simple glyph-like shapes with its top-left at (x, y)."""
    stroke = max(2, size // 8)
    middle = (size - stroke) // 2
    if shape == "box":
        draw.rectangle([x, y, x + size - 1, y + size - 1], outline=fill, width=stroke)
    elif shape == "cross":
        draw.rectangle([x + middle, y, x + middle + stroke - 1, y + size - 1], fill=fill)
        draw.rectangle([x, y + middle, x + size - 1, y + middle + stroke - 1], fill=fill)
    elif shape == "bar":
        draw.rectangle(
            [x, y + size // 2 - stroke, x + size - 1, y + size // 2 + stroke - 1],
            fill=fill,
        )
    else:
        raise ValueError(f"Unknown shape: {shape}")


def build_keyboard_screen(
    candidates: Iterable[Tuple[int, str]] = (),
) -> Image.Image:
    """Render a phone screen with a text field and a soft keyboard.

    Args:
        candidates: (x, shape) pairs drawn in the candidate bar
    """
    image = Image.new("RGB", SCREEN_SIZE, (255, 255, 255))
    draw = ImageDraw.Draw(image)
    draw.rectangle([20, 100, 380, 160], outline=(0, 0, 0), width=2)
    draw.rectangle([0, PANEL_TOP, SCREEN_SIZE[0] - 1, SCREEN_SIZE[1] - 1], fill=PANEL_COLOR)

    key_width = SCREEN_SIZE[0] // 10
    for row, count in enumerate(KEYS_PER_ROW):
        top = KEYBOARD_TOP + row * ROW_PITCH + 8
        offset = (SCREEN_SIZE[0] - count * key_width) // 2
        for column in range(count):
            left = offset + column * key_width + 4
            draw.rectangle([left, top, left + key_width - 8, top + 64], fill=KEY_COLOR)

    for x, shape in candidates:
        draw_shape(draw, shape, x, CANDIDATE_Y, CANDIDATE_SIZE, CANDIDATE_COLOR)
    return image


class ShapeRenderer:
    """Glyph renderer that draws a shape per character instead of a font."""

    def __init__(self, shapes: dict, size: int = 64):
        self.shapes = shapes
        self.size = size
        self.rendered: List[str] = []

    def render(self, text: str) -> Optional[Image.Image]:
        self.rendered.append(text)
        shape = self.shapes.get(text)
        if shape is None:
            return None
        image = Image.new("L", (self.size + 8, self.size + 8), 255)
        draw_shape(ImageDraw.Draw(image), shape, 4, 4, self.size, 0)
        return image


class FakeDevice:
    """Gesture device that records taps and serves queued screenshots."""

    def __init__(self, screenshots: Iterable[Optional[Image.Image]] = ()):
        self.taps: List[Tuple[float, float]] = []
        self.screenshots = list(screenshots)
        self.screenshot_requests = 0
        self.foreground_calls = 0
        self.tap_result = True
        self.screenshot_delay_s = 0.0
        # Taps after this many never complete
        self.hang_after_taps: Optional[int] = None

    async def perform_tap(self, x: float, y: float) -> bool:
        self.taps.append((x, y))
        if self.hang_after_taps is not None and len(self.taps) > self.hang_after_taps:
            await asyncio.Event().wait()
        return self.tap_result

    async def perform_swipe(self, x0, y0, x1, y1, duration_ms=500) -> bool:
        return True

    async def perform_long_press(self, x, y, duration_ms=1000) -> bool:
        return True

    async def take_screenshot(self, timeout_ms: int = 2000) -> Optional[Image.Image]:
        self.screenshot_requests += 1
        if self.screenshot_delay_s:
            await asyncio.sleep(self.screenshot_delay_s)
        if not self.screenshots:
            return None
        return self.screenshots.pop(0)

    async def bring_to_foreground(self) -> None:
        self.foreground_calls += 1


class FakeField:
    """Editable field state behind FakeAccessibility."""

    def __init__(self, text: str = "", focused: bool = True, max_length: Optional[int] = None):
        self.text = text
        self.focused = focused
        self.max_length = max_length


class FakeClipboard:
    def __init__(self):
        self.text: Optional[str] = None
        self.error: Optional[Exception] = None

    async def set_clipboard_text(self, text: str) -> None:
        if self.error is not None:
            raise self.error
        self.text = text


class FakeAccessibility:
    """Accessibility tree holding at most one editable field.

    set_text_effect maps the requested text to the field's new content, or
    returns None to reject the action. paste_effect does the same for the
    clipboard content. Clearing (set_text with "") succeeds unless
    clear_result is False. Methods named in raise_on raise RuntimeError.
    """

    def __init__(self, field: Optional[FakeField], clipboard: FakeClipboard):
        self.field = field
        self.clipboard = clipboard
        self.actions: List[tuple] = []
        self.focus_result = True
        self.clear_result = True
        self.set_text_effect: Callable[[str], Optional[str]] = lambda text: text
        self.paste_effect: Callable[[str], Optional[str]] = lambda text: text
        self.raise_on: set = set()

    def _check(self, name: str) -> None:
        if name in self.raise_on:
            raise RuntimeError(f"{name} unavailable")

    async def find_focused_editable(self):
        self._check("find_focused_editable")
        if self.field is not None and self.field.focused:
            return self.field
        return None

    async def find_first_editable(self):
        self._check("find_first_editable")
        return self.field

    async def focus(self, node) -> bool:
        self._check("focus")
        self.actions.append(("focus",))
        if self.focus_result:
            node.focused = True
        return self.focus_result

    async def set_text(self, node, text: str) -> bool:
        self._check("set_text")
        self.actions.append(("set_text", text))
        if not text:
            if self.clear_result:
                node.text = ""
            return self.clear_result
        new_text = self.set_text_effect(text)
        if new_text is None:
            return False
        node.text = new_text
        return True

    async def paste(self, node) -> bool:
        self._check("paste")
        self.actions.append(("paste", self.clipboard.text))
        new_text = self.paste_effect(self.clipboard.text)
        if new_text is None:
            return False
        node.text = new_text
        return True

    async def read_text(self, node) -> Optional[str]:
        self._check("read_text")
        return node.text

    async def max_length(self, node) -> Optional[int]:
        self._check("max_length")
        return node.max_length


class RecordingAgent:
    """Keyboard agent stand-in that records what it was asked to type."""

    def __init__(self, result: bool = True):
        self.result = result
        self.calls: List[str] = []

    async def type(self, text, screenshot, screenshot_provider) -> bool:
        self.calls.append(text)
        return self.result


@pytest.fixture
def captured_logs():
    """Fixture to capture loguru logs."""
    log_stream = StringIO()
    handler_id = logger.add(log_stream, format="{message}")
    yield log_stream
    logger.remove(handler_id)


@pytest.fixture
def keyboard_screen():
    """Factory for synthetic screenshots showing a soft keyboard."""
    return build_keyboard_screen


@pytest.fixture
def blank_screen():
    return Image.new("RGB", SCREEN_SIZE, (255, 255, 255))


@pytest.fixture
def shape_renderer():
    """Factory for renderers drawing shapes for given characters."""
    return ShapeRenderer


@pytest.fixture
def device():
    return FakeDevice()


@pytest.fixture
def field():
    return FakeField()


@pytest.fixture
def clipboard():
    return FakeClipboard()


@pytest.fixture
def accessibility(field, clipboard):
    return FakeAccessibility(field, clipboard)


@pytest.fixture
def recording_agent():
    return RecordingAgent()


@pytest.fixture
def no_target(clipboard):
    """Accessibility tree with no editable node."""
    return FakeAccessibility(None, clipboard)
