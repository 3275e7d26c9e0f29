"""Unit tests for keyboard and candidate detection."""

import pytest
from PIL import Image

from screentype.keyboard.layout import KeyboardRegion
from screentype.keyboard.scanner import KeyboardScanner


class TestFindKeyboard:
    """Tests for KeyboardScanner.find_keyboard()."""

    def test_keyboard_found(self, keyboard_screen):
        region = KeyboardScanner().find_keyboard(keyboard_screen())

        assert region is not None
        assert region.left == 0.0
        assert region.width == 1.0
        assert region.top == pytest.approx(0.6, abs=0.01)
        assert region.bottom == pytest.approx(1.0, abs=0.01)

    def test_candidate_bar_is_not_a_key_row(self, keyboard_screen):
        screen = keyboard_screen(candidates=((40, "box"), (160, "cross"), (280, "bar")))
        plain = KeyboardScanner().find_keyboard(keyboard_screen())

        assert KeyboardScanner().find_keyboard(screen) == plain

    def test_blank_screen(self, blank_screen):
        assert KeyboardScanner().find_keyboard(blank_screen) is None

    def test_keyboard_at_top_is_rejected(self, keyboard_screen):
        flipped = keyboard_screen().transpose(Image.Transpose.FLIP_TOP_BOTTOM)
        assert KeyboardScanner().find_keyboard(flipped) is None

    def test_tiny_image(self):
        assert KeyboardScanner().find_keyboard(Image.new("RGB", (1, 1))) is None


class TestFindCandidates:
    """Tests for KeyboardScanner.find_candidates()."""

    def test_candidates_left_to_right(self, keyboard_screen):
        screen = keyboard_screen(candidates=((280, "bar"), (40, "box"), (160, "cross")))
        scanner = KeyboardScanner()
        keyboard = scanner.find_keyboard(screen)

        candidates = scanner.find_candidates(screen, keyboard)

        assert len(candidates) == 3
        lefts = [c.left for c in candidates]
        assert lefts == sorted(lefts)
        assert lefts[0] == pytest.approx(40 / 400)

    def test_candidate_center(self, keyboard_screen):
        screen = keyboard_screen(candidates=((160, "cross"),))
        scanner = KeyboardScanner()
        keyboard = scanner.find_keyboard(screen)

        (found,) = scanner.find_candidates(screen, keyboard)

        x, y = found.center_pixel(screen.size)
        assert x == pytest.approx(176)
        assert y == pytest.approx(452)
        assert found.glyph.mode == "L"

    def test_no_candidates(self, keyboard_screen):
        screen = keyboard_screen()
        scanner = KeyboardScanner()
        assert scanner.find_candidates(screen, scanner.find_keyboard(screen)) == []

    def test_keyboard_at_top_edge(self, keyboard_screen):
        region = KeyboardRegion(0.0, 0.0, 1.0, 0.4)
        assert KeyboardScanner().find_candidates(keyboard_screen(), region) == []


class TestDebugHook:
    """Tests for the scanner debug hook."""

    def test_labels(self, keyboard_screen, blank_screen):
        labels = []
        scanner = KeyboardScanner(debug_hook=lambda image, label: labels.append(label))
        screen = keyboard_screen(candidates=((160, "cross"),))

        scanner.find_keyboard(blank_screen)
        keyboard = scanner.find_keyboard(screen)
        scanner.find_candidates(screen, keyboard)

        assert labels[0] == "keyboard: none"
        assert labels[1].startswith("keyboard: 0.60")
        assert labels[2] == "candidates: 1"

    def test_failing_hook_is_ignored(self, keyboard_screen, captured_logs):
        def hook(image, label):
            raise RuntimeError("disk full")

        region = KeyboardScanner(debug_hook=hook).find_keyboard(keyboard_screen())

        assert region is not None
        assert "debug hook failed" in captured_logs.getvalue()
