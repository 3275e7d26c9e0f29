"""ADB device backend for Android targets.

This backend drives a device through the adb CLI: gestures through
``adb shell input``, screenshots through ``adb exec-out screencap -p`` and the
accessibility tree through ``uiautomator dump``.
"""

import asyncio
import io
import shlex
import shutil
import subprocess
from typing import List, Optional

from loguru import logger
from PIL import Image, UnidentifiedImageError

from screentype.device.accessibility import (
    AccessibilityNode,
    find_node,
    parse_ui_dump,
)

KEYCODE_DEL = 67
KEYCODE_MOVE_END = 123
KEYCODE_PASTE = 279


class AdbNotFoundError(RuntimeError):
    """Raised when the adb binary is required but not installed."""

    pass


class AdbDevice:
    """Gesture device backed by adb.

    Blocking adb invocations run on a worker thread so the event loop keeps
    serving other tasks while a gesture is in flight.
    """

    def __init__(
        self,
        adb_path: str = "adb",
        serial: Optional[str] = None,
        command_timeout_s: float = 10.0,
    ):
        """Initialize the adb backend.

        Args:
            adb_path: adb executable name or path
            serial: Device serial passed as ``-s``; None for the only device
            command_timeout_s: Timeout for gesture and dump commands

        Raises:
            AdbNotFoundError: If adb is not installed
        """
        self._adb_path = shutil.which(adb_path)
        if self._adb_path is None:
            raise AdbNotFoundError(
                "adb is required to drive an Android device.\n\n"
                "Install the Android platform tools:\n"
                "  - Arch Linux: sudo pacman -S android-tools\n"
                "  - Debian/Ubuntu: sudo apt install adb\n"
                "  - Fedora: sudo dnf install android-tools\n"
                "  - Or download: https://developer.android.com/tools/releases/platform-tools"
            )
        self.serial = serial
        self.command_timeout_s = command_timeout_s
        logger.debug(f"AdbDevice: using adb at {self._adb_path} (serial={serial})")

    def _command(self, *args: str) -> List[str]:
        cmd = [self._adb_path]
        if self.serial:
            cmd.extend(["-s", self.serial])
        cmd.extend(args)
        return cmd

    async def _run(
        self, *args: str, timeout: Optional[float] = None
    ) -> Optional[subprocess.CompletedProcess]:
        """Run an adb command, returning None if it could not complete."""
        cmd = self._command(*args)
        try:
            return await asyncio.to_thread(
                subprocess.run,
                cmd,
                capture_output=True,
                timeout=timeout or self.command_timeout_s,
            )
        except subprocess.TimeoutExpired:
            logger.warning(f"AdbDevice: command timed out: {' '.join(args)}")
        except OSError as e:
            logger.warning(f"AdbDevice: failed to run adb: {e}")
        return None

    async def shell(self, *args: str) -> bool:
        """Run ``adb shell`` with the given arguments.

        Returns:
            True if the command exited successfully
        """
        result = await self._run("shell", *args)
        if result is None:
            return False
        if result.returncode != 0:
            stderr = result.stderr.decode(errors="ignore") if result.stderr else ""
            logger.warning(
                f"AdbDevice: 'shell {' '.join(args)}' failed with exit code "
                f"{result.returncode}: {stderr}"
            )
            return False
        return True

    async def perform_tap(self, x: float, y: float) -> bool:
        logger.debug(f"AdbDevice: tap at ({x:.0f}, {y:.0f})")
        return await self.shell("input", "tap", str(int(x)), str(int(y)))

    async def perform_swipe(
        self, x0: float, y0: float, x1: float, y1: float, duration_ms: int = 500
    ) -> bool:
        logger.debug(
            f"AdbDevice: swipe ({x0:.0f}, {y0:.0f}) -> ({x1:.0f}, {y1:.0f})"
        )
        return await self.shell(
            "input",
            "swipe",
            str(int(x0)),
            str(int(y0)),
            str(int(x1)),
            str(int(y1)),
            str(duration_ms),
        )

    async def perform_long_press(
        self, x: float, y: float, duration_ms: int = 1000
    ) -> bool:
        # A long press is a swipe that does not move
        return await self.perform_swipe(x, y, x, y, duration_ms)

    async def press_keys(self, *keycodes: int) -> bool:
        return await self.shell("input", "keyevent", *(str(k) for k in keycodes))

    async def take_screenshot(self, timeout_ms: int = 2000) -> Optional[Image.Image]:
        result = await self._run("exec-out", "screencap", "-p", timeout=timeout_ms / 1000)
        if result is None or result.returncode != 0 or not result.stdout:
            logger.warning("AdbDevice: screenshot capture failed")
            return None

        try:
            return Image.open(io.BytesIO(result.stdout)).convert("RGB")
        except (UnidentifiedImageError, OSError) as e:
            logger.warning(f"AdbDevice: could not decode screenshot: {e}")
            return None

    async def bring_to_foreground(self) -> None:
        # adb draws nothing on screen, so there is no overlay to move away
        logger.debug("AdbDevice: no automation surface to bring forward")

    async def dump_ui(self) -> Optional[str]:
        """Dump the current window hierarchy as XML."""
        result = await self._run("exec-out", "uiautomator", "dump", "/dev/tty")
        if result is None or result.returncode != 0:
            return None

        output = result.stdout.decode("utf-8", errors="ignore")
        start = output.find("<?xml")
        end = output.rfind(">")
        if start < 0 or end < start:
            logger.warning("AdbDevice: UI dump contained no XML document")
            return None
        return output[start : end + 1]


class AdbAccessibility:
    """Accessibility tree backed by ``uiautomator dump``.

    Nodes are snapshots; read-back re-dumps the window and finds the node
    again by its bounds.
    """

    def __init__(self, device: AdbDevice):
        self.device = device

    async def _root(self) -> Optional[AccessibilityNode]:
        xml_text = await self.device.dump_ui()
        if xml_text is None:
            return None
        return parse_ui_dump(xml_text)

    async def find_focused_editable(self) -> Optional[AccessibilityNode]:
        root = await self._root()
        return find_node(root, lambda n: n.editable and n.focused)

    async def find_first_editable(self) -> Optional[AccessibilityNode]:
        root = await self._root()
        return find_node(root, lambda n: n.editable)

    async def focus(self, node: AccessibilityNode) -> bool:
        if node.focused:
            return True
        x, y = node.center
        return await self.device.perform_tap(x, y)

    async def set_text(self, node: AccessibilityNode, text: str) -> bool:
        # `input text` only injects ASCII reliably
        if not text.isascii():
            logger.debug("AdbAccessibility: set_text rejected for non-ASCII text")
            return False

        if not await self.focus(node):
            return False

        current = await self.read_text(node)
        if current is None:
            logger.warning("AdbAccessibility: field not found again, cannot clear it")
            return False
        if current:
            deletes = [KEYCODE_DEL] * len(current)
            if not await self.device.press_keys(KEYCODE_MOVE_END, *deletes):
                return False

        if not text:
            return True
        escaped = text.replace(" ", "%s")
        return await self.device.shell("input", "text", shlex.quote(escaped))

    async def paste(self, node: AccessibilityNode) -> bool:
        if not await self.focus(node):
            return False
        return await self.device.press_keys(KEYCODE_PASTE)

    async def read_text(self, node: AccessibilityNode) -> Optional[str]:
        root = await self._root()
        fresh = find_node(root, lambda n: n.editable and n.bounds == node.bounds)
        if fresh is None and node.resource_id:
            # The field may have resized since the node was captured
            fresh = find_node(
                root, lambda n: n.editable and n.resource_id == node.resource_id
            )
        if fresh is None:
            return None
        return fresh.text

    async def max_length(self, node: AccessibilityNode) -> Optional[int]:
        return node.max_text_length
