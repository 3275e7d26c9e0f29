"""Protocols for the collaborators the text input engine drives.

The engine never talks to a device directly. It consumes a gesture device
(taps, swipes, screenshots), an accessibility tree (editable nodes and edit
actions) and a clipboard, all of which may be backed by any platform.
"""

from typing import Any, Optional, Protocol, runtime_checkable

from PIL import Image


@runtime_checkable
class GestureDevice(Protocol):
    """Protocol for gesture synthesis and screen capture.

    Every method is awaitable and reports success as a bool. There is no
    partial-gesture signaling.
    """

    async def perform_tap(self, x: float, y: float) -> bool: ...

    async def perform_swipe(
        self, x0: float, y0: float, x1: float, y1: float, duration_ms: int = 500
    ) -> bool: ...

    async def perform_long_press(
        self, x: float, y: float, duration_ms: int = 1000
    ) -> bool: ...

    async def take_screenshot(self, timeout_ms: int = 2000) -> Optional[Image.Image]:
        """Capture the screen.

        Returns:
            The screenshot, or None on timeout or failure
        """
        ...

    async def bring_to_foreground(self) -> None:
        """Make sure the automation surface does not cover the target app."""
        ...


@runtime_checkable
class AccessibilityTree(Protocol):
    """Protocol for querying and editing the accessibility tree.

    Nodes are opaque handles owned by the implementation.
    """

    async def find_focused_editable(self) -> Optional[Any]: ...

    async def find_first_editable(self) -> Optional[Any]: ...

    async def focus(self, node: Any) -> bool: ...

    async def set_text(self, node: Any, text: str) -> bool:
        """Replace all text of the node."""
        ...

    async def paste(self, node: Any) -> bool: ...

    async def read_text(self, node: Any) -> Optional[str]: ...

    async def max_length(self, node: Any) -> Optional[int]: ...


@runtime_checkable
class Clipboard(Protocol):
    """Protocol for the system clipboard."""

    async def set_clipboard_text(self, text: str) -> None: ...
