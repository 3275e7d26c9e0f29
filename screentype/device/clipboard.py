"""Clipboard backed by pyperclip.

With clipboard sharing (for example scrcpy) the host clipboard reaches the
device, which is what the paste tier relies on.
"""

import asyncio

import pyperclip
from loguru import logger


class PyperclipClipboard:
    """Clipboard implementation using pyperclip."""

    async def set_clipboard_text(self, text: str) -> None:
        """Copy text to the clipboard.

        Raises:
            pyperclip.PyperclipException: If no clipboard mechanism is available
        """
        await asyncio.to_thread(pyperclip.copy, text)
        logger.debug(f"PyperclipClipboard: copied {len(text)} characters")
