import asyncio
import os
import sys
from pathlib import Path


def get_app_data_dir() -> Path:
    """Get the platform-specific application data directory for screentype.

    Returns:
        Path to the screentype application data directory:
        - Windows: %APPDATA%/screentype
        - macOS: ~/Library/Application Support/screentype
        - Linux: $XDG_CONFIG_HOME/screentype or ~/.config/screentype
    """
    if sys.platform == "win32":
        base = Path(os.environ.get("APPDATA", Path.home() / "AppData" / "Roaming"))
    elif sys.platform == "darwin":
        base = Path.home() / "Library" / "Application Support"
    else:  # Linux and other Unix-like systems
        base = Path(os.environ.get("XDG_CONFIG_HOME", Path.home() / ".config"))

    return base / "screentype"


async def settle(delay_ms: int) -> None:
    """Wait for the target UI to catch up after an action with visible effects."""
    if delay_ms > 0:
        await asyncio.sleep(delay_ms / 1000)
