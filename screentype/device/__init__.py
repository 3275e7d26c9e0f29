"""Device adapters for driving a target screen.

This module provides a factory function to create the gesture device,
accessibility tree and clipboard used by the text input engine.
"""

from typing import Tuple

from loguru import logger

from screentype.device.accessibility import (
    AccessibilityNode,
    find_node,
    parse_ui_dump,
)
from screentype.device.adb_backend import AdbAccessibility, AdbDevice, AdbNotFoundError
from screentype.device.base import AccessibilityTree, Clipboard, GestureDevice
from screentype.device.clipboard import PyperclipClipboard
from screentype.settings import DeviceConfig

__all__ = [
    "AccessibilityNode",
    "AccessibilityTree",
    "AdbAccessibility",
    "AdbDevice",
    "AdbNotFoundError",
    "Clipboard",
    "GestureDevice",
    "PyperclipClipboard",
    "create_device",
    "find_node",
    "parse_ui_dump",
]


def create_device(
    config: DeviceConfig,
) -> Tuple[AdbDevice, AdbAccessibility, PyperclipClipboard]:
    """Create the adapters for the configured device.

    Args:
        config: Device configuration

    Returns:
        Tuple of (gesture device, accessibility tree, clipboard)

    Raises:
        AdbNotFoundError: If adb is not installed
    """
    device = AdbDevice(
        adb_path=config.adb_path,
        serial=config.serial,
        command_timeout_s=config.command_timeout_s,
    )
    logger.info(f"Using adb device backend (serial: {config.serial or 'default'})")
    logger.info(
        "Paste tier copies to the host clipboard; the device only sees it "
        "with clipboard sharing such as scrcpy"
    )
    return device, AdbAccessibility(device), PyperclipClipboard()
