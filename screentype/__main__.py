import argparse
import asyncio
import itertools
import sys
from pathlib import Path

from loguru import logger

from screentype.device import AdbNotFoundError, create_device
from screentype.keyboard import GlyphRenderer, KeyboardAgent, KeyboardScanner
from screentype.settings import Settings, load_settings
from screentype.telemetry import initialize_telemetry, shutdown_telemetry
from screentype.text_input import TextInputHandler
from screentype.utils import get_app_data_dir


def get_log_file_path() -> Path:
    """Get the default path to the log file in the user's config directory."""
    config_dir = get_app_data_dir()
    config_dir.mkdir(parents=True, exist_ok=True)
    return config_dir / "screentype.log"


def configure_logging(log_file: Path | None = None) -> Path:
    """Configure loguru to log to both stderr and a rotating file.

    Args:
        log_file: Optional custom path to log file. If None, uses platform defaults.

    Returns:
        The path to the log file being used.
    """
    if log_file is None:
        log_file = get_log_file_path()
    else:
        log_file = Path(log_file).expanduser().resolve()
        log_file.parent.mkdir(parents=True, exist_ok=True)

    # Keep the default stderr handler for console output
    logger.add(
        log_file,
        rotation="10 MB",
        retention=3,
        compression="zip",
        level="DEBUG",
        format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} - {message}",
        backtrace=True,
        diagnose=True,
    )

    logger.info(f"Logging to file: {log_file}")
    return log_file


def build_handler(settings: Settings, debug_dir: Path | None = None) -> TextInputHandler:
    """Wire the device adapters, keyboard agent and handler together.

    Raises:
        AdbNotFoundError: If adb is not installed
    """
    device, accessibility, clipboard = create_device(settings.device)

    debug_hook = None
    if debug_dir is not None:
        debug_dir.mkdir(parents=True, exist_ok=True)
        counter = itertools.count()

        def save_debug_screenshot(image, label):
            path = debug_dir / f"{next(counter):04d}_{label.split(':')[0]}.png"
            image.save(path)
            logger.debug(f"Saved debug screenshot {path} ({label})")

        debug_hook = save_debug_screenshot

    agent = KeyboardAgent(
        device,
        scanner=KeyboardScanner(debug_hook=debug_hook),
        renderer=GlyphRenderer(settings.keyboard.glyph_font, settings.keyboard.glyph_size),
        config=settings.keyboard,
    )
    return TextInputHandler(
        device,
        accessibility,
        clipboard,
        agent=agent,
        config=settings.text_input,
        screenshot_timeout_ms=settings.device.screenshot_timeout_ms,
    )


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="screentype",
        description="Enter text into the focused field of an Android device.",
    )
    parser.add_argument("text", help="Text to enter")
    parser.add_argument("--config", type=Path, help="Path to a settings TOML file")
    parser.add_argument("--serial", help="ADB serial of the target device")
    parser.add_argument(
        "--visual",
        action="store_true",
        help="Skip the accessibility tiers and type on the soft keyboard",
    )
    parser.add_argument("--log-file", type=Path, help="Path to the log file")
    parser.add_argument(
        "--debug-screenshots",
        type=Path,
        help="Directory where every scanned screenshot is saved",
    )
    args = parser.parse_args(argv)

    settings = load_settings(args.config)
    if args.serial:
        settings.device.serial = args.serial
    if args.visual:
        settings.text_input.force_visual = True

    configure_logging(args.log_file or settings.log_file)
    initialize_telemetry(settings.telemetry)

    try:
        handler = build_handler(settings, args.debug_screenshots)
        success = asyncio.run(handler.input_text(args.text))
    except AdbNotFoundError as e:
        logger.error(str(e))
        return 1
    finally:
        shutdown_telemetry()

    return 0 if success else 1


if __name__ == "__main__":
    sys.exit(main())
