from pathlib import Path
from typing import Any, Dict, Optional

import toml
from loguru import logger
from pydantic import BaseModel
from pydantic_settings import BaseSettings


class TelemetryConfig(BaseModel):
    """Telemetry configuration for OpenTelemetry tracing."""

    enabled: bool = False
    service_name: str = "screentype"
    export_to_file: bool = True
    trace_file: Optional[str] = None
    otlp_endpoint: Optional[str] = None


class TextInputConfig(BaseModel):
    """Settle delays and tier selection for the text input handler."""

    # Skip the accessibility tiers and always type on the visible keyboard
    force_visual: bool = False
    focus_delay_ms: int = 100
    verify_delay_ms: int = 150
    clear_delay_ms: int = 50


class KeyboardConfig(BaseModel):
    """Visual keyboard agent configuration."""

    key_delay_ms: int = 80
    candidate_delay_ms: int = 300
    match_threshold: Optional[float] = None
    allow_degraded_commit: bool = True
    # Key tapped after a run of latin letters, for input methods that buffer them
    passthrough_commit_key: Optional[str] = None
    # Skip characters with no key instead of failing the whole call
    skip_unmapped_keys: bool = False
    # TrueType/OpenType font able to render the target script
    glyph_font: Optional[str] = None
    glyph_size: int = 48


class DeviceConfig(BaseModel):
    """ADB device configuration."""

    adb_path: str = "adb"
    serial: Optional[str] = None
    screenshot_timeout_ms: int = 2000
    command_timeout_s: float = 10.0


class Settings(BaseSettings):
    """Main application settings."""

    text_input: TextInputConfig = TextInputConfig()
    keyboard: KeyboardConfig = KeyboardConfig()
    device: DeviceConfig = DeviceConfig()

    # Telemetry configuration (disabled by default)
    telemetry: TelemetryConfig = TelemetryConfig()

    # Path to log file (uses platform defaults if not specified)
    log_file: Optional[Path] = None


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Deep merge two dictionaries, with override taking precedence."""
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def _validate_keyboard_config(data: Dict[str, Any]) -> None:
    """Warn about keys in the [keyboard] table that no setting consumes."""
    keyboard = data.get("keyboard")
    if not isinstance(keyboard, dict):
        return

    unknown = set(keyboard.keys()) - set(KeyboardConfig.model_fields.keys())
    if unknown:
        logger.warning(
            f"Unknown keyboard settings ignored: {', '.join(sorted(unknown))}"
        )


def load_settings(settings_file: Path | None = None) -> Settings:
    """Loads settings from a TOML file, falling back to environment variables.

    If no settings_file is provided, searches in order:
    1. ./screentype.toml (current directory)
    2. ~/.config/screentype/settings.toml (user config)
    3. /etc/screentype/settings.toml (system-wide)
    """
    if settings_file is None:
        default_locations = [
            Path("screentype.toml"),
            Path.home() / ".config" / "screentype" / "settings.toml",
            Path("/etc/screentype/settings.toml"),
        ]

        for location in default_locations:
            if location.is_file():
                settings_file = location
                break

    if settings_file and settings_file.is_file():
        data = toml.load(settings_file)
        _validate_keyboard_config(data)

        merged = _deep_merge(Settings().model_dump(), data)
        settings = Settings(**merged)
        logger.debug(f"Loaded settings from {settings_file}")
    else:
        settings = Settings()

    return settings
