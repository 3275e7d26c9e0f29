"""Unit tests for settings module."""

from pathlib import Path

import toml

from screentype.settings import (
    KeyboardConfig,
    Settings,
    _deep_merge,
    _validate_keyboard_config,
    load_settings,
)


class TestDefaults:
    """Tests for default configuration values."""

    def test_text_input_delays(self):
        settings = Settings()
        assert settings.text_input.focus_delay_ms == 100
        assert settings.text_input.verify_delay_ms == 150
        assert settings.text_input.clear_delay_ms == 50
        assert settings.text_input.force_visual is False

    def test_keyboard_defaults(self):
        config = KeyboardConfig()
        assert config.match_threshold is None
        assert config.allow_degraded_commit is True
        assert config.skip_unmapped_keys is False
        assert config.passthrough_commit_key is None

    def test_telemetry_disabled(self):
        assert Settings().telemetry.enabled is False

    def test_device_defaults(self):
        settings = Settings()
        assert settings.device.adb_path == "adb"
        assert settings.device.screenshot_timeout_ms == 2000


class TestLoadSettings:
    """Tests for loading settings from TOML files."""

    def test_file_overrides_are_deep_merged(self, tmp_path):
        settings_file = tmp_path / "settings.toml"
        settings_file.write_text(
            toml.dumps(
                {
                    "text_input": {"verify_delay_ms": 300},
                    "keyboard": {"glyph_font": "/fonts/NotoSansCJK.ttc"},
                    "device": {"serial": "emulator-5554"},
                }
            )
        )

        settings = load_settings(settings_file)

        assert settings.text_input.verify_delay_ms == 300
        # Siblings of overridden keys keep their defaults
        assert settings.text_input.clear_delay_ms == 50
        assert settings.keyboard.glyph_font == "/fonts/NotoSansCJK.ttc"
        assert settings.keyboard.key_delay_ms == 80
        assert settings.device.serial == "emulator-5554"

    def test_missing_file_uses_defaults(self, tmp_path):
        settings = load_settings(tmp_path / "missing.toml")
        assert settings == Settings()

    def test_log_file_path(self, tmp_path):
        settings_file = tmp_path / "settings.toml"
        settings_file.write_text('log_file = "/tmp/screentype-test.log"\n')

        settings = load_settings(settings_file)

        assert settings.log_file == Path("/tmp/screentype-test.log")

    def test_unknown_keyboard_keys_warn(self, tmp_path, captured_logs):
        settings_file = tmp_path / "settings.toml"
        settings_file.write_text(
            toml.dumps({"keyboard": {"key_delay_ms": 10, "swipe_typing": True}})
        )

        settings = load_settings(settings_file)

        assert settings.keyboard.key_delay_ms == 10
        assert "Unknown keyboard settings ignored: swipe_typing" in captured_logs.getvalue()


class TestHelpers:
    """Tests for the merge and validation helpers."""

    def test_deep_merge(self):
        base = {"a": {"x": 1, "y": 2}, "b": 1}
        merged = _deep_merge(base, {"a": {"y": 3}, "c": 4})

        assert merged == {"a": {"x": 1, "y": 3}, "b": 1, "c": 4}
        assert base == {"a": {"x": 1, "y": 2}, "b": 1}

    def test_known_keyboard_keys_do_not_warn(self, captured_logs):
        _validate_keyboard_config({"keyboard": {"key_delay_ms": 10}})
        assert "Unknown keyboard settings" not in captured_logs.getvalue()

    def test_missing_keyboard_table(self, captured_logs):
        _validate_keyboard_config({"device": {}})
        assert captured_logs.getvalue() == ""
