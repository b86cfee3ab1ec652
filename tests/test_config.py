"""Tests for configuration loading and validation."""

from __future__ import annotations

import tempfile
from pathlib import Path
import unittest
from unittest import mock

from minibus.config import DEFAULT_CONFIG, load_config
from minibus.exceptions import ConfigValidationError
from minibus.registry import BusRegistry


class ConfigTests(unittest.TestCase):
    """Validate config merge and fallback behavior."""

    def _write(self, temp_dir: str, text: str) -> Path:
        config_path = Path(temp_dir) / "config.toml"
        config_path.write_text(text.strip(), encoding="utf-8")
        return config_path

    def test_missing_config_uses_defaults(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            config = load_config(config_path=Path(temp_dir) / "config.toml")
            self.assertEqual(config, DEFAULT_CONFIG)
            self.assertEqual(config["registry"]["default_name"], "global")
            self.assertEqual(config["logging"]["level"], "INFO")

    def test_partial_config_overrides_selected_values(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            config_path = self._write(
                temp_dir,
                """
[registry]
default_name = "  app  "

[logging]
level = "debug"
                """,
            )
            config = load_config(config_path=config_path)
            self.assertEqual(config["registry"]["default_name"], "app")
            self.assertEqual(config["logging"]["level"], "DEBUG")
            self.assertEqual(
                config["logging"]["structured"], DEFAULT_CONFIG["logging"]["structured"]
            )

    def test_invalid_values_fallback_to_defaults(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            config_path = self._write(
                temp_dir,
                """
[registry]
default_name = ""

[logging]
level = "LOUD"
                """,
            )
            with self.assertLogs("minibus.config", level="WARNING") as logs:
                config = load_config(config_path=config_path)
            self.assertEqual(config, DEFAULT_CONFIG)
            self.assertTrue(any("config.invalid" in line for line in logs.output))

    def test_unparseable_toml_falls_back_to_defaults(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            config_path = self._write(temp_dir, "[registry\ndefault_name = ")
            with self.assertLogs("minibus.config", level="WARNING"):
                config = load_config(config_path=config_path)
            self.assertEqual(config, DEFAULT_CONFIG)

    def test_default_config_path_is_module_level(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            import minibus.config as config_mod

            config_path = Path(temp_dir) / "nested" / "config.toml"
            with mock.patch.object(config_mod, "CONFIG_PATH", config_path):
                config = config_mod.load_config()
            self.assertTrue(config_path.parent.is_dir())
            self.assertEqual(config, DEFAULT_CONFIG)

    def test_unexpected_validation_failure_raises(self) -> None:
        import minibus.config as config_mod

        with mock.patch.object(config_mod, "Config") as config_model:
            config_model.model_validate.side_effect = TypeError("bad")
            with self.assertRaises(ConfigValidationError):
                config_mod._validate_config({})

    def test_loaded_config_drives_registry(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            config_path = self._write(
                temp_dir,
                """
[registry]
default_name = "worker"
                """,
            )
            registry = BusRegistry.from_config(load_config(config_path=config_path))
            self.assertIs(registry.get(), registry.get("worker"))


if __name__ == "__main__":
    unittest.main()
