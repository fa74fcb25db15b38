import json
import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

from skillpull.config import Config, config_path, load_config, redact_token, save_config
from skillpull.errors import ConfigError


class TestConfig(unittest.TestCase):
    def test_env_override_for_path(self) -> None:
        with patch.dict("os.environ", {"SKILLPULL_CONFIG_PATH": "/tmp/skillpull-test/config.json"}):
            self.assertEqual(config_path(), Path("/tmp/skillpull-test/config.json"))

    def test_save_then_load(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            path = Path(td) / "nested" / "config.json"
            save_config(Config(github_token="ghp_secret", metadata_timeout_s=3.0), path)

            raw = json.loads(path.read_text(encoding="utf-8"))
            self.assertEqual(raw["github_token"], "ghp_secret")
            self.assertEqual(load_config(path), Config(github_token="ghp_secret", metadata_timeout_s=3.0))

    def test_unknown_keys_are_ignored(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            path = Path(td) / "config.json"
            path.write_text(json.dumps({"lock_filename": "skills.lock", "legacy": True}), encoding="utf-8")
            self.assertEqual(load_config(path).lock_filename, "skills.lock")

    def test_corrupt_file_raises_config_error(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            path = Path(td) / "config.json"
            path.write_text("{not json", encoding="utf-8")
            with self.assertRaises(ConfigError) as ctx:
                load_config(path)
            self.assertIn(str(path), str(ctx.exception))

            path.write_text("[1, 2]", encoding="utf-8")
            with self.assertRaises(ConfigError):
                load_config(path)

    def test_redact_token(self) -> None:
        self.assertIsNone(redact_token(None))
        self.assertEqual(redact_token("abcdef"), "ab...ef")
        self.assertEqual(redact_token("ghp_0123456789abcdef"), "ghp_01...cdef")


if __name__ == "__main__":
    unittest.main()
