import os
import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

import env_loader
from settings import Settings


class EnvLoaderTests(unittest.TestCase):
    def test_parse_env_line(self) -> None:
        self.assertEqual(env_loader._parse_env_line("A=1"), ("A", "1"))
        self.assertEqual(env_loader._parse_env_line("export B = 'two'"), ("B", "two"))
        self.assertEqual(env_loader._parse_env_line('C="x=y"'), ("C", "x=y"))
        self.assertIsNone(env_loader._parse_env_line("# comment"))
        self.assertIsNone(env_loader._parse_env_line("no_equals"))
        self.assertIsNone(env_loader._parse_env_line("=value"))

    def test_load_env_file_does_not_override(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / ".env"
            path.write_text("S2E_TEST_NEW=fresh\nS2E_TEST_SET=from_file\n", encoding="utf-8")
            with patch.dict(os.environ, {"S2E_TEST_SET": "real"}, clear=False):
                applied = env_loader.load_env_file(path)
                self.assertEqual(applied, 1)
                self.assertEqual(os.environ["S2E_TEST_NEW"], "fresh")
                self.assertEqual(os.environ["S2E_TEST_SET"], "real")
            os.environ.pop("S2E_TEST_NEW", None)

    def test_missing_file_is_ignored(self) -> None:
        self.assertEqual(env_loader.load_env_file(Path("/nonexistent/.env")), 0)


class SettingsTests(unittest.TestCase):
    def test_reads_and_clamps_values(self) -> None:
        env = {
            "LLM_PROVIDER": "OpenAI",
            "OPENAI_MODEL": "gpt-test",
            "S2E_MAX_TURNS": "500",
            "S2E_MAX_FIX_ROUNDS": "3",
            "S2E_MAX_OUTPUT_TOKENS": "10",
            "S2E_STREAM_PREVIEW": "off",
            "S2E_LOG_LEVEL": "debug",
        }
        with patch.dict(os.environ, env, clear=False):
            settings = Settings.from_env()

        self.assertEqual(settings.provider, "openai")
        self.assertEqual(settings.model, "gpt-test")
        self.assertEqual(settings.max_turns, 50)
        self.assertEqual(settings.max_fix_rounds, 3)
        self.assertEqual(settings.max_output_tokens, 256)
        self.assertFalse(settings.stream_preview)
        self.assertEqual(settings.log_level, "DEBUG")

    def test_bad_integer_falls_back_to_default(self) -> None:
        with patch.dict(os.environ, {"S2E_MAX_TURNS": "many"}, clear=False):
            with self.assertLogs("settings", level="WARNING"):
                settings = Settings.from_env()
        self.assertEqual(settings.max_turns, 12)


if __name__ == "__main__":
    unittest.main()
