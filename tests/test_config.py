"""Test settings module"""

import os
import tempfile
import unittest
from pathlib import Path
from unittest import mock

from pydantic import ValidationError

from pipeloop.config.config import (
    Settings,
    export_settings,
    load_settings,
    serialize_settings,
)


class TestSettings(unittest.TestCase):

    def setUp(self):
        # isolate from any pipeloop.toml in the working directory
        self.cwd = os.getcwd()
        self.tmpdir = tempfile.TemporaryDirectory()
        os.chdir(self.tmpdir.name)

    def tearDown(self):
        os.chdir(self.cwd)
        self.tmpdir.cleanup()

    def test_defaults(self):
        sets = Settings()
        self.assertFalse(sets.prod)
        self.assertEqual(sets.max_calls, 100)
        self.assertEqual(sets.get_base_url(), "http://localhost:9000")
        self.assertEqual(
            sets.get_base_url(prod=True), "https://api.langbase.com"
        )
        self.assertIsNone(sets.api_key)

    def test_given(self):
        sets = Settings(prod=True, max_calls=5)
        self.assertEqual(sets.max_calls, 5)
        self.assertEqual(sets.get_base_url(), "https://api.langbase.com")

    def test_url_trailing_slash(self):
        sets = Settings(local_url="http://localhost:8080/")
        self.assertEqual(sets.local_url, "http://localhost:8080")

    def test_invalid_url(self):
        with self.assertRaises(ValidationError):
            Settings(prod_url="api.langbase.com")

    def test_invalid_max_calls(self):
        with self.assertRaises(ValidationError):
            Settings(max_calls=0)

    def test_frozen(self):
        sets = Settings()
        with self.assertRaises(ValidationError):
            sets.max_calls = 3

    def test_environment(self):
        with mock.patch.dict(
            os.environ,
            {'PIPELOOP_MAX_CALLS': "7", 'PIPELOOP_PROD': "true"},
        ):
            sets = Settings()
        self.assertEqual(sets.max_calls, 7)
        self.assertTrue(sets.prod)

    def test_arguments_override_environment(self):
        with mock.patch.dict(os.environ, {'PIPELOOP_MAX_CALLS': "7"}):
            sets = Settings(max_calls=2)
        self.assertEqual(sets.max_calls, 2)

    def test_config_file_in_working_directory(self):
        Path("pipeloop.toml").write_text("max_calls = 12\n", encoding="utf-8")
        self.assertEqual(Settings().max_calls, 12)

    def test_environment_overrides_file(self):
        Path("pipeloop.toml").write_text("max_calls = 12\n", encoding="utf-8")
        with mock.patch.dict(os.environ, {'PIPELOOP_MAX_CALLS': "3"}):
            self.assertEqual(Settings().max_calls, 3)


class TestSerialization(unittest.TestCase):

    def test_serialize(self):
        conf = serialize_settings(Settings(max_calls=4))
        self.assertIn("max_calls = 4", conf)
        # None values are left out
        self.assertNotIn("api_key", conf)

    def test_export_and_load(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "conf" / "pipeloop.toml"
            export_settings(
                Settings(prod=True, max_calls=9, api_key="pipe-key"), path
            )
            self.assertTrue(path.exists())

            sets = load_settings(path)

        self.assertTrue(sets.prod)
        self.assertEqual(sets.max_calls, 9)
        self.assertEqual(sets.api_key, "pipe-key")

    def test_load_missing_file(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            with self.assertRaises(FileNotFoundError):
                load_settings(Path(tmpdir) / "missing.toml")

    def test_load_invalid_file(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "pipeloop.toml"
            path.write_text("max_calls = -1\n", encoding="utf-8")
            with self.assertRaises(ValueError):
                load_settings(path)


if __name__ == "__main__":
    unittest.main()
