import json
import os
import tempfile
import unittest
from unittest.mock import patch

from tdd_guard.config import (
    DEFAULT_MAX_TEST_OUTPUT_AGE,
    TDDConfig,
    VerifierSettings,
    load_config,
    parse_config,
)
from tdd_guard.errors import ConfigError

BASE = {
    "testOutputFile": ".opencode/tdd/test-output.txt",
    "enforcePatterns": ["src/**"],
    "verifierModel": "test-model",
}


class TestParseConfig(unittest.TestCase):

    def _parse(self, data) -> TDDConfig:
        return parse_config(json.dumps(data))

    def test_valid_config(self):
        config = self._parse(BASE)
        self.assertEqual(config.test_output_file, ".opencode/tdd/test-output.txt")
        self.assertEqual(config.enforce_patterns, ("src/**",))
        self.assertEqual(config.verifier_model, "test-model")
        self.assertEqual(config.max_test_output_age, DEFAULT_MAX_TEST_OUTPUT_AGE)

    def test_invalid_json(self):
        with self.assertRaises(ConfigError) as cm:
            parse_config("{")
        self.assertEqual(str(cm.exception), "TDD: Invalid config JSON")

    def test_non_object_json(self):
        with self.assertRaises(ConfigError):
            parse_config("[1, 2]")

    def test_missing_required_fields(self):
        for field_name in ("testOutputFile", "verifierModel"):
            data = {k: v for k, v in BASE.items() if k != field_name}
            with self.assertRaises(ConfigError) as cm:
                self._parse(data)
            self.assertEqual(str(cm.exception), f"TDD: Missing config field: {field_name}")

    def test_empty_string_is_missing(self):
        with self.assertRaises(ConfigError) as cm:
            self._parse({**BASE, "verifierModel": ""})
        self.assertIn("verifierModel", str(cm.exception))

    def test_enforce_patterns_must_be_string_list(self):
        for bad in ["src/**", ["src/**", 3], None]:
            with self.assertRaises(ConfigError, msg=repr(bad)) as cm:
                self._parse({**BASE, "enforcePatterns": bad})
            self.assertEqual(str(cm.exception), "TDD: enforcePatterns must be an array of strings")

    def test_enforce_patterns_optional(self):
        data = {k: v for k, v in BASE.items() if k != "enforcePatterns"}
        self.assertIsNone(self._parse(data).enforce_patterns)

    def test_max_age(self):
        self.assertEqual(self._parse({**BASE, "maxTestOutputAge": 1}).max_test_output_age, 1)
        self.assertEqual(self._parse({**BASE, "maxTestOutputAge": "10"}).max_test_output_age, 300)
        self.assertEqual(self._parse({**BASE, "maxTestOutputAge": True}).max_test_output_age, 300)

    def test_test_output_path(self):
        config = self._parse(BASE)
        self.assertEqual(
            config.test_output_path("/repo"),
            os.path.join("/repo", ".opencode/tdd/test-output.txt"),
        )
        absolute = self._parse({**BASE, "testOutputFile": "/tmp/out.txt"})
        self.assertEqual(absolute.test_output_path("/repo"), "/tmp/out.txt")


class TestLoadConfig(unittest.TestCase):

    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.root = self._tmp.name

    def tearDown(self):
        self._tmp.cleanup()

    def _write(self, content: str):
        os.makedirs(os.path.join(self.root, ".opencode"), exist_ok=True)
        with open(os.path.join(self.root, ".opencode", "tdd.json"), "w") as f:
            f.write(content)

    def test_missing_file(self):
        result = load_config(self.root)
        self.assertTrue(result.is_missing)
        self.assertIsNone(result.config)

    def test_empty_file_counts_as_missing(self):
        self._write("")
        self.assertTrue(load_config(self.root).is_missing)

    def test_loaded(self):
        self._write(json.dumps(BASE))
        result = load_config(self.root)
        self.assertEqual(result.kind, "loaded")
        self.assertEqual(result.config.verifier_model, "test-model")

    def test_malformed_file_raises(self):
        self._write("{not json")
        with self.assertRaises(ConfigError):
            load_config(self.root)


class TestVerifierSettings(unittest.TestCase):

    def test_defaults_are_deterministic(self):
        settings = VerifierSettings(provider="openai")
        self.assertEqual(settings.temperature, 0.0)
        self.assertEqual(settings.top_p, 1.0)

    def test_provider_from_env(self):
        with patch.dict("os.environ", {"TDD_PROVIDER": "together"}):
            self.assertEqual(VerifierSettings().provider, "together")

    def test_timeout_from_env(self):
        with patch.dict("os.environ", {"TDD_VERIFIER_TIMEOUT": "15"}):
            self.assertEqual(VerifierSettings().timeout, 15.0)
        with patch.dict("os.environ", {"TDD_VERIFIER_TIMEOUT": "abc"}):
            self.assertEqual(VerifierSettings().timeout, 60.0)

    def test_api_key_detection(self):
        with patch.dict("os.environ", {"OPENAI_API_KEY": "sk-test"}):
            self.assertTrue(VerifierSettings(provider="openai").has_api_key)
        with patch.dict("os.environ", {}, clear=True):
            self.assertFalse(VerifierSettings(provider="openai").has_api_key)
            self.assertTrue(VerifierSettings(provider="ollama").has_api_key)


if __name__ == "__main__":
    unittest.main()
