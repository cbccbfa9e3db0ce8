import os
import unittest
from unittest import mock

from pydantic import ValidationError

from transcription_mcp.config import ServerConfig

ENV = {
    "TRANSCRIPTION_SUPABASE_URL": "https://db.example.org",
    "TRANSCRIPTION_SUPABASE_KEY": "secret-key",
}


class TestServerConfig(unittest.TestCase):

    def test_defaults_and_api_config(self):
        with mock.patch.dict(os.environ, ENV, clear=True):
            config = ServerConfig(_env_file=None)
        self.assertEqual(config.timeout, 30.0)
        self.assertEqual(config.rate_limit, 10.0)
        self.assertEqual(config.rate_limit_max, 50.0)

        api_config = config.get_api_config()
        self.assertEqual(api_config.base_url, "https://db.example.org")
        self.assertEqual(api_config.api_key.get_secret_value(), "secret-key")
        self.assertNotIn("secret-key", repr(config))

    def test_overrides(self):
        env = dict(ENV, TRANSCRIPTION_TIMEOUT="12.5", TRANSCRIPTION_LOG_LEVEL="DEBUG")
        with mock.patch.dict(os.environ, env, clear=True):
            config = ServerConfig(_env_file=None)
        self.assertEqual(config.get_api_config().timeout, 12.5)
        self.assertEqual(config.log_level, "DEBUG")

    def test_missing_credentials(self):
        with mock.patch.dict(os.environ, {}, clear=True):
            with self.assertRaises(ValidationError):
                ServerConfig(_env_file=None)


if __name__ == "__main__":
    unittest.main()
