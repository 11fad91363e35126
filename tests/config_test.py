import os
import unittest
from unittest.mock import patch

from capture.config import CaptureConfig, parse_token_table
from capture.identity import TokenTableVerifier, bearer_token
from capture.errors import AuthError


class TestConfig(unittest.TestCase):
    def test_parse_token_table(self):
        table = parse_token_table("tok1:user-1:alice, tok2:user-2,,")
        self.assertEqual(table, {"tok1": ("user-1", "alice"), "tok2": ("user-2", None)})

    def test_parse_token_table_rejects_malformed(self):
        with self.assertRaises(ValueError):
            parse_token_table("just-a-token")

    @patch("capture.config.load_dotenv")
    def test_from_env(self, mock_load_dotenv):
        env = {
            "CAPTURE_MAX_CONCURRENCY": "8",
            "CAPTURE_QUEUE_TIMEOUT": "2.5",
            "CAPTURE_DEFAULT_FULL_PAGE": "false",
            "CAPTURE_LEDGER_BACKEND": "MySQL",
            "CAPTURE_API_TOKENS": "abc:user-1",
            "PORT": "8080",
        }
        with patch.dict(os.environ, env, clear=True):
            config = CaptureConfig.from_env()
        mock_load_dotenv.assert_called_once()
        self.assertEqual(config.max_concurrency, 8)
        self.assertEqual(config.queue_timeout, 2.5)
        self.assertFalse(config.default_full_page)
        self.assertEqual(config.ledger_backend, "mysql")
        self.assertEqual(config.api_tokens, {"abc": ("user-1", None)})
        self.assertEqual(config.port, 8080)
        # Untouched values keep their defaults
        self.assertEqual(config.capture_timeout, 30.0)
        self.assertEqual(config.default_width, 1920)


class TestIdentity(unittest.TestCase):
    def test_bearer_token(self):
        self.assertEqual(bearer_token({"Authorization": "Bearer abc"}), "abc")
        self.assertEqual(bearer_token({"Authorization": "bearer  abc "}), "abc")
        self.assertIsNone(bearer_token({"Authorization": "Basic abc"}))
        self.assertIsNone(bearer_token({}))

    def test_verifier(self):
        verifier = TokenTableVerifier({"abc": ("user-1", "alice")})
        identity = verifier.verify_identity("abc")
        self.assertEqual((identity.identity_id, identity.username), ("user-1", "alice"))
        with self.assertRaises(AuthError) as cm:
            verifier.verify_identity(None)
        self.assertEqual(cm.exception.status_code, 401)
        with self.assertRaises(AuthError) as cm:
            verifier.verify_identity("nope")
        self.assertEqual(cm.exception.status_code, 403)


if __name__ == "__main__":
    unittest.main()
