import unittest

from tether_agent.agent.session_store import SessionStoreError
from tether_agent.cli.error_display import format_error
from tether_agent.llm.exceptions import ModelProviderError, ModelRateLimitError


class TestFormatError(unittest.TestCase):
    def test_rate_limit(self) -> None:
        message, suggestion = format_error(ModelRateLimitError("slow down"))
        self.assertIn("Rate limit", message)
        self.assertIsNotNone(suggestion)

    def test_provider_status_codes(self) -> None:
        self.assertIn("Invalid or expired API key", format_error(ModelProviderError("x", status_code=401))[0])
        self.assertIn("Model not found", format_error(ModelProviderError("x", status_code=404))[0])
        self.assertIn("Server error (503)", format_error(ModelProviderError("x", status_code=503))[0])
        message, suggestion = format_error(ModelProviderError("bad request body", status_code=400))
        self.assertIn("bad request body", message)
        self.assertIsNone(suggestion)

    def test_session_errors(self) -> None:
        message, suggestion = format_error(SessionStoreError("Session not found: abc"))
        self.assertIn("Session not found: abc", message)
        self.assertIn("tether sessions", suggestion)

    def test_network_errors(self) -> None:
        self.assertIn("timed out", format_error(RuntimeError("read timed out"))[0])
        self.assertIn("Connection failed", format_error(RuntimeError("Connection refused"))[0])

    def test_generic_fallback_is_truncated(self) -> None:
        message, _ = format_error(ValueError("x" * 200))
        self.assertTrue(message.endswith("..."))
        self.assertLess(len(message), 100)


if __name__ == "__main__":
    unittest.main(verbosity=2)
