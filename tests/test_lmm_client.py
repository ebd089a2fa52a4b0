"""
Test suite for the extraction client and its error classification.
"""

import sys
import unittest
from pathlib import Path
from unittest.mock import MagicMock, PropertyMock, patch

import httpx
import openai
from google.api_core import exceptions as google_exceptions

# Add the project root to the Python path
sys.path.append(str(Path(__file__).parent.parent))

from hiring_scraper import config
from hiring_scraper.exceptions import ConfigurationError, RateLimited, ServiceError
from hiring_scraper.lmm_client import LMMClient, parse_retry_after, retry_after_from_headers

CHAT_URL = "https://api.openai.com/v1/chat/completions"


def rate_limit_error(message="Rate limit reached", headers=None):
    request = httpx.Request("POST", CHAT_URL)
    response = httpx.Response(429, headers=headers or {}, request=request)
    return openai.RateLimitError(message, response=response, body=None)


def completion(content):
    return MagicMock(choices=[MagicMock(message=MagicMock(content=content))])


class TestRetryHints(unittest.TestCase):
    """Tests for parsing server-suggested delays."""

    def test_parse_milliseconds(self):
        """Test parsing a millisecond retry hint."""
        self.assertAlmostEqual(parse_retry_after("Please try again in 607ms."), 0.607)

    def test_parse_seconds(self):
        """Test parsing a fractional second retry hint."""
        self.assertEqual(parse_retry_after("Please try again in 2.5s. Visit our docs."), 2.5)

    def test_no_hint(self):
        """Test messages without a retry hint."""
        self.assertIsNone(parse_retry_after("You exceeded your current quota"))
        self.assertIsNone(parse_retry_after(""))

    def test_headers_prefer_milliseconds(self):
        """Test that retry-after-ms wins over retry-after."""
        self.assertEqual(retry_after_from_headers({"retry-after-ms": "1500", "retry-after": "9"}), 1.5)

    def test_headers_fall_back_to_seconds(self):
        """Test falling back to retry-after when retry-after-ms is unusable."""
        self.assertEqual(retry_after_from_headers({"retry-after-ms": "soon", "retry-after": "2"}), 2.0)

    def test_unparseable_headers(self):
        """Test HTTP-date and missing headers."""
        self.assertIsNone(retry_after_from_headers({"retry-after": "Wed, 21 Oct 2026 07:28:00 GMT"}))
        self.assertIsNone(retry_after_from_headers(None))


class TestOpenAIClient(unittest.TestCase):
    """Tests for the OpenAI code path."""

    def setUp(self):
        self.client = LMMClient(model_name="gpt-4", api_key="test-key")
        self.client.client = MagicMock()
        self.create = self.client.client.chat.completions.create

    def test_extract_returns_message_content(self):
        """Test that the completion text and both messages are passed through."""
        self.create.return_value = completion("Acme | Python | Remote")

        result = self.client.extract("Extract postings.", "<a id=up_1> Acme")

        self.assertEqual(result, "Acme | Python | Remote")
        messages = self.create.call_args.kwargs["messages"]
        self.assertEqual(messages[0], {"role": "system", "content": "Extract postings."})
        self.assertEqual(messages[1]["content"], "<a id=up_1> Acme")

    def test_client_is_callable(self):
        """Test calling the client directly."""
        self.create.return_value = completion("x")
        self.assertEqual(self.client("prompt", "text"), "x")

    def test_empty_choices(self):
        """Test that a response without choices yields an empty string."""
        self.create.return_value = MagicMock(choices=[])
        self.assertEqual(self.client.extract("prompt", "text"), "")

    def test_rate_limit_with_header(self):
        """Test a 429 carrying a retry-after-ms header."""
        self.create.side_effect = rate_limit_error(headers={"retry-after-ms": "607"})

        with self.assertRaises(RateLimited) as ctx:
            self.client.extract("prompt", "text")

        self.assertAlmostEqual(ctx.exception.retry_after, 0.607)

    def test_rate_limit_with_message_hint(self):
        """Test a 429 whose message carries the retry hint."""
        self.create.side_effect = rate_limit_error("Rate limit reached. Please try again in 2.5s.")

        with self.assertRaises(RateLimited) as ctx:
            self.client.extract("prompt", "text")

        self.assertEqual(ctx.exception.retry_after, 2.5)

    def test_rate_limit_without_hint(self):
        """Test a 429 without any retry hint."""
        self.create.side_effect = rate_limit_error()

        with self.assertRaises(RateLimited) as ctx:
            self.client.extract("prompt", "text")

        self.assertIsNone(ctx.exception.retry_after)

    def test_connection_error_is_service_error(self):
        """Test that transport failures are service errors."""
        self.create.side_effect = openai.APIConnectionError(request=httpx.Request("POST", CHAT_URL))

        with self.assertRaises(ServiceError):
            self.client.extract("prompt", "text")


class TestGeminiClient(unittest.TestCase):
    """Tests for the Gemini code path."""

    def setUp(self):
        with patch.object(LMMClient, "_init_client"):
            self.client = LMMClient(model_name="gemini-1.5-pro", api_key="test-key")
        self.client.model = MagicMock()
        self.client._google_exceptions = google_exceptions
        self.generate = self.client.model.generate_content

    def test_extract_returns_text(self):
        """Test that Gemini text is returned."""
        self.generate.return_value = MagicMock(text="Initech | Python")

        self.assertEqual(self.client.extract("prompt", "text"), "Initech | Python")
        self.generate.assert_called_once_with(["prompt", "text"])

    def test_resource_exhausted_is_rate_limited(self):
        """Test that quota errors become RateLimited."""
        self.generate.side_effect = google_exceptions.ResourceExhausted("Quota exceeded, try again in 607ms")

        with self.assertRaises(RateLimited) as ctx:
            self.client.extract("prompt", "text")

        self.assertAlmostEqual(ctx.exception.retry_after, 0.607)

    def test_other_api_errors_are_service_errors(self):
        """Test that other Google API errors become ServiceError."""
        self.generate.side_effect = google_exceptions.InternalServerError("backend error")

        with self.assertRaises(ServiceError):
            self.client.extract("prompt", "text")

    def test_blocked_response_returns_empty(self):
        """Test that a blocked response yields an empty string."""
        response = MagicMock()
        type(response).text = PropertyMock(side_effect=ValueError("no candidates"))
        self.generate.return_value = response

        self.assertEqual(self.client.extract("prompt", "text"), "")


class TestClientConfiguration(unittest.TestCase):
    """Tests for provider selection and key handling."""

    def test_missing_openai_key(self):
        """Test that a missing OpenAI key is a configuration error."""
        with patch.object(config, "OPENAI_API_KEY", None):
            with self.assertRaises(ConfigurationError) as ctx:
                LMMClient(model_name="gpt-4")
        self.assertIn("OPENAI_API_KEY", str(ctx.exception))

    def test_missing_google_key(self):
        """Test that a missing Google key is a configuration error."""
        with patch.object(config, "GOOGLE_API_KEY", None):
            with self.assertRaises(ConfigurationError) as ctx:
                LMMClient(model_name="gemini-1.5-pro")
        self.assertIn("GOOGLE_API_KEY", str(ctx.exception))

    def test_provider_chosen_from_model_name(self):
        """Test provider selection from the model name."""
        with patch.object(LMMClient, "_init_client"):
            self.assertTrue(LMMClient(model_name="Gemini-Pro", api_key="k").is_gemini)
            self.assertFalse(LMMClient(model_name="gpt-4o", api_key="k").is_gemini)

    def test_defaults_from_config(self):
        """Test that unset options come from config."""
        with patch.object(LMMClient, "_init_client"):
            client = LMMClient(api_key="k")
        self.assertEqual(client.model_name, config.LMM_MODEL)
        self.assertEqual(client.max_tokens, config.LMM_MAX_TOKENS)
        self.assertEqual(client.temperature, config.LMM_TEMPERATURE)


if __name__ == "__main__":
    unittest.main()
