"""
Large language model client used as the extraction capability.
"""

import re
import logging
from typing import Optional

from . import config
from .exceptions import ConfigurationError, RateLimited, ServiceError

logger = logging.getLogger(__name__)

# "Please try again in 607ms" / "Please try again in 2.5s"
RETRY_HINT_PATTERN = re.compile(r"try again in (\d+(?:\.\d+)?)\s*(ms|s)\b", re.IGNORECASE)


def parse_retry_after(message: str) -> Optional[float]:
    """
    Extract a retry delay from a provider error message.

    Args:
        message: Error text returned by the API

    Returns:
        Delay in seconds, or None when the message carries no hint
    """
    match = RETRY_HINT_PATTERN.search(message or "")
    if not match:
        return None
    value, unit = float(match.group(1)), match.group(2).lower()
    return value / 1000 if unit == "ms" else value


def retry_after_from_headers(headers) -> Optional[float]:
    """Read retry-after-ms / retry-after response headers."""
    if not headers:
        return None
    raw_ms = headers.get("retry-after-ms")
    if raw_ms:
        try:
            return float(raw_ms) / 1000
        except ValueError:
            pass
    raw = headers.get("retry-after")
    if raw:
        try:
            return float(raw)
        except ValueError:
            return None
    return None


class LMMClient:
    """
    Client for the text extraction service.

    This class handles:
    1. Choosing the provider (OpenAI or Google Gemini) from the model name
    2. Sending the system prompt and one unit of text
    3. Classifying provider errors as RateLimited or ServiceError
    """

    def __init__(
        self,
        model_name: str = None,
        api_key: Optional[str] = None,
        max_tokens: int = None,
        temperature: float = None,
    ):
        """
        Initialize the LMM client.

        Args:
            model_name: Name of the model to use
            api_key: API key for the model provider
            max_tokens: Maximum tokens in the response
            temperature: Temperature for generation (lower = more deterministic)
        """
        self.model_name = model_name or config.LMM_MODEL
        self.is_gemini = "gemini" in self.model_name.lower()
        self.api_key = api_key or (config.GOOGLE_API_KEY if self.is_gemini else config.OPENAI_API_KEY)

        if not self.api_key:
            raise ConfigurationError(
                "API key not provided. Set it in the constructor or as "
                + ("GOOGLE_API_KEY" if self.is_gemini else "OPENAI_API_KEY")
                + " environment variable."
            )

        self.max_tokens = max_tokens or config.LMM_MAX_TOKENS
        self.temperature = config.LMM_TEMPERATURE if temperature is None else temperature
        self._init_client()

    def _init_client(self):
        """Initialize the appropriate client based on model name."""
        if self.is_gemini:
            self._init_gemini_client()
        else:
            self._init_openai_client()

    def _init_gemini_client(self):
        """Initialize Google Gemini client."""
        import google.generativeai as genai
        from google.api_core import exceptions as google_exceptions

        genai.configure(api_key=self.api_key)
        self.client = genai
        self.model = genai.GenerativeModel(
            model_name=self.model_name,
            generation_config={
                "max_output_tokens": self.max_tokens,
                "temperature": self.temperature,
            },
        )
        self._google_exceptions = google_exceptions
        logger.info(f"Initialized Gemini client with model: {self.model_name}")

    def _init_openai_client(self):
        """Initialize OpenAI client."""
        import openai

        self._openai = openai
        self.client = openai.OpenAI(api_key=self.api_key)
        self.model = self.model_name
        logger.info(f"Initialized OpenAI client with model: {self.model_name}")

    def extract(self, system_prompt: str, text: str) -> str:
        """
        Run one extraction call.

        Args:
            system_prompt: Extraction instructions
            text: Unit text to extract postings from

        Returns:
            Raw model output, possibly empty

        Raises:
            RateLimited: The provider throttled the request
            ServiceError: Any other provider failure
        """
        logger.debug(f"Sending {len(text)} characters to {self.model_name}")
        if self.is_gemini:
            return self._call_gemini_api(system_prompt, text)
        return self._call_openai_api(system_prompt, text)

    __call__ = extract

    def _call_openai_api(self, system_prompt: str, text: str) -> str:
        openai = self._openai
        try:
            response = self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": text},
                ],
                max_tokens=self.max_tokens,
                temperature=self.temperature,
            )
        except openai.RateLimitError as e:
            headers = getattr(getattr(e, "response", None), "headers", None)
            retry_after = retry_after_from_headers(headers)
            if retry_after is None:
                retry_after = parse_retry_after(str(e))
            raise RateLimited(str(e), retry_after=retry_after) from e
        except openai.OpenAIError as e:
            logger.error(f"Error calling OpenAI API: {str(e)}")
            raise ServiceError(str(e)) from e

        if not response.choices:
            return ""
        return response.choices[0].message.content or ""

    def _call_gemini_api(self, system_prompt: str, text: str) -> str:
        google_exceptions = self._google_exceptions
        try:
            response = self.model.generate_content([system_prompt, text])
        except google_exceptions.ResourceExhausted as e:
            raise RateLimited(str(e), retry_after=parse_retry_after(str(e))) from e
        except google_exceptions.GoogleAPIError as e:
            logger.error(f"Error calling Gemini API: {str(e)}")
            raise ServiceError(str(e)) from e

        try:
            return response.text or ""
        except ValueError:
            # Blocked or empty candidates have no text accessor
            logger.warning(f"Gemini returned no text: {response}")
            return ""
