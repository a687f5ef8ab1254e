"""Base LLM service implementing the Template Method pattern.

All providers share the same call algorithm:
    classify() → _call_with_retry() → _call_api()   ← only this differs per provider
                                    → _map_error()

Subclasses implement two things only:
  - __init__: validate and store the SDK client
  - _call_api: make one raw API call and return an LLMResponse

Error translation and retry with backoff live here so every provider
raises the same typed errors and retries the same way.
"""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass

logger = logging.getLogger(__name__)

_MAX_RETRIES = 3
_MAX_TOKENS = 4096

# SDK exception class names that mean the request never reached the API.
_NETWORK_ERROR_NAMES = {"APIConnectionError", "APITimeoutError"}


@dataclass
class LLMUsage:
    prompt_tokens: int
    completion_tokens: int


@dataclass
class LLMResponse:
    content: str
    usage: LLMUsage | None = None


class LLMError(Exception):
    def __init__(self, message: str, provider: str):
        super().__init__(message)
        self.provider = provider


class LLMAuthError(LLMError):
    def __init__(self, provider: str):
        super().__init__("Authentication failed, check your API key", provider)


class LLMRateLimitError(LLMError):
    def __init__(self, provider: str):
        super().__init__("Rate limit exceeded, try again later", provider)


class LLMNetworkError(LLMError):
    def __init__(self, provider: str):
        super().__init__("Network error, check your connection", provider)


class LLMConfigurationError(Exception):
    """Raised when no usable LLM provider is configured."""


class BaseLLMService(ABC):
    PROVIDER: str = "base"
    MAX_RETRIES: int = _MAX_RETRIES
    MAX_TOKENS: int = _MAX_TOKENS

    def __init__(self, model: str):
        self.model = model

    # ------------------------------------------------------------------ #
    # Public interface                                                     #
    # ------------------------------------------------------------------ #

    def classify(self, prompt: str) -> LLMResponse:
        """Send a single-turn prompt and return the model's text response.

        Raises an LLMError subclass on failure.
        """
        return self._call_with_retry(prompt)

    # ------------------------------------------------------------------ #
    # Abstract: implement in each provider                               #
    # ------------------------------------------------------------------ #

    @abstractmethod
    def _call_api(self, prompt: str) -> LLMResponse:
        """Make a single API call and return the response.

        This is the only method subclasses must implement. It should raise
        the SDK's own exception on failure; _call_with_retry maps it.
        """

    # ------------------------------------------------------------------ #
    # Shared implementations                                               #
    # ------------------------------------------------------------------ #

    def _call_with_retry(self, prompt: str) -> LLMResponse:
        """Retry _call_api up to MAX_RETRIES times with exponential backoff.

        Only rate-limit and network errors are retried; auth and other
        errors are raised on the first failure.
        """
        for attempt in range(self.MAX_RETRIES):
            try:
                return self._call_api(prompt)
            except Exception as e:
                error = e if isinstance(e, LLMError) else self._map_error(e)
                retryable = isinstance(error, (LLMRateLimitError, LLMNetworkError))
                if not retryable or attempt == self.MAX_RETRIES - 1:
                    logger.error(
                        "%s API failed after %d attempt(s): %s",
                        self.__class__.__name__,
                        attempt + 1,
                        e,
                    )
                    if error is e:
                        raise
                    raise error from e
                delay = 2**attempt
                logger.warning(
                    "%s API error (attempt %d/%d): %s. Retrying in %ds...",
                    self.__class__.__name__,
                    attempt + 1,
                    self.MAX_RETRIES,
                    e,
                    delay,
                )
                time.sleep(delay)
        raise LLMError("No attempts made", self.PROVIDER)

    def _map_error(self, error: Exception) -> LLMError:
        """Translate an SDK exception into the typed LLMError hierarchy.

        Both the anthropic and openai SDKs expose the HTTP status as
        ``status_code`` on their APIStatusError subclasses.
        """
        status = getattr(error, "status_code", None)
        if status in (401, 403):
            return LLMAuthError(self.PROVIDER)
        if status == 429:
            return LLMRateLimitError(self.PROVIDER)
        if type(error).__name__ in _NETWORK_ERROR_NAMES or isinstance(error, (ConnectionError, TimeoutError)):
            return LLMNetworkError(self.PROVIDER)
        return LLMError(str(error), self.PROVIDER)
