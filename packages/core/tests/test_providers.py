"""Tests for LLM provider implementations.

Retry and error mapping live in BaseLLMService and are tested once through a
stub. Provider tests cover only the SDK setup and _call_api.
"""

from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest

from prpulse_core.providers.anthropic import AnthropicService
from prpulse_core.providers.base import (
    BaseLLMService,
    LLMAuthError,
    LLMError,
    LLMNetworkError,
    LLMRateLimitError,
    LLMResponse,
)
from prpulse_core.providers.openai import OpenAIService


class _StatusError(Exception):
    def __init__(self, status_code):
        super().__init__(f"HTTP {status_code}")
        self.status_code = status_code


class APIConnectionError(Exception):
    """Same class name as the SDKs' connection error."""


class _StubService(BaseLLMService):
    PROVIDER = "stub"

    def __init__(self, *outcomes):
        super().__init__("stub-model")
        self.outcomes = list(outcomes)
        self.calls = 0

    def _call_api(self, prompt: str) -> LLMResponse:
        self.calls += 1
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return LLMResponse(content=outcome)


# ---------------------------------------------------------------------------
# Shared behaviour, tested once through the stub
# ---------------------------------------------------------------------------


class TestBaseLLMServiceRetry:
    def test_returns_response_on_first_success(self):
        service = _StubService("ok")
        assert service.classify("prompt").content == "ok"
        assert service.calls == 1

    def test_retries_rate_limit_then_succeeds(self):
        service = _StubService(_StatusError(429), "ok")
        with patch("prpulse_core.providers.base.time.sleep") as sleep:
            assert service.classify("prompt").content == "ok"
        assert service.calls == 2
        sleep.assert_called_once_with(1)

    def test_retries_network_error_with_exponential_backoff(self):
        service = _StubService(APIConnectionError(), ConnectionError(), "ok")
        with patch("prpulse_core.providers.base.time.sleep") as sleep:
            service.classify("prompt")
        assert [c.args[0] for c in sleep.call_args_list] == [1, 2]

    def test_gives_up_after_max_retries(self):
        service = _StubService(*[_StatusError(429)] * 3)
        with patch("prpulse_core.providers.base.time.sleep"):
            with pytest.raises(LLMRateLimitError):
                service.classify("prompt")
        assert service.calls == 3

    def test_auth_error_is_not_retried(self):
        service = _StubService(_StatusError(401), "ok")
        with patch("prpulse_core.providers.base.time.sleep") as sleep:
            with pytest.raises(LLMAuthError) as exc_info:
                service.classify("prompt")
        assert service.calls == 1
        sleep.assert_not_called()
        assert exc_info.value.provider == "stub"

    def test_other_errors_are_not_retried(self):
        service = _StubService(ValueError("bad request body"), "ok")
        with pytest.raises(LLMError, match="bad request body"):
            service.classify("prompt")
        assert service.calls == 1

    def test_typed_error_from_call_api_is_reraised_unchanged(self):
        error = LLMAuthError("stub")
        service = _StubService(error)
        with pytest.raises(LLMAuthError) as exc_info:
            service.classify("prompt")
        assert exc_info.value is error


class TestBaseLLMServiceMapError:
    @pytest.mark.parametrize(
        "error,expected",
        [
            (_StatusError(401), LLMAuthError),
            (_StatusError(403), LLMAuthError),
            (_StatusError(429), LLMRateLimitError),
            (APIConnectionError(), LLMNetworkError),
            (TimeoutError(), LLMNetworkError),
            (_StatusError(500), LLMError),
        ],
    )
    def test_maps_sdk_errors(self, error, expected):
        assert type(_StubService()._map_error(error)) is expected

    def test_generic_error_keeps_message(self):
        mapped = _StubService()._map_error(RuntimeError("boom"))
        assert str(mapped) == "boom"
        assert mapped.provider == "stub"


# ---------------------------------------------------------------------------
# Provider-specific: only what differs between Anthropic and OpenAI
# ---------------------------------------------------------------------------


class TestAnthropicService:
    def test_raises_import_error_without_sdk(self):
        with patch.dict("sys.modules", {"anthropic": None}):
            with pytest.raises(ImportError, match="prpulse\\[anthropic\\]"):
                AnthropicService(api_key="key")

    def test_default_model_is_claude(self):
        assert "claude" in AnthropicService.DEFAULT_MODEL

    def test_call_api_joins_text_blocks(self):
        pytest.importorskip("anthropic")
        from anthropic.types import TextBlock

        service = AnthropicService(api_key="key", model="claude-test")
        service.client = MagicMock()
        service.client.messages.create.return_value = SimpleNamespace(
            content=[TextBlock(type="text", text=' {"category": "security"} ')],
            usage=SimpleNamespace(input_tokens=12, output_tokens=5),
        )

        response = service.classify("prompt")

        assert response.content == '{"category": "security"}'
        assert response.usage.prompt_tokens == 12
        kwargs = service.client.messages.create.call_args.kwargs
        assert kwargs["model"] == "claude-test"
        assert kwargs["messages"] == [{"role": "user", "content": "prompt"}]


class TestOpenAIService:
    def test_raises_import_error_without_sdk(self):
        import prpulse_core.providers.openai as openai_mod

        real_openai = openai_mod._OpenAI
        openai_mod._OpenAI = None
        try:
            with pytest.raises(ImportError, match="prpulse\\[openai\\]"):
                OpenAIService(api_key="key")
        finally:
            openai_mod._OpenAI = real_openai

    def test_default_model_is_gpt(self):
        assert "gpt" in OpenAIService.DEFAULT_MODEL

    def test_call_api_reads_first_choice(self):
        import prpulse_core.providers.openai as openai_mod

        with patch.object(openai_mod, "_OpenAI", MagicMock()):
            service = OpenAIService(api_key="key")
        service.client.chat.completions.create.return_value = SimpleNamespace(
            choices=[SimpleNamespace(message=SimpleNamespace(content="{}"))],
            usage=SimpleNamespace(prompt_tokens=3, completion_tokens=1),
        )

        response = service.classify("prompt")

        assert response.content == "{}"
        assert response.usage.completion_tokens == 1
        assert service.model == "gpt-4o"

    def test_call_api_handles_empty_choices(self):
        import prpulse_core.providers.openai as openai_mod

        with patch.object(openai_mod, "_OpenAI", MagicMock()):
            service = OpenAIService(api_key="key")
        service.client.chat.completions.create.return_value = SimpleNamespace(choices=[], usage=None)

        assert service.classify("prompt") == LLMResponse(content="", usage=None)
