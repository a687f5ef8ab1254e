from __future__ import annotations

try:
    from openai import OpenAI as _OpenAI
except ImportError:
    _OpenAI = None  # type: ignore[assignment,misc]

from prpulse_core.providers.base import BaseLLMService, LLMResponse, LLMUsage


class OpenAIService(BaseLLMService):
    PROVIDER = "openai"
    DEFAULT_MODEL = "gpt-4o"

    def __init__(self, api_key: str, model: str | None = None):
        if _OpenAI is None:
            raise ImportError(
                "The 'openai' package is required for this provider. " "Install it with: pip install 'prpulse[openai]'"
            )
        super().__init__(model or self.DEFAULT_MODEL)
        self.client = _OpenAI(api_key=api_key)

    def _call_api(self, prompt: str) -> LLMResponse:
        response = self.client.chat.completions.create(
            model=self.model,
            messages=[{"role": "user", "content": prompt}],
            max_tokens=self.MAX_TOKENS,
        )
        content = response.choices[0].message.content if response.choices else None
        usage = None
        if response.usage is not None:
            usage = LLMUsage(
                prompt_tokens=response.usage.prompt_tokens,
                completion_tokens=response.usage.completion_tokens,
            )
        return LLMResponse(content=content or "", usage=usage)
