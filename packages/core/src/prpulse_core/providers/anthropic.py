from __future__ import annotations

from prpulse_core.providers.base import BaseLLMService, LLMResponse, LLMUsage


class AnthropicService(BaseLLMService):
    PROVIDER = "anthropic"
    DEFAULT_MODEL = "claude-sonnet-4-20250514"

    def __init__(self, api_key: str, model: str | None = None):
        try:
            from anthropic import Anthropic
        except ImportError:
            raise ImportError(
                "The 'anthropic' package is required for this provider. "
                "Install it with: pip install 'prpulse[anthropic]'"
            )
        super().__init__(model or self.DEFAULT_MODEL)
        self.client = Anthropic(api_key=api_key)

    def _call_api(self, prompt: str) -> LLMResponse:
        # Imported inside the method because the anthropic package is optional;
        # __init__ already validated it is installed before we reach here.
        from anthropic.types import TextBlock

        response = self.client.messages.create(
            model=self.model,
            messages=[{"role": "user", "content": prompt}],
            max_tokens=self.MAX_TOKENS,
        )
        text_blocks = [block.text for block in response.content if isinstance(block, TextBlock)]
        usage = None
        if response.usage is not None:
            usage = LLMUsage(
                prompt_tokens=response.usage.input_tokens,
                completion_tokens=response.usage.output_tokens,
            )
        return LLMResponse(content="".join(text_blocks).strip(), usage=usage)
