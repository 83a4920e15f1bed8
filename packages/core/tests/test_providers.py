"""Tests for AI provider implementations.

Shared behaviour (error wrapping, empty-response handling, single attempt)
lives in BaseGenerator and is tested once via a lightweight stub.
Provider-specific tests cover only the SDK call each one makes.
"""

from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest

from prrelay_core.errors import AIServiceError
from prrelay_core.providers.anthropic import AnthropicGenerator
from prrelay_core.providers.base import BaseGenerator
from prrelay_core.providers.openai import OpenAIGenerator


class _StubGenerator(BaseGenerator):
    NAME = "stub"

    def __init__(self, response="analysis", error=None):
        self.response = response
        self.error = error
        self.prompts = []

    def _call_api(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if self.error is not None:
            raise self.error
        return self.response


class TestBaseGenerator:
    def test_returns_text_verbatim(self):
        assert _StubGenerator(response="  **LGTM**\n").generate("p") == "  **LGTM**\n"

    def test_sdk_error_wrapped_in_ai_service_error(self):
        gen = _StubGenerator(error=RuntimeError("quota exceeded"))
        with pytest.raises(AIServiceError, match="quota exceeded") as exc_info:
            gen.generate("p")
        assert exc_info.value.provider == "stub"
        assert isinstance(exc_info.value.__cause__, RuntimeError)

    def test_no_retry_on_failure(self):
        gen = _StubGenerator(error=RuntimeError("boom"))
        with pytest.raises(AIServiceError):
            gen.generate("p")
        assert len(gen.prompts) == 1

    @pytest.mark.parametrize("empty", ["", "   \n", None])
    def test_empty_response_is_an_error(self, empty):
        with pytest.raises(AIServiceError, match="empty response"):
            _StubGenerator(response=empty).generate("p")

    def test_ai_service_error_passes_through_unchanged(self):
        typed = AIServiceError("already typed", provider="x")
        with pytest.raises(AIServiceError) as exc_info:
            _StubGenerator(error=typed).generate("p")
        assert exc_info.value is typed


class TestAnthropicGenerator:
    def test_model_is_claude(self):
        assert "claude" in AnthropicGenerator.MODEL

    def test_sends_prompt_as_single_user_message(self):
        from anthropic.types import TextBlock

        gen = AnthropicGenerator(api_key="key")
        gen.client = MagicMock()
        gen.client.messages.create.return_value = SimpleNamespace(
            content=[TextBlock(type="text", text="Looks fine.")]
        )

        assert gen.generate("review this") == "Looks fine."
        kwargs = gen.client.messages.create.call_args.kwargs
        assert kwargs["messages"] == [{"role": "user", "content": "review this"}]
        assert kwargs["model"] == AnthropicGenerator.MODEL

    def test_raises_import_error_without_sdk(self):
        with patch.dict("sys.modules", {"anthropic": None}):
            with pytest.raises(ImportError, match="anthropic"):
                AnthropicGenerator(api_key="key")


class TestOpenAIGenerator:
    def test_model_is_gpt(self):
        assert "gpt" in OpenAIGenerator.MODEL

    def test_returns_first_choice(self):
        gen = OpenAIGenerator(api_key="key")
        gen.client = MagicMock()
        gen.client.chat.completions.create.return_value = SimpleNamespace(
            choices=[SimpleNamespace(message=SimpleNamespace(content="Ship it."))]
        )

        assert gen.generate("review this") == "Ship it."
        kwargs = gen.client.chat.completions.create.call_args.kwargs
        assert kwargs["messages"] == [{"role": "user", "content": "review this"}]

    def test_no_choices_is_an_error(self):
        gen = OpenAIGenerator(api_key="key")
        gen.client = MagicMock()
        gen.client.chat.completions.create.return_value = SimpleNamespace(choices=[])

        with pytest.raises(AIServiceError):
            gen.generate("p")

    def test_raises_import_error_without_sdk(self):
        import prrelay_core.providers.openai as openai_mod

        real_openai = openai_mod._OpenAI
        openai_mod._OpenAI = None
        try:
            with pytest.raises(ImportError):
                OpenAIGenerator(api_key="key")
        finally:
            openai_mod._OpenAI = real_openai
