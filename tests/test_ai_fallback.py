"""
Tests for the AI fallback used when a query matches nothing.
"""

import pytest

from takhrij.ai_fallback import FALLBACK_SYSTEM_PROMPT, AIFallbackAdapter, format_paragraphs, wrap_ai_result
from takhrij.tools.llm_client import LLMError
from takhrij.utils.fallbacks import FALLBACK_FAILED_MESSAGE, NOT_FOUND_WARNING, SEARCH_TIP

from conftest import FakeChatClient


# ==========================================
#  FORMATTING
# ==========================================

class TestFormatParagraphs:

    def test_sentences_and_soft_breaks(self):
        raw = "First sentence. Second one.\r\nstill second\n\n\n\nThird"
        assert format_paragraphs(raw) == "First sentence.\n\nSecond one. still second\n\nThird"

    def test_capital_before_period_not_split(self):
        assert format_paragraphs("Graded SAHIH. See also") == "Graded SAHIH. See also"

    def test_numbers_end_sentences(self):
        assert format_paragraphs("Sahih Bukhari 3868. It is sound.") == "Sahih Bukhari 3868.\n\nIt is sound."

    def test_trims(self):
        assert format_paragraphs("\n\n  text  \n") == "text"


def test_wrap_ends_with_warning():
    wrapped = wrap_ai_result("Body text.")

    assert wrapped.startswith("---\nEnglish Matn:\nBody text.\n\nReference: AI Generated\n")
    assert SEARCH_TIP in wrapped
    assert wrapped.endswith(NOT_FOUND_WARNING)


# ==========================================
#  ADAPTER
# ==========================================

class TestAIFallbackAdapter:

    @pytest.mark.asyncio
    async def test_explain_wraps_model_text(self):
        client = FakeChatClient(response="This is not found in the nine books. It is fabricated.")
        adapter = AIFallbackAdapter(client, model="test-model", max_tokens=1200)

        result = await adapter.explain("the hadith about the")

        assert result == wrap_ai_result("This is not found in the nine books.\n\nIt is fabricated.")
        call = client.calls[0]
        assert call["system"] == FALLBACK_SYSTEM_PROMPT
        assert call["user"] == "the hadith about the"
        assert call["model"] == "test-model"
        assert call["max_tokens"] == 1200
        assert call["temperature"] is None

    @pytest.mark.asyncio
    async def test_model_error_gives_fixed_message(self):
        client = FakeChatClient(error=LLMError("HTTP 502: upstream details"))
        adapter = AIFallbackAdapter(client, model="m")

        result = await adapter.explain("anything")

        assert result == FALLBACK_FAILED_MESSAGE
        assert "upstream" not in result

    @pytest.mark.asyncio
    async def test_unexpected_error_gives_fixed_message(self):
        adapter = AIFallbackAdapter(FakeChatClient(error=RuntimeError("boom")), model="m")
        assert await adapter.explain("anything") == FALLBACK_FAILED_MESSAGE

    @pytest.mark.asyncio
    async def test_whitespace_answer_is_a_failure(self):
        adapter = AIFallbackAdapter(FakeChatClient(response=" \n\n "), model="m")
        assert await adapter.explain("anything") == FALLBACK_FAILED_MESSAGE
