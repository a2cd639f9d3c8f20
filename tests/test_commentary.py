"""
Unit Tests for Hadith Commentary
================================

Test Categories:
1. Prompt Tests - user prompt layout and truncation
2. Parser Tests - section extraction and placeholders
3. Override Tests - sound-chain line for Bukhari and Muslim
4. Service Tests - validation, rate limiting, caching, failures, coalescing
"""

import asyncio

import pytest

from takhrij.cache_manager import ResponseCache, commentary_key
from takhrij.commentary import (
    SOUND_CHAIN_LINE,
    CommentaryPromptBuilder,
    CommentaryService,
    apply_authenticity_override,
    parse_commentary,
    strip_code_fences,
)
from takhrij.models import CommentaryRequest, CommentaryResponse
from takhrij.rate_limiter import RateLimiter
from takhrij.tools.llm_client import LLMError
from takhrij.utils.fallbacks import (
    MISSING_FIELD_MESSAGE,
    RATE_LIMIT_MESSAGE,
    failed_commentary,
)

from conftest import SAMPLE_COMMENTARY, FakeChatClient


# ==========================================
#  FIXTURES
# ==========================================

@pytest.fixture
def request_body() -> CommentaryRequest:
    return CommentaryRequest(
        english="The moon was split into two halves.",
        arabic="انشق القمر",
        reference="Sahih Bukhari 3868",
        collection="bukhari",
    )


@pytest.fixture
def cache() -> ResponseCache:
    return ResponseCache(name="commentary-test")


@pytest.fixture
def limiter() -> RateLimiter:
    return RateLimiter(max_calls=15, window_seconds=86400)


@pytest.fixture
def service(fake_llm, cache, limiter) -> CommentaryService:
    return CommentaryService(fake_llm, cache=cache, limiter=limiter, model="commentary-model")


# ==========================================
#  PROMPT TESTS
# ==========================================

class TestPromptBuilder:

    def test_user_prompt_layout(self):
        prompt = CommentaryPromptBuilder.build_user_prompt(
            "English text", "نص", "Sahih Muslim 1", "muslim"
        )
        assert prompt == (
            "Reference: Sahih Muslim 1\n"
            "Collection: muslim\n"
            "Hadith (Arabic): نص\n"
            "Hadith (English): English text"
        )

    def test_english_is_truncated(self):
        english = "line\n" + "x" * 800
        prompt = CommentaryPromptBuilder.build_user_prompt(english, "a", "r", "c")
        snippet = prompt.split("Hadith (English): ", 1)[1]

        assert "\n" not in snippet
        assert snippet.endswith("…")
        assert len(snippet) == 501

    def test_system_prompt_demands_sound_chain_line(self):
        assert SOUND_CHAIN_LINE in CommentaryPromptBuilder.get_system_prompt()


# ==========================================
#  PARSER TESTS
# ==========================================

class TestParseCommentary:

    def test_all_sections(self):
        payload = parse_commentary(SAMPLE_COMMENTARY)

        assert payload.commentary.startswith("The Prophet showed the people of Makkah")
        assert payload.chain == "Anas ibn Malik → Qatada → Shayban"
        assert payload.evaluation == "All narrators are trustworthy and the chain is connected."

    def test_code_fences_and_bold_labels(self):
        raw = (
            "```markdown\n"
            "**Commentary:** Context here.\n"
            "**Chain of Narrators:** A → B\n"
            "**Evaluation of Hadith:** Sound.\n"
            "```"
        )
        payload = parse_commentary(raw)

        assert payload.commentary == "Context here."
        assert payload.chain == "A → B"
        assert payload.evaluation == "Sound."

    def test_unstructured_text_gives_placeholders(self):
        payload = parse_commentary("I cannot help with that.")
        assert payload == failed_commentary()

    def test_only_evaluation_present(self):
        payload = parse_commentary("Evaluation: weak chain")
        assert payload.commentary == "No commentary."
        assert payload.chain == "No chain."
        assert payload.evaluation == "weak chain"

    def test_empty_section_gives_placeholder(self):
        payload = parse_commentary("Commentary:\nChain of Narrators: A → B\nEvaluation: ok")
        assert payload.commentary == "No commentary."

    def test_strip_code_fences_keeps_content(self):
        assert strip_code_fences("```json\n{\"a\": 1}\n```") == "{\"a\": 1}"


# ==========================================
#  OVERRIDE TESTS
# ==========================================

class TestAuthenticityOverride:

    @staticmethod
    def _payload(evaluation: str) -> CommentaryResponse:
        return CommentaryResponse(commentary="c", chain="a → b", evaluation=evaluation)

    @pytest.mark.parametrize("collection", ["bukhari", "muslim", "Sahih Bukhari", "MUSLIM"])
    def test_line_added_for_authentic_collections(self, collection):
        result = apply_authenticity_override(self._payload("Narrators are reliable."), collection)
        assert result.evaluation == f"Narrators are reliable.\n{SOUND_CHAIN_LINE}"
        assert result.evaluation.count(SOUND_CHAIN_LINE) == 1

    def test_line_already_present_once(self):
        evaluation = f"Reliable. {SOUND_CHAIN_LINE}"
        result = apply_authenticity_override(self._payload(evaluation), "bukhari")
        assert result.evaluation == evaluation

    def test_duplicate_lines_collapsed(self):
        evaluation = f"Reliable.\n{SOUND_CHAIN_LINE}\n{SOUND_CHAIN_LINE}"
        result = apply_authenticity_override(self._payload(evaluation), "muslim")
        assert result.evaluation == f"Reliable.\n{SOUND_CHAIN_LINE}"

    def test_case_variant_replaced(self):
        evaluation = "Reliable.\nchain is sound and reliable by default"
        result = apply_authenticity_override(self._payload(evaluation), "bukhari")
        assert result.evaluation == f"Reliable.\n{SOUND_CHAIN_LINE}"

    def test_phrase_inside_prose_kept(self):
        evaluation = "The chain is sound and reliable by default, since all narrators are trustworthy."
        result = apply_authenticity_override(self._payload(evaluation), "bukhari")
        assert result.evaluation == f"{evaluation}\n{SOUND_CHAIN_LINE}"

    def test_sentence_continuing_past_phrase_kept(self):
        evaluation = "Chain is sound and reliable by default, as both narrators are trustworthy."
        result = apply_authenticity_override(self._payload(evaluation), "muslim")
        assert result.evaluation == f"{evaluation}\n{SOUND_CHAIN_LINE}"

    def test_repeated_sentences_within_a_line_collapsed(self):
        evaluation = f"Reliable. {SOUND_CHAIN_LINE} Connected. {SOUND_CHAIN_LINE}"
        result = apply_authenticity_override(self._payload(evaluation), "bukhari")
        assert result.evaluation == f"Reliable. Connected.\n{SOUND_CHAIN_LINE}"

    def test_placeholder_evaluation(self):
        result = apply_authenticity_override(self._payload("No evaluation."), "bukhari")
        assert result.evaluation == f"No evaluation.\n{SOUND_CHAIN_LINE}"

    @pytest.mark.parametrize("collection", ["tirmidhi", "abudawud", "ahmed", "unknown"])
    def test_other_collections_untouched(self, collection):
        payload = self._payload("Weak: X is considered weak by Al-Albani.")
        assert apply_authenticity_override(payload, collection) == payload


# ==========================================
#  SERVICE TESTS
# ==========================================

class TestCommentaryService:

    @pytest.mark.asyncio
    async def test_generates_and_caches(self, service, fake_llm, cache, request_body):
        payload = await service.comment(request_body, "1.2.3.4")

        assert payload.chain == "Anas ibn Malik → Qatada → Shayban"
        assert payload.evaluation.endswith(SOUND_CHAIN_LINE)
        assert commentary_key("Sahih Bukhari 3868", "bukhari") in cache

        call = fake_llm.calls[0]
        assert call["model"] == "commentary-model"
        assert call["max_tokens"] == 600
        assert call["temperature"] == 0.0
        assert "Reference: Sahih Bukhari 3868" in call["user"]

    @pytest.mark.asyncio
    async def test_second_request_served_from_cache(self, service, fake_llm, request_body):
        first = await service.comment(request_body, "1.2.3.4")
        second = await service.comment(request_body, "5.6.7.8")

        assert first == second
        assert len(fake_llm.calls) == 1

    @pytest.mark.asyncio
    async def test_cache_key_ignores_collection_case(self, service, fake_llm, request_body):
        await service.comment(request_body, "ip")
        await service.comment(request_body.model_copy(update={"collection": "Bukhari"}), "ip")
        assert len(fake_llm.calls) == 1

    @pytest.mark.asyncio
    @pytest.mark.parametrize("field", ["english", "arabic", "reference", "collection"])
    async def test_missing_field(self, service, fake_llm, limiter, request_body, field):
        body = request_body.model_copy(update={field: "   "})

        payload = await service.comment(body, "1.2.3.4")

        assert payload == CommentaryResponse(commentary=MISSING_FIELD_MESSAGE, chain="", evaluation="")
        assert fake_llm.calls == []
        assert limiter.get_count("1.2.3.4") == 0

    @pytest.mark.asyncio
    async def test_sixteenth_call_is_rate_limited(self, service, fake_llm, cache, request_body):
        for n in range(15):
            body = request_body.model_copy(update={"reference": f"Sahih Bukhari {n}"})
            await service.comment(body, "9.9.9.9")
        assert len(cache) == 15

        body = request_body.model_copy(update={"reference": "Sahih Bukhari 999"})
        payload = await service.comment(body, "9.9.9.9")

        assert payload == CommentaryResponse(commentary=RATE_LIMIT_MESSAGE, chain="", evaluation="")
        assert len(cache) == 15
        assert len(fake_llm.calls) == 15

    @pytest.mark.asyncio
    async def test_cache_hits_count_against_quota(self, cache, fake_llm, request_body):
        limiter = RateLimiter(max_calls=2, window_seconds=60)
        service = CommentaryService(fake_llm, cache=cache, limiter=limiter, model="m")

        await service.comment(request_body, "ip")
        await service.comment(request_body, "ip")
        payload = await service.comment(request_body, "ip")

        assert payload.commentary == RATE_LIMIT_MESSAGE

    @pytest.mark.asyncio
    async def test_model_failure_not_cached(self, cache, limiter, request_body):
        client = FakeChatClient(error=LLMError("HTTP 500"))
        service = CommentaryService(client, cache=cache, limiter=limiter, model="m")

        first = await service.comment(request_body, "ip")
        second = await service.comment(request_body, "ip")

        assert first == failed_commentary()
        assert second == failed_commentary()
        assert len(client.calls) == 2
        assert len(cache) == 0

    @pytest.mark.asyncio
    async def test_unexpected_failure(self, cache, limiter, request_body):
        client = FakeChatClient(error=KeyError("choices"))
        service = CommentaryService(client, cache=cache, limiter=limiter, model="m")
        assert await service.comment(request_body, "ip") == failed_commentary()

    @pytest.mark.asyncio
    async def test_non_authentic_collection_keeps_model_evaluation(self, service, request_body):
        body = request_body.model_copy(update={"collection": "tirmidhi", "reference": "Jami` at-Tirmidhi 1"})
        payload = await service.comment(body, "ip")
        assert payload.evaluation == "All narrators are trustworthy and the chain is connected."

    @pytest.mark.asyncio
    async def test_concurrent_requests_share_one_call(self, service, fake_llm, request_body):
        fake_llm.gate = asyncio.Event()

        first = asyncio.create_task(service.comment(request_body, "a"))
        second = asyncio.create_task(service.comment(request_body, "b"))
        await asyncio.sleep(0)
        await asyncio.sleep(0)
        fake_llm.gate.set()

        results = await asyncio.gather(first, second)

        assert results[0] == results[1]
        assert len(fake_llm.calls) == 1

    @pytest.mark.asyncio
    async def test_coalescing_can_be_disabled(self, fake_llm, cache, limiter, request_body):
        service = CommentaryService(fake_llm, cache=cache, limiter=limiter, model="m", coalesce_inflight=False)
        fake_llm.gate = asyncio.Event()

        tasks = [asyncio.create_task(service.comment(request_body, "a")) for _ in range(2)]
        await asyncio.sleep(0)
        await asyncio.sleep(0)
        fake_llm.gate.set()
        await asyncio.gather(*tasks)

        assert len(fake_llm.calls) == 2

    @pytest.mark.asyncio
    async def test_cancelled_leader_releases_joiners_with_fixed_payload(self, service, fake_llm, cache, request_body):
        fake_llm.gate = asyncio.Event()

        leader = asyncio.create_task(service.comment(request_body, "a"))
        await asyncio.sleep(0)
        joiner = asyncio.create_task(service.comment(request_body, "b"))
        await asyncio.sleep(0)
        leader.cancel()

        with pytest.raises(asyncio.CancelledError):
            await leader

        assert await joiner == failed_commentary()
        assert len(fake_llm.calls) == 1
        assert len(cache) == 0
        assert service._inflight == {}

    @pytest.mark.asyncio
    async def test_failing_leader_releases_joiners_with_fixed_payload(self, service, request_body, mocker):
        gate = asyncio.Event()

        async def broken(key, fields):
            await gate.wait()
            raise RuntimeError("parser bug")

        mocker.patch.object(service, "_generate", side_effect=broken)

        leader = asyncio.create_task(service.comment(request_body, "a"))
        await asyncio.sleep(0)
        joiner = asyncio.create_task(service.comment(request_body, "b"))
        await asyncio.sleep(0)
        gate.set()

        with pytest.raises(RuntimeError):
            await leader

        assert await joiner == failed_commentary()
        assert service._inflight == {}
