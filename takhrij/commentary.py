"""
Hadith Commentary
=================

Structured scholarly commentary for one already-identified hadith.

Flow:
    ValidateFields → RateLimitCheck → CacheLookup → Hit: return cached
                                                  → Miss: Invoke → Parse → Override → CacheStore

The model answers in free text. Three labelled sections are pulled out of it
(Commentary, Chain of Narrators, Evaluation of Hadith); a missing section
becomes a fixed placeholder and never fails the request. For Sahih Bukhari and
Sahih Muslim the evaluation always states that the chain is sound, whatever
the model wrote.

Concurrent requests for the same uncached key can share one model call
(single-flight) instead of each calling the model and racing to write the
cache.
"""

import asyncio
import logging
import re
from dataclasses import dataclass
from typing import Dict, Optional

from takhrij.cache_manager import ResponseCache, commentary_key
from takhrij.models import AUTHENTIC_BY_DEFAULT, CollectionKey, CommentaryRequest, CommentaryResponse
from takhrij.rate_limiter import RateLimiter
from takhrij.tools.llm_client import ChatClient, LLMError
from takhrij.tools.text_normalizer import truncate
from takhrij.utils.fallbacks import (
    NO_CHAIN,
    NO_COMMENTARY,
    NO_EVALUATION,
    failed_commentary,
    missing_field_commentary,
    rate_limited_commentary,
)

logger = logging.getLogger(__name__)

ENGLISH_SNIPPET_CHARS = 500
SOUND_CHAIN_LINE = "Chain is sound and reliable by default."


COMMENTARY_SYSTEM_PROMPT = (
    "You are a specialist in Hadith sciences, trained on the methodology of Salafi scholars like "
    "Ibn Taymiyyah, Ibn al-Qayyim, Al-Albani, Ibn Baz, Ibn Uthaymeen, as well as classical scholars "
    "like Ibn Hajar, Al-Dhahabi, and Al-Shafi'i.\n"
    "Output exactly these three sections in order and nothing else:\n"
    "Commentary: 3–4 sentences explaining context, meaning, and importance but **do not comment on "
    "the chain** here. If the hadith is from Sahih Bukhari, base the explanation on Fath al-Bari by "
    "Ibn Hajar. If the hadith is from Sahih Muslim, base the explanation on Sharh of Imam Nawawi. If "
    "neither is available, provide a general context explanation from the known Sunnah.\n"
    "Chain of Narrators: extract from the Arabic text and transliterate into English, separated by →.\n"
    "Evaluation of Hadith:\n"
    "- Provide a **brief but accurate** analysis of the chain's strength or weakness, based **only "
    "on the known status of narrators**.\n"
    "- If a narrator is known to be weak, explicitly mention it and who criticised them "
    "(e.g., \"X is considered weak by Al-Albani\").\n"
    "- If there is a known disconnection (e.g., mursal, missing link), say it clearly.\n"
    f"- If the chain is from Sahih Bukhari or Sahih Muslim, always state: \"{SOUND_CHAIN_LINE}\"\n"
    "- If a narrator's status is unknown, say: \"Status of [name] is unclear.\" If the soundness of "
    "the chain cannot be determined, say so.\n"
    "- Do NOT classify a hadith as mutawatir or ahad unless it is explicitly stated in reliable "
    "classical sources (e.g., Ibn Hajar, Al-Albani). Otherwise state: \"Classification of ahad or "
    "mutawatir not specified.\"\n"
    "- Only classify a hadith as Qudsi, Marfu', or Mawquf if the chain or text explicitly indicates "
    "it. If unclear, say: \"Classification of Qudsi, Marfu', or Mawquf not specified.\"\n"
    "\n"
    "Be concise, precise, and avoid fabricating any sources or narrators."
)


# ==========================================
#  PROMPT BUILDER
# ==========================================

class CommentaryPromptBuilder:
    """Builds the commentary prompts (kept separate so they can be tested without a model)."""

    @staticmethod
    def get_system_prompt() -> str:
        return COMMENTARY_SYSTEM_PROMPT

    @staticmethod
    def build_user_prompt(english: str, arabic: str, reference: str, collection: str) -> str:
        snippet = truncate(english, ENGLISH_SNIPPET_CHARS)
        return (
            f"Reference: {reference}\n"
            f"Collection: {collection}\n"
            f"Hadith (Arabic): {arabic}\n"
            f"Hadith (English): {snippet}"
        )


# ==========================================
#  RESPONSE PARSER
# ==========================================

_FENCE_RE = re.compile(r'```[a-zA-Z]*')
_COMMENTARY_RE = re.compile(r'Commentary[^:]*:\s*(.*?)(?=Chain of Narrators[^:]*:)', re.IGNORECASE | re.DOTALL)
_CHAIN_RE = re.compile(r'Chain of Narrators[^:]*:\s*(.*?)(?=Evaluation[^:]*:)', re.IGNORECASE | re.DOTALL)
_EVALUATION_RE = re.compile(r'Evaluation[^:]*:\s*(.*)', re.IGNORECASE | re.DOTALL)
# standalone sentences or lines only
_SOUND_CHAIN_RE = re.compile(
    r'(?:^|(?<=[.!?]))[ \t]*' + re.escape(SOUND_CHAIN_LINE.rstrip('.')) + r'(?:\.|[ \t]*$)',
    re.IGNORECASE | re.MULTILINE,
)


def strip_code_fences(raw: str) -> str:
    """Drop ``` markers (and a language tag) but keep the text between them."""
    return _FENCE_RE.sub('', raw or '').strip()


def _section(pattern: re.Pattern, text: str, placeholder: str) -> str:
    match = pattern.search(text)
    if match:
        # bold markers around the labels leak into the captured text
        value = match.group(1).strip().strip('*').strip()
        if value:
            return value
    return placeholder


def parse_commentary(raw: str) -> CommentaryResponse:
    """Best-effort extraction of the three sections; never raises."""
    text = strip_code_fences(raw)
    return CommentaryResponse(
        commentary=_section(_COMMENTARY_RE, text, NO_COMMENTARY),
        chain=_section(_CHAIN_RE, text, NO_CHAIN),
        evaluation=_section(_EVALUATION_RE, text, NO_EVALUATION),
    )


def apply_authenticity_override(payload: CommentaryResponse, collection: str) -> CommentaryResponse:
    """
    Bukhari and Muslim: the evaluation states the sound-chain line exactly once.

    Other collections are returned unchanged.
    """
    if CollectionKey.resolve(collection) not in AUTHENTIC_BY_DEFAULT:
        return payload

    evaluation = payload.evaluation
    if evaluation.count(SOUND_CHAIN_LINE) == 1:
        return payload

    lines = [line.rstrip() for line in _SOUND_CHAIN_RE.sub('', evaluation).strip().splitlines()]
    remainder = "\n".join(line for line in lines if line.strip())
    if SOUND_CHAIN_LINE in remainder:
        evaluation = remainder
    else:
        evaluation = f"{remainder}\n{SOUND_CHAIN_LINE}" if remainder else SOUND_CHAIN_LINE
    return payload.model_copy(update={"evaluation": evaluation})


# ==========================================
#  SERVICE
# ==========================================

@dataclass
class HadithFields:
    english: str
    arabic: str
    reference: str
    collection: str

    @classmethod
    def from_request(cls, request: CommentaryRequest) -> "HadithFields":
        return cls(
            english=(request.english or "").strip(),
            arabic=(request.arabic or "").strip(),
            reference=(request.reference or "").strip(),
            collection=(request.collection or "").strip().lower(),
        )

    def is_complete(self) -> bool:
        return all([self.english, self.arabic, self.reference, self.collection])


class CommentaryService:
    """
    Usage:
        service = CommentaryService(client, cache, limiter, model="openai/gpt-4o-mini")
        payload = await service.comment(request, client_id="1.2.3.4")
    """

    def __init__(
        self,
        client: ChatClient,
        cache: ResponseCache,
        limiter: RateLimiter,
        model: str,
        max_tokens: int = 600,
        temperature: Optional[float] = 0.0,
        coalesce_inflight: bool = True,
    ):
        self.client = client
        self.cache = cache
        self.limiter = limiter
        self.model = model
        self.max_tokens = max_tokens
        self.temperature = temperature
        self.coalesce_inflight = coalesce_inflight
        self.prompt_builder = CommentaryPromptBuilder()
        self._inflight: Dict[str, asyncio.Future] = {}

    async def comment(self, request: CommentaryRequest, client_id: str) -> CommentaryResponse:
        fields = HadithFields.from_request(request)

        if not fields.is_complete():
            logger.info("Commentary request missing a required field")
            return missing_field_commentary()

        if not self.limiter.allow(client_id):
            return rate_limited_commentary()

        key = commentary_key(fields.reference, fields.collection)
        cached = self.cache.get(key)
        if cached is not None:
            logger.info(f"Commentary cache hit: {key}")
            return CommentaryResponse(**cached)

        if not self.coalesce_inflight:
            return await self._generate(key, fields)

        pending = self._inflight.get(key)
        if pending is not None:
            logger.info(f"Joining in-flight commentary request: {key}")
            return (await asyncio.shield(pending)).model_copy()

        future = asyncio.get_running_loop().create_future()
        self._inflight[key] = future
        try:
            result = await self._generate(key, fields)
        except BaseException:
            # joiners get the fixed payload when the leader is cancelled or fails
            if not future.done():
                future.set_result(failed_commentary())
            raise
        else:
            future.set_result(result)
            return result
        finally:
            self._inflight.pop(key, None)

    async def _generate(self, key: str, fields: HadithFields) -> CommentaryResponse:
        """Call the model, parse, override and cache. Failures return the fixed payload uncached."""
        system_prompt = self.prompt_builder.get_system_prompt()
        user_prompt = self.prompt_builder.build_user_prompt(
            fields.english, fields.arabic, fields.reference, fields.collection
        )

        logger.info(f"Requesting commentary for {key}")
        try:
            raw = await self.client.complete(
                system_prompt,
                user_prompt,
                model=self.model,
                max_tokens=self.max_tokens,
                temperature=self.temperature,
            )
        except LLMError as e:
            logger.error(f"Commentary error for {key}: {e}")
            return failed_commentary()
        except Exception as e:
            logger.error(f"Unexpected commentary error for {key}: {e}", exc_info=True)
            return failed_commentary()

        payload = parse_commentary(raw)
        payload = apply_authenticity_override(payload, fields.collection)

        self.cache.set(key, payload.model_dump())
        return payload
