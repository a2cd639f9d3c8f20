"""
Narrator Biographies
====================

Structured biography of a narrator from the nine books, requested from the
model under a constrained prompt. Shares the protections of the commentary
path: per-client rate limiting and a process-lifetime cache.
"""

import logging
from typing import Optional

from takhrij.cache_manager import ResponseCache, bio_key
from takhrij.commentary import strip_code_fences
from takhrij.models import NarratorBioResponse
from takhrij.rate_limiter import RateLimiter
from takhrij.tools.llm_client import ChatClient, LLMError
from takhrij.utils.fallbacks import failed_bio, missing_name_bio, rate_limited_bio

logger = logging.getLogger(__name__)


BIO_SYSTEM_PROMPT = """
You are a Salafi-trained hadith researcher. The user will give you the name of a narrator. Respond with a structured biography in Markdown using **bold labels only**, with no code fences and no bullet points.

Only include confirmed narrators found in the major hadith chains from the 9 primary books: Bukhari, Muslim, Abu Dawood, Tirmidhi, Nasai, Ibn Majah, Ahmad, Malik, and Darimi.

If the narrator is unclear, ambiguous, or not found in the classical rijal books, respond exactly in this format:
**Narrator unclear:** [Brief reason why the narrator is not known or verified]

Use this exact format:

**Name:** [Full name]
**Birth:** [Hijri year or estimate]
**Death:** [Hijri year]
**Era:** [e.g. Sahabi, Tabi'i, Tabi' al-Tabi'in]

**Teachers:** [List at least 3–5 known teachers]

**Students:** [List at least 3–5 known students]

**Scholarly Remarks:** Summarize what other major scholars said (e.g. Al-Dhahabi, Yahya ibn Ma’in, Al-Nasa’i, Ibn Sa’d, Ibn Hajar, al-Albani).
If any disagreement exists, explain clearly but briefly.
End with a clarifying statement if Ibn Hajar maintained his grading in Taqrib al-Tahdhib despite criticism.

Never invent teachers, students, dates, or scholarly statements.
""".strip()


class NarratorBioService:
    """Rate-limited, cached narrator biographies."""

    def __init__(
        self,
        client: ChatClient,
        cache: ResponseCache,
        limiter: RateLimiter,
        model: str,
        max_tokens: int = 800,
        temperature: Optional[float] = 0.0,
    ):
        self.client = client
        self.cache = cache
        self.limiter = limiter
        self.model = model
        self.max_tokens = max_tokens
        self.temperature = temperature

    async def describe(self, name: str, client_id: str) -> NarratorBioResponse:
        name = (name or "").strip()
        if not name:
            return missing_name_bio()

        if not self.limiter.allow(client_id):
            return rate_limited_bio()

        key = bio_key(name)
        cached = self.cache.get(key)
        if cached is not None:
            logger.info(f"Narrator bio cache hit: {key}")
            return NarratorBioResponse(**cached)

        logger.info(f"Requesting biography for narrator '{name}'")
        try:
            raw = await self.client.complete(
                BIO_SYSTEM_PROMPT,
                name,
                model=self.model,
                max_tokens=self.max_tokens,
                temperature=self.temperature,
            )
        except LLMError as e:
            logger.error(f"Narrator bio error for '{name}': {e}")
            return failed_bio()
        except Exception as e:
            logger.error(f"Unexpected narrator bio error for '{name}': {e}", exc_info=True)
            return failed_bio()

        bio = strip_code_fences(raw)
        if not bio:
            logger.error(f"Narrator bio for '{name}' was empty after cleanup")
            return failed_bio()

        payload = NarratorBioResponse(bio=bio)
        self.cache.set(key, payload.model_dump())
        return payload
