"""
AI Fallback
===========

Used only when a query matched nothing in the nine collections. The model is
asked, under a constrained scholarly persona, whether the phrase is authentic,
weak, fabricated or not found, and its answer is returned with explicit
provenance ("Reference: AI Generated") and a not-found warning.

The model's claims are never validated here; they are only reshaped and
labelled. Any failure yields one fixed message and the underlying error is
only logged.
"""

import logging
import re
from typing import Optional

from takhrij.tools.llm_client import ChatClient, LLMError
from takhrij.utils.fallbacks import (
    AI_GENERATED_REFERENCE,
    FALLBACK_FAILED_MESSAGE,
    NOT_FOUND_WARNING,
    SEARCH_TIP,
)

logger = logging.getLogger(__name__)


FALLBACK_SYSTEM_PROMPT = """
You are a hadith researcher trained on the Salafi methodology, including the works of Ibn Taymiyyah, Ibn al-Qayyim, Al-Albani, Ibn Baz, and Ibn Hajar.

The user submitted a phrase that may NOT be found in the 9 primary hadith collections: Sahih Bukhari, Sahih Muslim, Sunan Abu Dawood, Jami' at-Tirmidhi, Sunan Ibn Majah, Sunan an-Nasa'i, Musnad Ahmad, Muwatta Malik, and Sunan ad-Darimi. The phrase may be misquoted or inaccurately phrased.

You MUST write exactly 4 short paragraphs.

Each paragraph must be followed by **two real line breaks**, use this exact format like this:

If the phrase is authentic, provide the exact hadith and its grading.

If the hadith is not found in the 9 books, say so clearly with no ambiguity. If it is weak or fabricated, say which, citing only Ibn Taymiyyah, Ibn al-Qayyim, Al-Albani, Ibn Baz, or Ibn Hajar.

Suggest 1 sahih hadith with similar meaning and reference.

Suggest 3–5 exact **matn-style** English keywords suitable for search that is in the 9 hadith collections (e.g., “moon split”, “smiling is charity”).

Strict rules:
- Use the name “Prophet Muhammad ﷺ” with the salutation.
- Each paragraph must be **under 80 words**.
- Do not use Qur’an quotes.
- Do not combine points into a single paragraph.
- Never invent a source, a grading, or a scholar's statement.
- Do not say “it may be found elsewhere.”
- Do not apologize or say “feel free to ask.”

Respond in a clear, scholarly tone. Paragraph structure and spacing must be exact.
""".strip()


# ==========================================
#  PARAGRAPH NORMALIZER
# ==========================================

_CRLF_RE = re.compile(r'\r\n')
_EXCESS_BLANKS_RE = re.compile(r'\n{3,}')
_SENTENCE_BREAK_RE = re.compile(r'(?<=[a-z0-9])\. (?=[A-Z])')
_MULTI_NEWLINE_RE = re.compile(r'\n{2,}')
_SOFT_BREAK_RE = re.compile(r'([^\n])\n(?=[^\n])')


def format_paragraphs(raw: str) -> str:
    """
    Put a blank line between sentences and paragraphs.

    Single line breaks inside a paragraph are joined with a space.
    """
    text = _CRLF_RE.sub('\n', raw)
    text = _EXCESS_BLANKS_RE.sub('\n\n', text)
    text = _SENTENCE_BREAK_RE.sub('.\n\n', text)
    text = _MULTI_NEWLINE_RE.sub('\n\n', text)
    text = _SOFT_BREAK_RE.sub(r'\1 ', text)
    return text.strip()


def wrap_ai_result(text: str) -> str:
    """Label model text as AI generated; the warning is always the last line."""
    return (
        f"---\nEnglish Matn:\n{text}\n\n"
        f"Reference: {AI_GENERATED_REFERENCE}\n"
        f"{SEARCH_TIP}\n"
        f"{NOT_FOUND_WARNING}"
    )


# ==========================================
#  ADAPTER
# ==========================================

class AIFallbackAdapter:
    """Asks the model about a phrase that was not found verbatim."""

    def __init__(
        self,
        client: ChatClient,
        model: str,
        max_tokens: int = 1200,
        temperature: Optional[float] = None,
    ):
        self.client = client
        self.model = model
        self.max_tokens = max_tokens
        self.temperature = temperature

    async def explain(self, query: str) -> str:
        """Formatted AI answer, or the fixed failure message."""
        logger.info(f"AI fallback for: '{query[:80]}'")
        try:
            raw = await self.client.complete(
                FALLBACK_SYSTEM_PROMPT,
                query,
                model=self.model,
                max_tokens=self.max_tokens,
                temperature=self.temperature,
            )
        except LLMError as e:
            logger.error(f"AI fallback error: {e}")
            return FALLBACK_FAILED_MESSAGE
        except Exception as e:
            logger.error(f"Unexpected AI fallback error: {e}", exc_info=True)
            return FALLBACK_FAILED_MESSAGE

        text = format_paragraphs(raw)
        if not text:
            logger.error("AI fallback returned only whitespace")
            return FALLBACK_FAILED_MESSAGE

        return wrap_ai_result(text)
