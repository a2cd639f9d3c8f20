"""
Hadith Search
=============

Retrieval with AI fallback:

    Validate → Match → Found: format each match
                     → NotFound: AI fallback
                     → Respond (always one non-empty text)

A query with no searchable keywords, or one arriving before the index is
built, is treated exactly like a query with no matches.
"""

import logging
from typing import List

from takhrij.ai_fallback import AIFallbackAdapter
from takhrij.corpus import HadithRecord
from takhrij.fuzzy_index import FuzzyIndex
from takhrij.mutawatir import MutawatirClassifier
from takhrij.tools.text_normalizer import extract_keywords
from takhrij.utils.fallbacks import (
    FALLBACK_FAILED_MESSAGE,
    NO_ARABIC_PLACEHOLDER,
    NO_QUERY_MESSAGE,
)

logger = logging.getLogger(__name__)


class HadithSearchService:
    """Looks a query up in the corpus and falls back to the model on a miss."""

    def __init__(
        self,
        index: FuzzyIndex,
        classifier: MutawatirClassifier,
        fallback: AIFallbackAdapter,
    ):
        self.index = index
        self.classifier = classifier
        self.fallback = fallback

    def find_matches(self, query: str) -> List[HadithRecord]:
        """Ranked records for a query; empty when it is unsearchable or the index is not ready."""
        q = (query or "").lower().strip()
        if not q:
            return []

        keywords = extract_keywords(q)
        if not keywords:
            logger.info(f"No searchable keywords in '{q}'")
            return []

        if not self.index.is_ready:
            logger.warning("Search index not built yet; treating as no match")
            return []

        matches = self.index.search(q)
        logger.info(f"'{q}' matched {len(matches)} hadiths (keywords={keywords})")
        return [m.record for m in matches]

    def format_match(self, record: HadithRecord) -> str:
        classification = self.classifier.classify(record.reference)
        return (
            f"---\n"
            f"Arabic Matn: {record.arabic or NO_ARABIC_PLACEHOLDER}\n"
            f"English Matn: {record.english or ''}\n"
            f"Reference: {record.reference}\n"
            f"{classification.format()}"
        )

    async def search(self, query: str) -> str:
        """Formatted matches, or the AI fallback text."""
        q = (query or "").strip()
        if not q:
            return NO_QUERY_MESSAGE

        try:
            matches = self.find_matches(q)
        except Exception as e:
            # Index errors degrade to a miss
            logger.error(f"Search failed for '{q}': {e}", exc_info=True)
            matches = []

        if matches:
            return "\n".join(self.format_match(record) for record in matches)

        result = await self.fallback.explain(q)
        return result or FALLBACK_FAILED_MESSAGE
