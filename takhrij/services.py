"""
Service Wiring
==============

Every piece of process-wide state (corpus, index, caches, rate limiters) is
owned by one Services object and passed into the orchestrators, so tests and
alternative deployments can swap any of them.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from takhrij.ai_fallback import AIFallbackAdapter
from takhrij.cache_manager import ResponseCache
from takhrij.commentary import CommentaryService
from takhrij.config import Settings
from takhrij.corpus import CorpusRepository
from takhrij.fuzzy_index import FuzzyIndex
from takhrij.hadith_search import HadithSearchService
from takhrij.mutawatir import MutawatirClassifier
from takhrij.narrator_bio import NarratorBioService
from takhrij.rate_limiter import RateLimiter
from takhrij.tools.collection_loader import CollectionLoader
from takhrij.tools.llm_client import ChatClient, create_llm_client

logger = logging.getLogger(__name__)


@dataclass
class Services:
    settings: Settings
    corpus: CorpusRepository
    search: HadithSearchService
    commentary: CommentaryService
    narrator_bio: NarratorBioService
    commentary_cache: ResponseCache
    bio_cache: ResponseCache

    async def load_corpus(self) -> int:
        """Load and index the collections; failures leave the corpus empty."""
        try:
            return await self.corpus.load()
        except Exception as e:
            logger.error(f"Failed to load hadith collections: {e}", exc_info=True)
            return 0


def build_services(
    settings: Settings,
    llm_client: Optional[ChatClient] = None,
    loader: Optional[CollectionLoader] = None,
    classifier: Optional[MutawatirClassifier] = None,
) -> Services:
    """Wire the application from settings; any collaborator can be injected."""
    llm_client = llm_client or create_llm_client(settings)
    loader = loader or CollectionLoader.from_settings(settings)
    classifier = classifier or MutawatirClassifier.from_file(settings.mutawatir_file)

    index = FuzzyIndex(
        threshold=settings.search_threshold,
        max_results=settings.search_max_results,
    )
    corpus = CorpusRepository(index=index, loader=loader)

    fallback = AIFallbackAdapter(
        llm_client,
        model=settings.fallback_model,
        max_tokens=settings.fallback_max_tokens,
        temperature=settings.fallback_temperature,
    )
    search = HadithSearchService(index=index, classifier=classifier, fallback=fallback)

    commentary_cache = ResponseCache(name="commentary")
    commentary = CommentaryService(
        llm_client,
        cache=commentary_cache,
        limiter=RateLimiter(
            max_calls=settings.ai_rate_limit_max_calls,
            window_seconds=settings.ai_rate_limit_window_seconds,
            name="commentary",
        ),
        model=settings.commentary_model,
        max_tokens=settings.commentary_max_tokens,
        temperature=settings.commentary_temperature,
        coalesce_inflight=settings.commentary_coalesce_inflight,
    )

    bio_cache = ResponseCache(name="narrator_bio")
    narrator_bio = NarratorBioService(
        llm_client,
        cache=bio_cache,
        limiter=RateLimiter(
            max_calls=settings.ai_rate_limit_max_calls,
            window_seconds=settings.ai_rate_limit_window_seconds,
            name="narrator_bio",
        ),
        model=settings.bio_model,
        max_tokens=settings.bio_max_tokens,
        temperature=settings.bio_temperature,
    )

    return Services(
        settings=settings,
        corpus=corpus,
        search=search,
        commentary=commentary,
        narrator_bio=narrator_bio,
        commentary_cache=commentary_cache,
        bio_cache=bio_cache,
    )
