"""
Shared fixtures for the Takhrij test suite.

No test touches the network: the generative model is replaced by
FakeChatClient and collections are ingested from in-memory documents.
"""

import asyncio
from typing import Any, Dict, List, Optional

import pytest

from takhrij.config import Settings
from takhrij.corpus import CorpusRepository
from takhrij.fuzzy_index import FuzzyIndex
from takhrij.models import CollectionKey
from takhrij.mutawatir import MutawatirClassifier, MutawatirEntry
from takhrij.services import build_services


class FakeChatClient:
    """Scripted stand-in for a generative model."""

    def __init__(self, response: str = "", error: Optional[Exception] = None):
        self.response = response
        self.error = error
        self.calls: List[Dict[str, Any]] = []
        self.gate: Optional[asyncio.Event] = None

    async def complete(self, system, user, *, model, max_tokens, temperature=None):
        self.calls.append({
            "system": system,
            "user": user,
            "model": model,
            "max_tokens": max_tokens,
            "temperature": temperature,
        })
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        return self.response


MOON_SPLIT_ENGLISH = (
    "Narrated Anas: The people of Makkah asked the Messenger of Allah to show them "
    "a sign, and the moon was split into two halves."
)

SAMPLE_COMMENTARY = (
    "Commentary: The Prophet showed the people of Makkah a sign when they asked for one.\n"
    "Chain of Narrators: Anas ibn Malik → Qatada → Shayban\n"
    "Evaluation of Hadith: All narrators are trustworthy and the chain is connected."
)


@pytest.fixture
def raw_collections() -> Dict[CollectionKey, List[Dict[str, Any]]]:
    """One collection per source shape the loader has to cope with."""
    return {
        CollectionKey.BUKHARI: [
            {"hadithnumber": 3868, "arabic": "انشق القمر", "english": MOON_SPLIT_ENGLISH},
            {
                "hadithnumber": 1,
                "arabic": "إنما الأعمال بالنيات",
                "english": {"text": "Actions are judged by intentions, so each man will have what he intended."},
            },
        ],
        CollectionKey.MUSLIM: [
            {"id": 2553, "arabic": "البر حسن الخلق", "text": "Righteousness is good character."},
        ],
        CollectionKey.TIRMIDHI: [
            {"number": 1956, "arabic": "", "body": "Your smiling in the face of your brother is charity."},
        ],
    }


@pytest.fixture
def classifier() -> MutawatirClassifier:
    return MutawatirClassifier([
        MutawatirEntry(references=("Sahih Bukhari 3868", "Sahih Muslim 2800"), notes="Splitting of the moon."),
    ])


@pytest.fixture
def corpus(raw_collections) -> CorpusRepository:
    repo = CorpusRepository(index=FuzzyIndex(threshold=0.2, max_results=10))
    repo.ingest(raw_collections)
    return repo


@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,
        llm_provider="openrouter",
        openrouter_api_key="test-key-1234567890",
        environment="test",
        log_to_file=False,
        cors_origins="*",
    )


@pytest.fixture
def fake_llm() -> FakeChatClient:
    return FakeChatClient(response=SAMPLE_COMMENTARY)


@pytest.fixture
def services(settings, fake_llm, classifier, raw_collections):
    services = build_services(settings, llm_client=fake_llm, classifier=classifier)
    services.corpus.ingest(raw_collections)
    return services
