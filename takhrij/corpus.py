"""
Hadith Corpus
=============

Canonical in-memory records for the nine collections.

Raw source records come in several shapes (English as a plain string, as an
object with `text`/`body`, or as top-level `text`/`body`; the number as
`hadithnumber`, `id` or `number`). They are resolved once, at ingestion, into
one immutable HadithRecord shape. Nothing downstream looks at raw records.

The repository owns the records and rebuilds the search index in full every
time the corpus is (re)loaded.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from takhrij.fuzzy_index import FuzzyIndex
from takhrij.models import CollectionKey
from takhrij.tools.collection_loader import CollectionLoader, RawCollections

logger = logging.getLogger(__name__)

UNKNOWN_NUMBER = "Unknown"


# ==========================================
#  FIELD RESOLUTION
# ==========================================

def resolve_english(raw: Dict[str, Any]) -> Optional[str]:
    """
    English matn in priority order:
    plain `english` string, `english.text` / `english.body`, `text`, `body`.
    """
    english = raw.get("english")
    if isinstance(english, str):
        return english
    if isinstance(english, dict):
        for field in ("text", "body"):
            value = english.get(field)
            if isinstance(value, str) and value:
                return value
        return ""
    for field in ("text", "body"):
        value = raw.get(field)
        if isinstance(value, str):
            return value
    return None


def resolve_number(raw: Dict[str, Any]) -> Optional[str]:
    """First non-empty of `hadithnumber`, `id`, `number`."""
    for field in ("hadithnumber", "id", "number"):
        value = raw.get(field)
        if value is None or value == "" or value == 0 or isinstance(value, bool):
            continue
        if isinstance(value, float) and value.is_integer():
            value = int(value)
        return str(value).strip() or None
    return None


# ==========================================
#  RECORDS
# ==========================================

@dataclass(frozen=True)
class HadithRecord:
    """One hadith, immutable once loaded."""
    collection: CollectionKey
    arabic: Optional[str]
    english: Optional[str]
    number: Optional[str]
    reference: str

    @property
    def reference_number(self) -> str:
        return self.number or UNKNOWN_NUMBER

    @classmethod
    def from_raw(cls, collection: CollectionKey, raw: Dict[str, Any]) -> "HadithRecord":
        number = resolve_number(raw)

        arabic = raw.get("arabic")
        if not isinstance(arabic, str) or not arabic.strip():
            arabic = None

        reference = raw.get("reference")
        if not isinstance(reference, str) or not reference.strip():
            reference = f"{collection.display_name} {number or UNKNOWN_NUMBER}"

        return cls(
            collection=collection,
            arabic=arabic,
            english=resolve_english(raw),
            number=number,
            reference=reference.strip(),
        )


# ==========================================
#  REPOSITORY
# ==========================================

class CorpusRepository:
    """
    Owns the loaded collections and keeps the search index in sync.

    Usage:
        repo = CorpusRepository(index=FuzzyIndex(), loader=loader)
        await repo.load()
        repo.index.search("moon split")
    """

    def __init__(self, index: FuzzyIndex, loader: Optional[CollectionLoader] = None):
        self.index = index
        self.loader = loader
        self._collections: Dict[CollectionKey, List[HadithRecord]] = {
            key: [] for key in CollectionKey
        }

    @property
    def records(self) -> List[HadithRecord]:
        """All records, in collection order."""
        return [record for key in CollectionKey for record in self._collections[key]]

    @property
    def is_ready(self) -> bool:
        return self.index.is_ready

    def counts(self) -> Dict[str, int]:
        return {key.value: len(self._collections[key]) for key in CollectionKey}

    def ingest(self, raw: RawCollections) -> int:
        """Replace all collections from raw documents and rebuild the index."""
        collections: Dict[CollectionKey, List[HadithRecord]] = {}
        for key in CollectionKey:
            collections[key] = [HadithRecord.from_raw(key, item) for item in raw.get(key, [])]

        self._collections = collections
        records = self.records
        self.index.build(records)

        logger.info(f"Corpus ready: {len(records)} hadiths across {len(CollectionKey)} collections")
        return len(records)

    async def load(self) -> int:
        """Fetch every collection through the loader and ingest it."""
        if self.loader is None:
            raise RuntimeError("CorpusRepository has no loader configured")
        raw = await self.loader.load_all()
        return self.ingest(raw)
