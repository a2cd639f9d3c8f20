"""
Fuzzy Index
===========

Approximate matching over one composite search string per hadith:

    normalize(english) + " " + collection display name (lowercase) + " " + number

Scoring uses rapidfuzz. A document's similarity is the better of
`partial_ratio` (best-aligned substring, so position in the text does not
matter) and `token_set_ratio` (query words in any order). Distance is
`1 - similarity`; documents at or below the threshold are kept, best first,
ties in corpus order.

Every query keyword must also be found in the document (per-keyword
`partial_ratio` at or above the same cutoff). A phrase with one absent word
is a miss and goes to the AI fallback.

The index is built in one go and swapped in whole. Until the first build
completes, every search returns no matches.
"""

import logging
import threading
from dataclasses import dataclass
from typing import TYPE_CHECKING, Dict, List, Optional, Sequence, Tuple

from rapidfuzz import fuzz, process

from takhrij.tools.text_normalizer import extract_keywords, normalize

if TYPE_CHECKING:
    from takhrij.corpus import HadithRecord

logger = logging.getLogger(__name__)

DEFAULT_THRESHOLD = 0.2
DEFAULT_MAX_RESULTS = 10

SCORERS = (fuzz.partial_ratio, fuzz.token_set_ratio)


@dataclass(frozen=True)
class SearchDocument:
    """Composite search string owned by one record."""
    text: str
    record: "HadithRecord"


@dataclass(frozen=True)
class FuzzyMatch:
    """A matched record and its distance (0 = exact)."""
    record: "HadithRecord"
    distance: float


def build_search_text(record: "HadithRecord") -> str:
    return (
        f"{normalize(record.english)} "
        f"{record.collection.display_name.lower()} "
        f"{record.number or ''}"
    )


def required_terms(query: str) -> List[str]:
    """Normalized keywords that a matching document has to contain."""
    return normalize(" ".join(extract_keywords(query))).split()


class FuzzyIndex:
    """Approximate string index over the whole corpus."""

    def __init__(self, threshold: float = DEFAULT_THRESHOLD, max_results: int = DEFAULT_MAX_RESULTS):
        if not 0.0 <= threshold <= 1.0:
            raise ValueError("threshold must be between 0 and 1")
        self.threshold = threshold
        self.max_results = max_results
        # (documents, choices) swapped together so readers never see a half-built pair
        self._snapshot: Optional[Tuple[List[SearchDocument], List[str]]] = None
        self._build_lock = threading.Lock()

    @property
    def is_ready(self) -> bool:
        return self._snapshot is not None

    @property
    def size(self) -> int:
        return len(self._snapshot[0]) if self._snapshot is not None else 0

    @property
    def min_score(self) -> float:
        """rapidfuzz score (0-100) equivalent of the distance threshold."""
        return round((1.0 - self.threshold) * 100, 6)

    def build(self, records: Sequence["HadithRecord"]) -> None:
        """Rebuild from scratch. Only one build runs at a time."""
        with self._build_lock:
            documents = [SearchDocument(text=build_search_text(r), record=r) for r in records]
            choices = [doc.text for doc in documents]
            self._snapshot = (documents, choices)
        logger.info(f"Fuzzy index built: {len(documents)} documents (threshold={self.threshold})")

    def search(self, query: str) -> List[FuzzyMatch]:
        """Best matches for a lowercased query, capped at max_results."""
        snapshot = self._snapshot
        if snapshot is None or not query:
            return []
        documents, choices = snapshot

        best: Dict[int, float] = {}
        for scorer in SCORERS:
            for _, score, idx in process.extract(
                query,
                choices,
                scorer=scorer,
                processor=None,
                score_cutoff=self.min_score,
                limit=None,
            ):
                if score > best.get(idx, -1.0):
                    best[idx] = score

        terms = required_terms(query)
        if terms:
            best = {
                idx: score for idx, score in best.items()
                if self._covers(choices[idx], terms)
            }

        ranked = sorted(best.items(), key=lambda item: (-item[1], item[0]))
        matches = [
            FuzzyMatch(record=documents[idx].record, distance=round(1.0 - score / 100.0, 6))
            for idx, score in ranked[:self.max_results]
        ]
        logger.debug(f"Fuzzy search '{query}': {len(best)} candidates, returning {len(matches)}")
        return matches

    def _covers(self, text: str, terms: List[str]) -> bool:
        return all(
            fuzz.partial_ratio(term, text) >= self.min_score
            for term in terms
        )
