"""
Mutawatir Classifier
====================

Annotates a formatted reference ("Sahih Bukhari 110") with its transmission
classification, using a small curated table of reports known to be
multiply and independently transmitted.

A reference is Mutawatir when it contains, case-insensitively, any one of an
entry's alternate reference strings. First matching entry wins. Everything
else is Ahad. The classification is presentation only; it never affects
ranking or filtering.
"""

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

from takhrij.models import ClassificationType

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MutawatirEntry:
    references: Tuple[str, ...]
    notes: str

    def matches(self, reference: str) -> bool:
        haystack = reference.lower()
        return any(ref.lower() in haystack for ref in self.references if ref)


@dataclass(frozen=True)
class Classification:
    type: ClassificationType
    notes: Optional[str] = None

    @property
    def is_mutawatir(self) -> bool:
        return self.type == ClassificationType.MUTAWATIR

    def format(self) -> str:
        """Lines appended to a search result block."""
        if self.is_mutawatir:
            return f"Classification: {self.type.value}\nNotes: {self.notes or ''}"
        return f"Classification: {self.type.value}"


AHAD = Classification(type=ClassificationType.AHAD)


def parse_entries(data: Dict[str, Any]) -> List[MutawatirEntry]:
    """Entries from the `mutawatirHadiths` document; malformed items are skipped."""
    entries = []
    for item in data.get("mutawatirHadiths", []):
        if not isinstance(item, dict):
            continue
        references = item.get("reference", [])
        if isinstance(references, str):
            references = [references]
        references = tuple(r for r in references if isinstance(r, str) and r.strip())
        if not references:
            logger.warning(f"Skipping mutawatir entry without references: {item}")
            continue
        entries.append(MutawatirEntry(references=references, notes=str(item.get("notes", ""))))
    return entries


class MutawatirClassifier:
    """Linear scan over the curated table."""

    def __init__(self, entries: Sequence[MutawatirEntry] = ()):
        self.entries = list(entries)

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "MutawatirClassifier":
        with open(path, 'r', encoding='utf-8') as f:
            data = json.load(f)
        entries = parse_entries(data)
        logger.info(f"Loaded {len(entries)} mutawatir entries from {path}")
        return cls(entries)

    def classify(self, reference: Optional[str]) -> Classification:
        if reference:
            for entry in self.entries:
                if entry.matches(reference):
                    return Classification(type=ClassificationType.MUTAWATIR, notes=entry.notes)
        return AHAD
