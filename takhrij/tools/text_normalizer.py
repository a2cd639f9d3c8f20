"""
Text Normalization
==================

Pure helpers used for indexing and query gating:

- normalize(): strip Arabic diacritics, punctuation and case for matching
- extract_keywords(): tokens that make a query worth searching
- truncate(): bound prompt size for long matn text
"""

import re
from typing import FrozenSet, List, Optional

# Tashkeel and other Arabic combining marks
ARABIC_DIACRITICS_RE = re.compile(r'[\u064B-\u065F]')

PUNCTUATION = ".,/#!$%^&*;:{}=-_`~()"
PUNCTUATION_RE = re.compile('[' + re.escape(PUNCTUATION) + ']')

MULTI_SPACE_RE = re.compile(r'\s{2,}')
LINE_BREAKS_RE = re.compile(r'[\r\n]+')

STOP_WORDS: FrozenSet[str] = frozenset({
    "hadith", "about", "the", "a", "an", "and", "of", "in", "on", "for", "to",
})

MIN_KEYWORD_LENGTH = 3
ELLIPSIS = "…"


def normalize(text: Optional[str]) -> str:
    """
    Normalize text for fuzzy matching.

    Lowercases, removes Arabic diacritics (U+064B to U+065F), strips the
    fixed punctuation set, collapses runs of whitespace and trims.
    Empty or missing input yields an empty string.
    """
    if not text:
        return ""
    text = text.lower()
    text = ARABIC_DIACRITICS_RE.sub('', text)
    text = PUNCTUATION_RE.sub('', text)
    text = MULTI_SPACE_RE.sub(' ', text)
    return text.strip()


def extract_keywords(query: Optional[str]) -> List[str]:
    """
    Tokens of at least three characters that are not stop words.

    Only used as a gate: a query with no keywords is not searchable.
    """
    if not query:
        return []
    return [
        word for word in query.lower().split()
        if len(word) >= MIN_KEYWORD_LENGTH and word not in STOP_WORDS
    ]


def truncate(text: Optional[str], max_chars: int = 500) -> str:
    """Collapse line breaks and cut to max_chars, marking the cut with an ellipsis."""
    single_line = LINE_BREAKS_RE.sub(' ', text or "")
    if len(single_line) > max_chars:
        return single_line[:max_chars].strip() + ELLIPSIS
    return single_line
