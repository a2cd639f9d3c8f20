"""
Central Data Models for Takhrij
===============================

Enums shared across the pipeline and the Pydantic request/response models
of the HTTP API.
"""

from enum import Enum
from typing import Dict, Optional

from pydantic import BaseModel, field_validator


# ==========================================
#  ENUMS
# ==========================================

class CollectionKey(str, Enum):
    """The nine primary hadith collections."""
    BUKHARI = "bukhari"
    MUSLIM = "muslim"
    TIRMIDHI = "tirmidhi"
    NASAI = "nasai"
    MALIK = "malik"
    IBNMAJAH = "ibnmajah"
    DARIMI = "darimi"
    AHMED = "ahmed"
    ABUDAWUD = "abudawud"

    @property
    def display_name(self) -> str:
        return COLLECTION_NAMES[self]

    @classmethod
    def resolve(cls, value: Optional[str]) -> Optional["CollectionKey"]:
        """Match a key or display name, case-insensitively."""
        if not value:
            return None
        needle = value.strip().lower()
        for key in cls:
            if needle == key.value or needle == key.display_name.lower():
                return key
        return None


COLLECTION_NAMES: Dict[CollectionKey, str] = {
    CollectionKey.BUKHARI: "Sahih Bukhari",
    CollectionKey.MUSLIM: "Sahih Muslim",
    CollectionKey.TIRMIDHI: "Jami` at-Tirmidhi",
    CollectionKey.NASAI: "Sunan an-Nasa'i",
    CollectionKey.MALIK: "Muwatta Malik",
    CollectionKey.IBNMAJAH: "Sunan Ibn Majah",
    CollectionKey.DARIMI: "Sunan ad-Darimi",
    CollectionKey.AHMED: "Musnad Ahmad",
    CollectionKey.ABUDAWUD: "Sunan Abu Dawood",
}

# Collections whose chains are treated as sound by definition
AUTHENTIC_BY_DEFAULT = frozenset({CollectionKey.BUKHARI, CollectionKey.MUSLIM})


class ClassificationType(str, Enum):
    """Transmission classification shown next to a match."""
    MUTAWATIR = "Mutawatir"
    AHAD = "Ahad"


# ==========================================
#  REQUEST MODELS
# ==========================================

class _LenientRequest(BaseModel):
    """Missing or null string fields become empty strings."""

    @field_validator('*', mode='before')
    @classmethod
    def none_to_empty(cls, v):
        if v is None:
            return ""
        if isinstance(v, (int, float)) and not isinstance(v, bool):
            return str(v)
        return v


class SearchRequest(_LenientRequest):
    """Free-text hadith lookup"""
    query: str = ""


class CommentaryRequest(_LenientRequest):
    """One identified hadith to comment on"""
    english: str = ""
    arabic: str = ""
    reference: str = ""
    collection: str = ""


class NarratorBioRequest(_LenientRequest):
    """Narrator name to describe"""
    name: str = ""


# ==========================================
#  RESPONSE MODELS
# ==========================================

class SearchResponse(BaseModel):
    result: str


class CommentaryResponse(BaseModel):
    commentary: str
    chain: str
    evaluation: str


class NarratorBioResponse(BaseModel):
    bio: str


class HealthResponse(BaseModel):
    status: str
    version: str
    index_ready: bool
    indexed_records: int
    collections: Dict[str, int]
    commentary_cache_entries: int
    bio_cache_entries: int
    timestamp: str
