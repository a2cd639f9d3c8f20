"""
Collection Loader
=================

Fetches the raw JSON document of each of the nine collections.

Each document is shaped like:

    {"hadiths": [{"arabic": ..., "english": ..., "hadithnumber": ...}, ...]}

Sources:
- Remote (default): all nine URLs fetched concurrently with httpx
- Local: <corpus_dir>/<key>.json, for offline development

A collection that cannot be fetched or parsed is logged and comes back as
an empty list; the other collections are unaffected.
"""

import asyncio
import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

import httpx

from takhrij.models import CollectionKey

logger = logging.getLogger(__name__)

RawCollections = Dict[CollectionKey, List[Dict[str, Any]]]


def extract_hadiths(document: Any, key: CollectionKey) -> List[Dict[str, Any]]:
    """Return the `hadiths` array, or an empty list when it is missing or malformed."""
    hadiths = document.get("hadiths") if isinstance(document, dict) else None
    if not isinstance(hadiths, list):
        logger.warning(f"[{key.value}] Document has no 'hadiths' array; treating as empty")
        return []
    return [h for h in hadiths if isinstance(h, dict)]


class CollectionLoader:
    """
    Loads every collection from the network or a local directory.

    Usage:
        loader = CollectionLoader.from_settings(get_settings())
        raw = await loader.load_all()
    """

    def __init__(
        self,
        urls: Optional[Dict[CollectionKey, str]] = None,
        corpus_dir: Optional[Path] = None,
        timeout: float = 60.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.urls = urls or {}
        self.corpus_dir = Path(corpus_dir) if corpus_dir else None
        self.timeout = timeout
        self._transport = transport

    @classmethod
    def from_settings(cls, settings) -> "CollectionLoader":
        return cls(
            urls={key: settings.collection_url(key.value) for key in CollectionKey},
            corpus_dir=settings.corpus_dir,
            timeout=settings.collection_timeout_seconds,
        )

    async def load_all(self) -> RawCollections:
        """Load all nine collections; failures degrade to empty collections."""
        if self.corpus_dir is not None:
            logger.info(f"Loading collections from {self.corpus_dir}")
            return {key: self._load_local(key) for key in CollectionKey}

        logger.info("Fetching collections from remote storage")
        async with httpx.AsyncClient(
            timeout=self.timeout,
            transport=self._transport,
            follow_redirects=True,
        ) as client:
            keys = list(CollectionKey)
            results = await asyncio.gather(*(self._fetch(client, key) for key in keys))
        return dict(zip(keys, results))

    async def _fetch(self, client: httpx.AsyncClient, key: CollectionKey) -> List[Dict[str, Any]]:
        url = self.urls.get(key)
        if not url:
            logger.error(f"[{key.value}] No URL configured")
            return []

        try:
            response = await client.get(url)
            response.raise_for_status()
            document = response.json()
        except httpx.HTTPError as e:
            logger.error(f"[{key.value}] Failed to fetch collection: {e}")
            return []
        except ValueError as e:
            logger.error(f"[{key.value}] Collection is not valid JSON: {e}")
            return []
        except Exception as e:
            logger.error(f"[{key.value}] Unexpected error loading collection: {e}", exc_info=True)
            return []

        hadiths = extract_hadiths(document, key)
        logger.info(f"[{key.value}] Loaded {len(hadiths)} hadiths")
        return hadiths

    def _load_local(self, key: CollectionKey) -> List[Dict[str, Any]]:
        path = self.corpus_dir / f"{key.value}.json"
        try:
            with open(path, 'r', encoding='utf-8') as f:
                document = json.load(f)
        except FileNotFoundError:
            logger.warning(f"[{key.value}] {path} not found")
            return []
        except (OSError, json.JSONDecodeError) as e:
            logger.error(f"[{key.value}] Could not read {path}: {e}")
            return []

        hadiths = extract_hadiths(document, key)
        logger.info(f"[{key.value}] Loaded {len(hadiths)} hadiths from disk")
        return hadiths
