"""Lazy, process-lifetime cache for collections of named HubSpot entities.

A collection is loaded on first access for a category (e.g. an object type)
and kept until the process exits: there is no TTL and no invalidation.

Loading is not deduplicated. Two callers hitting an empty category at the
same time will both fetch it; the second result simply replaces the first.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Generic, TypeVar

from crm_backbone.sdk.client import HubSpotApiError

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_CATEGORY = "default"
DETAIL_CHUNK_SIZE = 100


class EntityCache(Generic[T]):
    """Fetch-and-memoize entities per category.

    Subclasses provide the upstream calls (``fetch_page``, ``fetch_one`` and,
    when list pages only carry summaries, ``fetch_details``) and ``build`` to
    turn a raw payload into an entity.
    """

    chunk_size = DETAIL_CHUNK_SIZE

    def __init__(self) -> None:
        self._collections: dict[str, list[T]] = {}

    # upstream hooks

    async def fetch_page(self, category: str, after: str | None) -> tuple[list[dict], str | None]:
        """Fetch one page of summaries and the cursor of the next page."""
        raise NotImplementedError

    async def fetch_details(self, ids: list[str]) -> list[dict]:
        """Batch-fetch full records; may return only the ones it resolved."""
        return []

    async def fetch_one(self, entity_id: str, category: str) -> dict:
        """Fetch a single full record."""
        raise NotImplementedError

    def needs_detail(self, summaries: list[dict]) -> bool:
        """True when list summaries lack fields only detail reads provide."""
        return False

    def build(self, raw: dict) -> T:
        raise NotImplementedError

    def entity_id(self, entity: T) -> str:
        return entity.id  # type: ignore[attr-defined]

    def category_key(self, category: str) -> str:
        return category

    # public API

    def is_loaded(self, category: str = DEFAULT_CATEGORY) -> bool:
        return self.category_key(category) in self._collections

    async def get_all(self, category: str = DEFAULT_CATEGORY) -> list[T]:
        """All entities for a category, loading them on first access."""
        key = self.category_key(category)
        if key not in self._collections:
            self._collections[key] = await self._load(category)
        return self._collections[key]

    async def get_by_id(self, entity_id: str, category: str = DEFAULT_CATEGORY) -> T | None:
        """One entity, from the loaded collection or a direct fetch.

        A direct fetch does not populate the collection. Upstream failures
        are reported as not found (None).
        """
        loaded = self._collections.get(self.category_key(category))
        if loaded is not None:
            for entity in loaded:
                if self.entity_id(entity) == entity_id:
                    return entity

        try:
            raw = await self.fetch_one(entity_id, category)
        except HubSpotApiError as e:
            logger.info("direct fetch of %s failed: %s", entity_id, e.message)
            return None
        if not raw:
            return None
        return self.build(raw)

    # loading

    async def _load(self, category: str) -> list[T]:
        summaries: list[dict] = []
        after: str | None = None
        while True:
            page, after = await self.fetch_page(category, after)
            summaries.extend(page)
            if not after:
                break

        # entities are keyed by id, so records without one can't be cached
        usable = [s for s in summaries if s.get("id") is not None]
        if len(usable) < len(summaries):
            logger.warning(
                "skipping %d %r summaries without an id",
                len(summaries) - len(usable), category,
            )
        summaries = usable

        if summaries and self.needs_detail(summaries):
            summaries = await self._merge_details(summaries)

        logger.info("loaded %d entities for %r", len(summaries), category)
        return [self.build(raw) for raw in summaries]

    async def _merge_details(self, summaries: list[dict]) -> list[dict]:
        ids = [str(s["id"]) for s in summaries]
        chunks = [ids[i:i + self.chunk_size] for i in range(0, len(ids), self.chunk_size)]
        results = await asyncio.gather(*(self._fetch_chunk(chunk) for chunk in chunks))

        details: dict[str, dict] = {}
        for chunk_results in results:
            for detail in chunk_results:
                if detail.get("id") is not None:
                    details[str(detail["id"])] = detail

        merged = []
        for summary in summaries:
            detail = details.get(str(summary["id"]), {})
            merged.append({
                **summary,
                **{k: v for k, v in detail.items() if v is not None},
            })
        return merged

    async def _fetch_chunk(self, ids: list[str]) -> list[dict]:
        """a failing chunk keeps its summaries instead of failing the load."""
        try:
            return await self.fetch_details(ids)
        except HubSpotApiError as e:
            logger.warning(
                "batch detail fetch failed for %d ids, using summaries: %s",
                len(ids), e.message,
            )
            return []
