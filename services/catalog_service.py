"""
Catalog service: cached item rows grouped by product.

Items are fetched per education level and cached for ``cache_duration``
seconds. An ``item:updated`` push invalidates the cache so stock changes
show up on the next request.
"""

from __future__ import annotations

import threading
import time
from typing import Callable, Dict, List, Optional, Tuple

from core.api_client import UniformAPIClient
from models.item import Item, ItemGroup, group_items
from models.student import Student
from modules.item_keys import resolve_key
from logging_config import get_logger


logger = get_logger(__name__)


class CatalogService:
    """
    Fetches and groups catalog items.

    Attributes:
        cache_duration: Seconds a fetched catalog stays fresh
    """

    def __init__(
        self,
        client_factory: Callable[[Optional[Student]], UniformAPIClient],
        cache_duration: float = 30.0,
    ):
        self._client_factory = client_factory
        self._cache_duration = cache_duration
        self._cache: Dict[str, Tuple[float, List[Item]]] = {}
        self._lock = threading.Lock()

    @property
    def cache_duration(self) -> float:
        return self._cache_duration

    def get_items(self, student: Optional[Student] = None, force_refresh: bool = False) -> List[Item]:
        """
        Catalog rows visible to a student's education level.

        Raises:
            UpstreamUnavailableError / UpstreamResponseError on fetch failure
        """
        education_level = student.education_level if student else None
        cache_key = education_level or ""

        if not force_refresh:
            with self._lock:
                cached = self._cache.get(cache_key)
            if cached and time.monotonic() - cached[0] < self._cache_duration:
                return cached[1]

        client = self._client_factory(student)
        rows = client.get_items(education_level=education_level)
        items = [Item.from_api(row) for row in rows]

        with self._lock:
            self._cache[cache_key] = (time.monotonic(), items)

        logger.debug(f"Catalog fetched for '{cache_key or 'all'}': {len(items)} rows")
        return items

    def get_groups(self, student: Optional[Student] = None, force_refresh: bool = False) -> List[ItemGroup]:
        """Catalog grouped by (name, education level)."""
        return group_items(self.get_items(student, force_refresh))

    def find_group(self, groups: List[ItemGroup], item_id: str) -> Optional[ItemGroup]:
        """Group containing the variant with ``item_id``."""
        for group in groups:
            if group.variation_by_id(item_id) is not None:
                return group
        return None

    def find_group_by_name(
        self,
        groups: List[ItemGroup],
        name: str,
        education_level: Optional[str] = None,
    ) -> Optional[ItemGroup]:
        """
        Group whose limit key matches ``name`` (order history lines carry
        names, not inventory ids). A group of the same education level wins.
        """
        key = resolve_key(name)
        matches = [g for g in groups if resolve_key(g.name) == key]
        if education_level:
            wanted = education_level.strip().lower()
            for group in matches:
                if group.education_level.strip().lower() == wanted:
                    return group
        return matches[0] if matches else None

    def invalidate_cache(self) -> None:
        """Drop every cached catalog (called on item:updated)."""
        with self._lock:
            count = len(self._cache)
            self._cache.clear()
        if count:
            logger.debug(f"Catalog cache invalidated ({count} entries)")
