"""Medicine catalog state with stale-while-revalidate list and category caches.

Catalog reads degrade silently: a failed request keeps whatever was published
before, logs a warning and is counted in the cache stats. Nothing is raised to
the caller and no error notice is emitted. ``fetch_medicine`` is the exception,
since the detail view reports failures to the user.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any

from pydantic import ValidationError

from carepoint_client.api import CarePointAPIError, CarePointClient
from carepoint_client.core.cache import (
    RevalidatingCache,
    build_query_params,
    make_cache_key,
)
from carepoint_client.core.settings import Settings
from carepoint_client.feedback import Feedback
from carepoint_client.schemas import CatalogPage, Medicine, Pagination

logger = logging.getLogger(__name__)

CATEGORIES_KEY = "categories"
_INACTIVE_VALUES = frozenset({"false", "0"})


def default_filters() -> dict[str, Any]:
    return {
        "category": "all",
        "minPrice": "",
        "maxPrice": "",
        "prescriptionRequired": "",
        "sortBy": "name",
        "sortOrder": "asc",
    }


@dataclass(slots=True)
class CatalogState:
    medicines: list[Medicine] = field(default_factory=list)
    pagination: Pagination = field(default_factory=Pagination)
    categories: list[str] = field(default_factory=list)
    is_loading: bool = False
    current_medicine: Medicine | None = None
    featured: list[Medicine] = field(default_factory=list)
    search_results: list[Medicine] = field(default_factory=list)
    filters: dict[str, Any] = field(default_factory=default_filters)


def is_active_item(raw: Mapping[str, Any]) -> bool:
    """False, "false" and "0" mark an item inactive; a missing flag does not."""
    value = raw.get("isActive", True)
    if value is False:
        return False
    return str(value).lower() not in _INACTIVE_VALUES


def parse_catalog_page(payload: Any) -> CatalogPage:
    if not isinstance(payload, Mapping):
        raise CarePointAPIError("unexpected catalog payload")
    raw_items = payload.get("medicines")
    items = raw_items if isinstance(raw_items, list) else []
    visible = [item for item in items if isinstance(item, Mapping) and is_active_item(item)]
    return CatalogPage.model_validate(
        {"medicines": visible, "pagination": payload.get("pagination") or {}}
    )


def _parse_medicines(payload: Any) -> list[Medicine]:
    if not isinstance(payload, list):
        raise CarePointAPIError("expected a list of medicines")
    return [Medicine.model_validate(item) for item in payload]


class MedicineStore:
    def __init__(
        self,
        client: CarePointClient,
        settings: Settings,
        *,
        clock: Callable[[], float] | None = None,
        feedback: Feedback | None = None,
    ) -> None:
        self._client = client
        self._page_limit = settings.catalog_page_limit
        self._feedback = feedback or Feedback()
        self._list_cache: RevalidatingCache[CatalogPage] = RevalidatingCache(
            settings.cache_catalog_ttl,
            maxsize=settings.cache_catalog_maxsize,
            clock=clock or time.monotonic,
            name="catalog",
        )
        self._categories_cache: RevalidatingCache[list[str]] = RevalidatingCache(
            settings.cache_categories_ttl,
            clock=clock or time.monotonic,
            name="categories",
        )
        self._preloaded = False
        self.state = CatalogState()

    @property
    def list_cache(self) -> RevalidatingCache[CatalogPage]:
        return self._list_cache

    @property
    def categories_cache(self) -> RevalidatingCache[list[str]]:
        return self._categories_cache

    async def fetch_list(
        self,
        page: int = 1,
        filters: Mapping[str, Any] | None = None,
        force_refresh: bool = False,
    ) -> None:
        params_key = make_cache_key(page, filters)
        entry = self._list_cache.lookup(params_key)

        if entry is not None:
            # Stale or not, cached data is shown right away without a spinner.
            self._publish_page(entry.data)
            self.state.is_loading = False
            if self._list_cache.is_fresh(entry) and not force_refresh:
                return
        else:
            self.state.is_loading = True

        query = build_query_params(page, filters, self._page_limit)
        try:
            await self._list_cache.run_deduplicated(
                "fetch_list",
                lambda: self._load_page(params_key, query),
                force=force_refresh,
            )
        except (CarePointAPIError, ValidationError) as exc:
            logger.warning("Catalog fetch failed key=%s: %s", params_key, exc)
        finally:
            self.state.is_loading = False

    async def _load_page(self, params_key: str, query: dict[str, str]) -> CatalogPage:
        payload = await self._client.list_medicines(query)
        page = parse_catalog_page(payload)
        self._list_cache.store(params_key, page)
        self._publish_page(page)
        return page

    def _publish_page(self, page: CatalogPage) -> None:
        self.state.medicines = list(page.medicines)
        self.state.pagination = page.pagination

    async def fetch_categories(self) -> None:
        entry = self._categories_cache.lookup(CATEGORIES_KEY)
        if entry is not None:
            self.state.categories = list(entry.data)
            if self._categories_cache.is_fresh(entry):
                return

        try:
            await self._categories_cache.run_deduplicated(
                "fetch_categories", self._load_categories
            )
        except (CarePointAPIError, ValidationError) as exc:
            logger.warning("Category fetch failed: %s", exc)

    async def _load_categories(self) -> list[str]:
        payload = await self._client.list_categories()
        if not isinstance(payload, list):
            raise CarePointAPIError("expected a list of categories")
        categories = [str(name) for name in payload if name]
        self._categories_cache.store(CATEGORIES_KEY, categories)
        self.state.categories = list(categories)
        return categories

    async def preload(self) -> None:
        """Seed the cache with the unfiltered first page, once per store.

        Sent without credentials. Any failure is ignored and not retried.
        """
        if self._preloaded:
            return
        self._preloaded = True

        params_key = make_cache_key(1)
        query = build_query_params(1, None, self._page_limit)
        try:
            payload = await self._client.list_medicines(query, authenticated=False)
            page = parse_catalog_page(payload)
        except (CarePointAPIError, ValidationError) as exc:
            logger.debug("Catalog preload skipped: %s", exc)
            return
        self._list_cache.store(params_key, page)
        logger.debug("Catalog preloaded with %d medicines", len(page.medicines))

    async def update_filters(self, **changes: Any) -> None:
        self.state.filters = {**self.state.filters, **changes}
        await self.fetch_list(1, self.state.filters)

    async def fetch_medicine(self, medicine_id: str) -> Medicine | None:
        self.state.is_loading = True
        try:
            payload = await self._client.get_medicine(medicine_id)
            medicine = Medicine.model_validate(payload)
        except (CarePointAPIError, ValidationError) as exc:
            logger.warning("Fetch medicine %s failed: %s", medicine_id, exc)
            self._feedback.error("Failed to fetch medicine details")
            return None
        finally:
            self.state.is_loading = False
        self.state.current_medicine = medicine
        return medicine

    async def fetch_featured(self) -> None:
        try:
            featured = _parse_medicines(await self._client.featured_medicines())
        except (CarePointAPIError, ValidationError) as exc:
            logger.warning("Fetch featured medicines failed: %s", exc)
            return
        self.state.featured = featured

    async def search(self, query: str) -> list[Medicine]:
        if not query.strip():
            self.state.search_results = []
            return []
        try:
            results = _parse_medicines(await self._client.search_medicines(query))
        except (CarePointAPIError, ValidationError) as exc:
            logger.warning("Medicine search failed for %r: %s", query, exc)
            results = []
        self.state.search_results = results
        return results

    def clear_search_results(self) -> None:
        self.state.search_results = []

    def clear_current_medicine(self) -> None:
        self.state.current_medicine = None


__all__ = [
    "CatalogState",
    "MedicineStore",
    "default_filters",
    "is_active_item",
    "parse_catalog_page",
]
