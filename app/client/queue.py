"""
Admin queue view state.

``QueryCache`` deduplicates queue fetches by ``filters.cache_key()``:
identical concurrent queries share one request, and a resolved result is
reused while it is younger than the dedupe interval. Failures are evicted,
never cached and never retried.

``PropertyQueue`` holds the current filter, page and last result for one
view of either the review queue or the full property list.
"""

import asyncio
import time
from typing import Awaitable, Callable, Dict, Generic, List, Optional, Tuple, TypeVar
from pydantic import ValidationError as PydanticValidationError
from app.client.admin_properties import QueueResult, fetch_all_properties, fetch_verification_queue
from app.client.api_client import ApiClient
from app.client.errors import PropertyClientError, ValidationError
from app.core.config import settings
from app.core.logging import get_logger
from app.schemas.property import PropertyResponse
from app.schemas.common import PaginationMeta
from app.schemas.verification import AllPropertiesFilter, VerificationQueueFilter

logger = get_logger(__name__)

T = TypeVar("T")

QUEUE = "queue"
ALL = "all"


class QueryCache(Generic[T]):
    def __init__(
        self,
        fetch: Callable[[VerificationQueueFilter], Awaitable[T]],
        dedupe_seconds: float = settings.QUEUE_DEDUPE_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._fetch = fetch
        self._dedupe_seconds = dedupe_seconds
        self._clock = clock
        self._pending: Dict[str, asyncio.Task] = {}
        self._resolved: Dict[str, Tuple[float, T]] = {}

    async def query(self, filters: VerificationQueueFilter, force: bool = False) -> T:
        """``force`` skips the freshness window but still joins a request already in flight."""
        key = filters.cache_key()

        pending = self._pending.get(key)
        if pending is not None:
            return await asyncio.shield(pending)

        self._evict_expired()
        if not force:
            cached = self._resolved.get(key)
            if cached is not None:
                return cached[1]

        task = asyncio.ensure_future(self._fetch(filters))
        self._pending[key] = task
        task.add_done_callback(lambda done: self._settle(key, done))
        return await asyncio.shield(task)

    def _settle(self, key: str, task: asyncio.Task) -> None:
        if self._pending.get(key) is task:
            del self._pending[key]
        if task.cancelled() or task.exception() is not None:
            self._resolved.pop(key, None)
            return
        self._resolved[key] = (self._clock(), task.result())

    def _evict_expired(self) -> None:
        now = self._clock()
        expired = [key for key, (at, _) in self._resolved.items() if now - at >= self._dedupe_seconds]
        for key in expired:
            del self._resolved[key]

    @property
    def size(self) -> int:
        """Number of resolved results still held."""
        return len(self._resolved)

    def invalidate(self) -> None:
        """Forget resolved results; requests in flight are left alone."""
        self._resolved.clear()


class PropertyQueue:
    def __init__(
        self,
        client: ApiClient,
        variant: str = QUEUE,
        filters: Optional[VerificationQueueFilter] = None,
        cache: Optional[QueryCache[QueueResult]] = None,
    ):
        if variant == QUEUE:
            fetcher, default_filters = fetch_verification_queue, VerificationQueueFilter()
        elif variant == ALL:
            fetcher, default_filters = fetch_all_properties, AllPropertiesFilter()
        else:
            raise ValueError(f"Unknown queue variant: {variant!r}")

        self.variant = variant
        self.filters = filters or default_filters
        self.cache = cache or QueryCache(lambda f: fetcher(client, f))

        self.properties: List[PropertyResponse] = []
        self.meta: Optional[PaginationMeta] = None
        self.error: Optional[PropertyClientError] = None
        self.is_loading = False

    async def load(self, force: bool = False) -> Optional[QueueResult]:
        filters = self.filters
        self.is_loading = True
        self.error = None
        try:
            result = await self.cache.query(filters, force=force)
        except PropertyClientError as exc:
            if filters == self.filters:
                self.error = exc
            logger.warning("Loading %s page %d failed: %s", self.variant, filters.page, exc.message)
            return None
        finally:
            self.is_loading = False

        # A newer filter was set while this request was in flight
        if filters != self.filters:
            return result
        self.properties = result.properties
        self.meta = result.meta
        return result

    async def refresh(self) -> Optional[QueueResult]:
        return await self.load(force=True)

    async def set_filters(self, **predicates) -> Optional[QueueResult]:
        """Change predicates; the view goes back to page 1."""
        try:
            self.filters = self.filters.with_predicates(**predicates)
        except PydanticValidationError as exc:
            first = exc.errors()[0]
            field = str(first["loc"][0]) if first["loc"] else "filters"
            raise ValidationError(field, first["msg"]) from exc
        return await self.load()

    async def go_to_page(self, page: int) -> Optional[QueueResult]:
        """Change page only; predicates are kept."""
        try:
            self.filters = self.filters.with_page(page)
        except PydanticValidationError as exc:
            raise ValidationError("page", exc.errors()[0]["msg"]) from exc
        return await self.load()
