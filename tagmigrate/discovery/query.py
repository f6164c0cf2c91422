"""
Paged discovery client with retry/backoff and de-duplication.
"""

import logging
import math
import time
from typing import Callable, List, Tuple, TypeVar

from ..config import MAX_PAGE_SIZE
from ..errors import DiscoveryError
from ..models import QueryResult, ResourceRecord
from ..providers.base import CloudProvider, ResourceQuery, Scope

logger = logging.getLogger(__name__)

T = TypeVar("T")


def backoff_delay(attempt: int, initial: float = 0.5, maximum: float = 8.0) -> float:
    """
    Delay to wait after a failed attempt.

    Args:
        attempt: 1-based number of the attempt that just failed
        initial: Delay after the first failure, in seconds
        maximum: Upper bound, in seconds

    Returns:
        initial * 2^(attempt-1), capped at maximum
    """
    return min(initial * (2 ** (attempt - 1)), maximum)


def dedupe_by_id(resources: List[ResourceRecord]) -> Tuple[List[ResourceRecord], int]:
    """
    Drop repeated resources, keeping the first occurrence of each id.

    Returns:
        Tuple of (unique resources in original order, number dropped)
    """
    seen = set()
    unique = []
    for resource in resources:
        if resource.id in seen:
            continue
        seen.add(resource.id)
        unique.append(resource)
    return unique, len(resources) - len(unique)


class PagedQueryClient:
    """Runs count + offset/limit page queries against a provider."""

    def __init__(self, provider: CloudProvider, max_attempts: int = 5,
                 backoff_initial: float = 0.5, backoff_max: float = 8.0):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.provider = provider
        self.max_attempts = max_attempts
        self.backoff_initial = backoff_initial
        self.backoff_max = backoff_max

    def _with_retry(self, description: str, call: Callable[[], T]) -> T:
        last_error = None

        for attempt in range(1, self.max_attempts + 1):
            try:
                return call()
            except Exception as e:
                last_error = e
                if attempt >= self.max_attempts:
                    break
                delay = backoff_delay(attempt, self.backoff_initial, self.backoff_max)
                logger.warning(
                    f"{description} failed (attempt {attempt}/{self.max_attempts}): {e}; "
                    f"retrying in {delay:.1f}s"
                )
                time.sleep(delay)

        logger.error(f"{description} failed after {self.max_attempts} attempts: {last_error}")
        raise DiscoveryError(
            f"{description} failed after {self.max_attempts} attempts: {last_error}",
            attempts=self.max_attempts,
        ) from last_error

    def count(self, query: ResourceQuery, scope: Scope) -> int:
        return self._with_retry("Count query", lambda: self.provider.count(query, scope))

    def page(self, query: ResourceQuery, scope: Scope, limit: int, offset: int) -> List[ResourceRecord]:
        return self._with_retry(
            f"Page query (offset={offset}, limit={limit})",
            lambda: self.provider.page(query, scope, limit, offset),
        )

    def fetch_all(self, query: ResourceQuery, scope: Scope, page_size: int = MAX_PAGE_SIZE) -> QueryResult:
        """
        Collect every resource matching a query.

        The total is counted once up front and paging runs against that
        original total. A shrinking dataset is not re-counted; an empty page
        before the total is reached ends paging.

        Args:
            query: Discovery filter
            scope: Subscriptions to search
            page_size: Records per page (1..1000)

        Returns:
            QueryResult with de-duplicated resources

        Raises:
            ValueError: If page_size is out of range
            DiscoveryError: If any count or page query exhausts its retries
        """
        if page_size < 1 or page_size > MAX_PAGE_SIZE:
            raise ValueError(f"page_size must be between 1 and {MAX_PAGE_SIZE}, got {page_size}")

        total = self.count(query, scope)
        expected_pages = math.ceil(total / page_size) if total else 0
        logger.info(f"Discovery ({scope.describe()}): {total} resources, {expected_pages} page(s) of {page_size}")

        collected: List[ResourceRecord] = []
        offset = 0
        pages = 0

        while offset < total:
            batch = self.page(query, scope, page_size, offset)
            pages += 1
            logger.debug(f"Page {pages}/{expected_pages}: {len(batch)} resources")

            if not batch:
                logger.warning(f"Empty page at offset {offset} of {total}; dataset shrank during discovery")
                break

            collected.extend(batch)
            offset += page_size

        unique, dropped = dedupe_by_id(collected)
        if dropped:
            logger.info(f"Dropped {dropped} duplicate resource(s) across pages")

        return QueryResult(
            resources=unique,
            total_reported=total,
            pages_fetched=pages,
            duplicates_dropped=dropped,
        )
