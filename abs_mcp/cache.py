"""Process-wide cache for the dataflow list."""

import asyncio
import logging
from typing import Awaitable, Callable, List, Optional, Sequence, Tuple

from .normalize import DataflowRecord

logger = logging.getLogger(__name__)


class DataflowCache:
    """Holds the dataflow list once it has been fetched successfully.

    The first successful fetch wins and is never refreshed. Concurrent first
    callers wait on one fetch. A failed fetch stores nothing, so the next call
    tries again.
    """

    def __init__(self) -> None:
        self._records: Optional[Tuple[DataflowRecord, ...]] = None
        self._lock = asyncio.Lock()

    @property
    def is_populated(self) -> bool:
        return self._records is not None

    async def get_or_fetch(
        self, fetch: Callable[[], Awaitable[Sequence[DataflowRecord]]]
    ) -> List[DataflowRecord]:
        """Return the cached records, fetching them on first use.

        Each caller gets its own list; the records themselves are frozen.
        """
        if self._records is not None:
            logger.info("Using cached dataflow list")
            return list(self._records)

        async with self._lock:
            if self._records is None:
                records = tuple(await fetch())
                self._records = records
                logger.info(f"Cached {len(records)} dataflows")
            return list(self._records)

    def clear(self) -> None:
        self._records = None
