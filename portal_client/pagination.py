"""
Cursor pagination accumulator.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional

from shared.logging import get_logger


@dataclass
class Page:
    """One page of a cursor-paginated list."""

    items: List[Any] = field(default_factory=list)
    next_cursor: Optional[str] = None
    has_more: bool = False

    @classmethod
    def from_response(cls, payload: Dict[str, Any], items_key: str) -> "Page":
        """Build a page from ``{<items_key>: [...], nextCursor, hasMore}``.

        A missing ``hasMore`` is derived from the presence of ``nextCursor``.
        """
        next_cursor = payload.get("nextCursor") or None
        has_more = payload.get("hasMore")
        if has_more is None:
            has_more = next_cursor is not None
        return cls(
            items=list(payload.get(items_key) or []),
            next_cursor=next_cursor,
            has_more=bool(has_more) and next_cursor is not None,
        )


class PaginationState(str, Enum):
    EMPTY = "EMPTY"
    LOADED = "LOADED"
    LOADING_MORE = "LOADING_MORE"


PageFetcher = Callable[[Optional[str], Optional[str]], Awaitable[Page]]


class CursorPaginator:
    """Accumulates pages for one scope, in arrival order.

    ``fetch_page(scope, cursor)`` returns a Page; ``cursor`` is None for the
    first page. Changing the scope or refreshing discards everything
    accumulated so far, and results of requests issued for a previous scope
    are dropped when they arrive.
    """

    def __init__(self, fetch_page: PageFetcher, scope: Optional[str] = None):
        self.fetch_page = fetch_page
        self.scope = scope
        self.items: List[Any] = []
        self.next_cursor: Optional[str] = None
        self.has_more = False
        self.state = PaginationState.EMPTY
        self._generation = 0
        self.logger = get_logger("portal_client.pagination")

    def reset(self) -> None:
        self._generation += 1
        self.items = []
        self.next_cursor = None
        self.has_more = False
        self.state = PaginationState.EMPTY

    def seed(self, page: Page) -> None:
        """Replace the contents with a first page (e.g. server-provided data)."""
        self.reset()
        self._apply(page)

    def _apply(self, page: Page) -> None:
        self.items.extend(page.items)
        self.next_cursor = page.next_cursor
        self.has_more = page.has_more
        self.state = PaginationState.LOADED

    async def load_first(self) -> None:
        self.reset()
        generation = self._generation
        page = await self.fetch_page(self.scope, None)
        if generation != self._generation:
            return
        self._apply(page)

    async def refresh(self) -> None:
        """Explicit full refetch: back to EMPTY, then the first page."""
        await self.load_first()

    async def set_scope(self, scope: Optional[str]) -> None:
        """Switch scope; rows from the previous scope are never kept."""
        if scope == self.scope and self.state != PaginationState.EMPTY:
            return
        self.logger.debug("Pagination scope changed", scope=scope)
        self.scope = scope
        await self.load_first()

    async def load_more(self) -> bool:
        """Append the next page. No-op unless LOADED with more pages available."""
        if self.state != PaginationState.LOADED or not self.has_more:
            return False

        generation = self._generation
        self.state = PaginationState.LOADING_MORE
        try:
            page = await self.fetch_page(self.scope, self.next_cursor)
        except Exception:
            if generation == self._generation:
                self.state = PaginationState.LOADED
            raise

        if generation != self._generation:
            return False

        self._apply(page)
        self.logger.debug("Loaded more", total=len(self.items), has_more=self.has_more)
        return True
