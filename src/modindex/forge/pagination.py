from dataclasses import dataclass, field
from typing import AsyncIterator, Awaitable, Callable, Generic, Optional, TypeVar

from modindex.main.exceptions import UpstreamError

T = TypeVar("T")

PAGE_SIZE = 100


@dataclass
class Page(Generic[T]):
    items: list[T] = field(default_factory=list)
    end_cursor: Optional[str] = None
    has_next_page: bool = False


async def paginate(fetch_page: Callable[[Optional[str]], Awaitable[Page[T]]]) -> AsyncIterator[T]:
    """Yield every item of a cursor-paginated query, one page request at a time.

    `fetch_page` is called with None for the first page and with the previous
    page's end cursor afterwards, until a page reports no next page.
    """
    cursor: Optional[str] = None
    while True:
        page = await fetch_page(cursor)
        for item in page.items:
            yield item

        if not page.has_next_page:
            return

        if not page.end_cursor or page.end_cursor == cursor:
            raise UpstreamError(f"Forge reported a next page without a new cursor (after {cursor!r})")
        cursor = page.end_cursor
