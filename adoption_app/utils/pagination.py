"""
Windowed rendering of a sorted listing collection.
"""
import threading
from typing import Optional, Sequence

from ..config import DEFAULT_PAGE_SIZE
from ..models.listing import Listing
from .filters import ListingFilter, filter_and_sort


class ListingWindow:
    """
    Visible-count cursor over an ordered sequence.

    The cursor starts at one page, grows by one page per ``load_more`` and is
    capped at the number of items. ``advance_near_end`` is the proximity
    trigger: it behaves like ``load_more`` but is dropped while another
    advance is in flight.
    """

    def __init__(self, items: Sequence = (), page_size: int = DEFAULT_PAGE_SIZE):
        if page_size <= 0:
            raise ValueError("page_size must be positive")
        self.page_size = page_size
        self._advance_lock = threading.Lock()
        self.reset(items)

    def reset(self, items: Sequence):
        """Replace the items and return the cursor to the first page."""
        self._items = list(items)
        self.visible_count = min(self.page_size, len(self._items))

    @property
    def total_count(self) -> int:
        return len(self._items)

    @property
    def has_more(self) -> bool:
        return self.visible_count < self.total_count

    @property
    def visible_items(self) -> list:
        return self._items[:self.visible_count]

    @property
    def is_loading(self) -> bool:
        return self._advance_lock.locked()

    def load_more(self) -> bool:
        """
        Advance the cursor by one page.

        Returns:
            bool: False (and no change) when there is nothing more to show
        """
        if not self.has_more:
            return False
        self.visible_count = min(self.visible_count + self.page_size, self.total_count)
        return True

    def advance_near_end(self) -> bool:
        """
        Advance because the viewport neared the end of the rendered window.

        Returns:
            bool: True if the cursor moved; overlapping calls return False
        """
        if not self._advance_lock.acquire(blocking=False):
            return False
        try:
            return self.load_more()
        finally:
            self._advance_lock.release()

    def to_dict(self) -> dict:
        return {
            "visible_count": self.visible_count,
            "total_count": self.total_count,
            "page_size": self.page_size,
            "has_more": self.has_more,
        }


class ListingBrowser:
    """
    Filter, sort and window a live listing collection.

    Any change of the input items or of the filter resets the window to the
    first page.
    """

    def __init__(self, listings: Sequence[Listing] = (), listing_filter: Optional[ListingFilter] = None,
                 page_size: int = DEFAULT_PAGE_SIZE, now: Optional[float] = None):
        self._listings = list(listings)
        self._filter = listing_filter or ListingFilter()
        self._now = now
        self.window = ListingWindow(page_size=page_size)
        self._refresh()

    @property
    def listing_filter(self) -> ListingFilter:
        return self._filter

    @property
    def results(self) -> list[Listing]:
        return self._results

    def set_listings(self, listings: Sequence[Listing]):
        self._listings = list(listings)
        self._refresh()

    def set_filter(self, listing_filter: ListingFilter):
        self._filter = listing_filter
        self._refresh()

    def load_pages(self, pages: int):
        """Show ``pages`` pages, as if ``load_more`` was called ``pages - 1`` times."""
        for _ in range(max(0, pages - 1)):
            if not self.window.load_more():
                break

    def _refresh(self):
        self._results = filter_and_sort(self._listings, self._filter, self._now)
        self.window.reset(self._results)
