"""
Contacts view state for API clients.

No route uses this module: it is the client-side listing model that front
ends and scripts drive against GET /contacts. Typing in the search box
refetches only after the input has been quiet for the debounce delay, while
changes to the search field, tag filter or sort refetch right away. Every
refetch re-issues the full query.
"""

import asyncio
from collections.abc import Awaitable, Callable, Sequence

from aihub.config import settings
from aihub.features.contacts.domain.models import Contact, ContactQuery, SortField, SortOrder
from aihub.features.contacts.services.query_builder import effective_sort_order
from aihub.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

Fetcher = Callable[[ContactQuery], Awaitable[list[Contact]]]

SORT_LABELS = {
    (SortField.ADDED_AT_DATE, SortOrder.DESC): "Newest First",
    (SortField.ADDED_AT_DATE, SortOrder.ASC): "Oldest First",
    (SortField.NAME, SortOrder.ASC): "A-Z",
    (SortField.NAME, SortOrder.DESC): "Z-A",
}


def sort_label(query: ContactQuery) -> str:
    return SORT_LABELS[(SortField(query.sort_by), effective_sort_order(query))]


class ContactsListing:
    def __init__(self, fetch: Fetcher, debounce_seconds: float | None = None):
        self._fetch = fetch
        self.debounce_seconds = (
            settings.CONTACT_SEARCH_DEBOUNCE_SECONDS if debounce_seconds is None else debounce_seconds
        )
        self.query = ContactQuery(sort_order=SortOrder.DESC)
        self.contacts: list[Contact] = []
        self.error: str | None = None
        self.fetch_count = 0
        self._pending: asyncio.Task | None = None

    async def refresh(self) -> list[Contact]:
        """Run the current query; on failure keep the previous result and record the error."""
        self.fetch_count += 1
        try:
            self.contacts = await self._fetch(self.query)
            self.error = None
        except Exception as e:
            logger.error("Contacts fetch failed", error=str(e), error_type=type(e).__name__)
            self.error = str(e)
        return self.contacts

    def _cancel_pending(self) -> None:
        if self._pending and not self._pending.done():
            self._pending.cancel()
        self._pending = None

    async def _debounced_refresh(self) -> None:
        await asyncio.sleep(self.debounce_seconds)
        await self.refresh()

    def set_search(self, text: str) -> None:
        """Schedule a refetch once typing pauses; each keystroke restarts the delay."""
        self.query.search = text
        self._cancel_pending()
        self._pending = asyncio.create_task(self._debounced_refresh())

    async def clear_search(self) -> list[Contact]:
        self._cancel_pending()
        self.query.search = ""
        return await self.refresh()

    async def set_search_field(self, search_field: str) -> list[Contact]:
        self.query.search_field = search_field
        return await self.refresh()

    async def set_tags(self, tags: Sequence[str]) -> list[Contact]:
        self.query.tags = list(tags)
        return await self.refresh()

    async def set_sort(self, sort_by: SortField | str) -> list[Contact]:
        """Change the sort key, keeping the current direction."""
        self.query.sort_order = effective_sort_order(self.query)
        self.query.sort_by = SortField(sort_by)
        return await self.refresh()

    async def set_sort_order(self, sort_order: SortOrder | str) -> list[Contact]:
        self.query.sort_order = SortOrder(sort_order)
        return await self.refresh()

    async def wait_idle(self) -> None:
        """Wait for a scheduled search refetch, if any."""
        if self._pending:
            await self._pending

    @property
    def sort_label(self) -> str:
        return sort_label(self.query)
