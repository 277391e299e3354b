import asyncio
import enum
import logging
from typing import Optional, Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.storage import BlobStorage
from app.schemas.customer import CustomerPage, CustomerResponse, ResumeToken
from app.services.customer import delete_customer, list_customers_page, search_customers

logger = logging.getLogger(__name__)


class ListMode(str, enum.Enum):
    BROWSING = "BROWSING"
    SEARCHING = "SEARCHING"


class CustomerSource(Protocol):
    async def list_page(self, page_size: int, token: Optional[ResumeToken] = None) -> CustomerPage:
        ...

    async def search(self, term: str) -> list[CustomerResponse]:
        ...

    async def delete(self, customer_id: str) -> None:
        ...


class LocalCustomerSource:
    """Feeds the list controller straight from the customer services."""

    def __init__(self, db: AsyncSession, storage: BlobStorage):
        self.db = db
        self.storage = storage

    async def list_page(self, page_size: int, token: Optional[ResumeToken] = None) -> CustomerPage:
        return await list_customers_page(self.db, page_size, token)

    async def search(self, term: str) -> list[CustomerResponse]:
        return await search_customers(self.db, term)

    async def delete(self, customer_id: str) -> None:
        await delete_customer(self.db, self.storage, customer_id)


def _unique_by_id(customers: list[CustomerResponse]) -> list[CustomerResponse]:
    seen = set()
    unique = []
    for customer in customers:
        if customer.id not in seen:
            seen.add(customer.id)
            unique.append(customer)
    return unique


class CustomerListController:
    """Accumulated customer list state behind the customer list screen.

    Browsing mode grows the list page by page; searching mode shows one
    result set. Switching back to browsing starts over from the first page.
    Only one page fetch runs at a time; a ``load_more`` issued while another
    is in flight is dropped so the resume token never advances twice.
    """

    def __init__(self, source: CustomerSource, page_size: int = None):
        self.source = source
        self.page_size = page_size or settings.PAGE_SIZE
        self.mode = ListMode.BROWSING
        self.items: list[CustomerResponse] = []
        self.has_more = True
        self.loading = False
        self.search_term = ""
        self._token: Optional[ResumeToken] = None
        self._fetch_lock = asyncio.Lock()

    @property
    def is_searching(self) -> bool:
        return self.mode == ListMode.SEARCHING

    async def load_first_page(self) -> int:
        async with self._fetch_lock:
            return await self._reload()

    async def load_more(self) -> int:
        if self.is_searching or not self.has_more:
            return 0
        if self._fetch_lock.locked():
            logger.debug("Page fetch already in flight, ignoring load_more")
            return 0

        async with self._fetch_lock:
            return await self._fetch_page()

    async def _reload(self) -> int:
        self.items = []
        self._token = None
        self.has_more = True
        return await self._fetch_page()

    async def _fetch_page(self) -> int:
        self.loading = True
        try:
            page = await self.source.list_page(self.page_size, self._token)
        finally:
            self.loading = False

        known_ids = {customer.id for customer in self.items}
        added = 0
        for customer in page.items:
            if customer.id not in known_ids:
                known_ids.add(customer.id)
                self.items.append(customer)
                added += 1

        if page.next_token is not None:
            self._token = page.next_token
        self.has_more = len(page.items) == self.page_size
        return added

    async def search(self, term: str) -> list[CustomerResponse]:
        if not term or not term.strip():
            await self.clear_search()
            return self.items

        # Mode only changes under the fetch lock, so a page in flight lands before the switch.
        async with self._fetch_lock:
            self.mode = ListMode.SEARCHING
            self.search_term = term
            self.loading = True
            try:
                results = await self.source.search(term)
            finally:
                self.loading = False

            self.items = _unique_by_id(results)
            self._token = None
            self.has_more = False
            return self.items

    async def clear_search(self) -> None:
        async with self._fetch_lock:
            self.mode = ListMode.BROWSING
            self.search_term = ""
            await self._reload()

    async def delete(self, customer_id: str) -> None:
        await self.source.delete(customer_id)
        self.items = [customer for customer in self.items if customer.id != customer_id]
