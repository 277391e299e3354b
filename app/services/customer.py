import logging
import time
import uuid
from contextlib import asynccontextmanager
from typing import Optional

from sqlalchemy import select, and_, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.exceptions import NotFoundError, StoreError, ValidationError
from app.core.storage import BlobStorage
from app.db.models import Customer
from app.schemas.customer import (
    ClearPhoto,
    CustomerFormData,
    CustomerPage,
    CustomerResponse,
    CustomerStatistics,
    ReplacePhoto,
    ResumeToken,
)
from app.services.photo import delete_customer_photo, upload_customer_photo, validate_photo

logger = logging.getLogger(__name__)

PREFIX_SEARCH_UPPER_BOUND = "\uf8ff"
MS_PER_DAY = 24 * 60 * 60 * 1000


def now_ms() -> int:
    return int(time.time() * 1000)


@asynccontextmanager
async def _store_call(db: AsyncSession, action: str):
    try:
        yield
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error(f"Failed to {action}: {e}")
        raise StoreError(f"Failed to {action}") from e


def _check_form(data: CustomerFormData) -> None:
    if not data.name or not data.name.strip():
        raise ValidationError("Name is required")


def _to_response(customer: Customer) -> CustomerResponse:
    return CustomerResponse(
        id=customer.id,
        name=customer.name,
        email=customer.email,
        phone=customer.phone or "",
        address=customer.address or {},
        photo_url=customer.photo_url,
        created_at=customer.created_at,
        updated_at=customer.updated_at
    )


async def create_customer(
    db: AsyncSession,
    storage: BlobStorage,
    data: CustomerFormData
) -> CustomerResponse:
    _check_form(data)

    photo_url = None
    if isinstance(data.photo, ReplacePhoto):
        photo_url = await upload_customer_photo(
            storage, data.photo.content, data.photo.filename, data.photo.content_type
        )

    timestamp = now_ms()
    customer = Customer(
        id=uuid.uuid4().hex,
        name=data.name,
        email=data.email,
        phone=data.phone,
        address=data.address.model_dump(),
        photo_url=photo_url,
        created_at=timestamp,
        updated_at=timestamp
    )

    try:
        async with _store_call(db, "create customer"):
            db.add(customer)
            await db.commit()
    except StoreError:
        # The record never landed, so the fresh upload has no owner.
        if photo_url:
            await delete_customer_photo(storage, photo_url)
        raise

    logger.info(f"Created customer {customer.id} ({customer.name})")
    return _to_response(customer)


async def list_customers(db: AsyncSession) -> list[CustomerResponse]:
    async with _store_call(db, "list customers"):
        result = await db.execute(
            select(Customer).order_by(Customer.created_at.desc(), Customer.id.desc())
        )
        customers = result.scalars().all()

    return [_to_response(customer) for customer in customers]


async def list_customers_page(
    db: AsyncSession,
    page_size: int,
    resume_token: Optional[ResumeToken] = None
) -> CustomerPage:
    """Fetch one page of customers, newest first.

    Rows are ordered by (created_at, id) descending so two customers created
    in the same millisecond still have a fixed place. Passing the token of the
    previous page resumes strictly after its last row.
    """
    if page_size < 1:
        raise ValidationError("Page size must be at least 1")

    query = select(Customer).order_by(Customer.created_at.desc(), Customer.id.desc())

    if resume_token is not None:
        created_at, customer_id = resume_token.position
        query = query.where(
            or_(
                Customer.created_at < created_at,
                and_(Customer.created_at == created_at, Customer.id < customer_id)
            )
        )

    async with _store_call(db, "list customer page"):
        result = await db.execute(query.limit(page_size))
        customers = result.scalars().all()

    has_more = len(customers) == page_size
    next_token = ResumeToken.after(customers[-1]) if has_more else None

    return CustomerPage(
        items=[_to_response(customer) for customer in customers],
        next_token=next_token,
        has_more=has_more
    )


async def get_customer(db: AsyncSession, customer_id: str) -> Optional[CustomerResponse]:
    async with _store_call(db, f"load customer {customer_id}"):
        customer = await db.get(Customer, customer_id)

    if customer is None:
        return None
    return _to_response(customer)


async def update_customer(
    db: AsyncSession,
    storage: BlobStorage,
    customer_id: str,
    data: CustomerFormData
) -> CustomerResponse:
    _check_form(data)

    async with _store_call(db, f"load customer {customer_id}"):
        customer = await db.get(Customer, customer_id)

    if not customer:
        raise NotFoundError("Customer not found")

    photo_url = customer.photo_url

    if isinstance(data.photo, ReplacePhoto):
        validate_photo(data.photo.content, data.photo.filename)
        if photo_url:
            await delete_customer_photo(storage, photo_url)
        photo_url = await upload_customer_photo(
            storage, data.photo.content, data.photo.filename, data.photo.content_type
        )
    elif isinstance(data.photo, ClearPhoto):
        if photo_url:
            await delete_customer_photo(storage, photo_url)
        photo_url = None

    customer.name = data.name
    customer.email = data.email
    customer.phone = data.phone
    customer.address = data.address.model_dump()
    customer.photo_url = photo_url
    customer.updated_at = max(now_ms(), customer.updated_at)

    async with _store_call(db, f"update customer {customer_id}"):
        await db.commit()

    logger.info(f"Updated customer {customer_id}")
    return _to_response(customer)


async def delete_customer(db: AsyncSession, storage: BlobStorage, customer_id: str) -> None:
    async with _store_call(db, f"load customer {customer_id}"):
        customer = await db.get(Customer, customer_id)

    if not customer:
        logger.debug(f"Delete of unknown customer {customer_id} ignored")
        return

    if customer.photo_url:
        await delete_customer_photo(storage, customer.photo_url)

    async with _store_call(db, f"delete customer {customer_id}"):
        await db.delete(customer)
        await db.commit()

    logger.info(f"Deleted customer {customer_id}")


async def search_customers(db: AsyncSession, term: str) -> list[CustomerResponse]:
    """Customers whose name starts with ``term``, ordered by name.

    Case-sensitive; matches the range [term, term + U+F8FF].
    """
    async with _store_call(db, "search customers"):
        result = await db.execute(
            select(Customer)
            .where(
                and_(
                    Customer.name >= term,
                    Customer.name <= term + PREFIX_SEARCH_UPPER_BOUND
                )
            )
            .order_by(Customer.name, Customer.id)
        )
        customers = result.scalars().all()

    return [_to_response(customer) for customer in customers]


async def get_customer_statistics(db: AsyncSession, now: Optional[int] = None) -> CustomerStatistics:
    if now is None:
        now = now_ms()
    window_start = now - settings.NEW_CUSTOMER_WINDOW_DAYS * MS_PER_DAY

    async with _store_call(db, "load customer statistics"):
        result = await db.execute(select(Customer.created_at, Customer.address))
        rows = result.all()

    new_count = 0
    country_counts: dict[str, int] = {}
    for created_at, address in rows:
        if created_at >= window_start:
            new_count += 1
        country = (address or {}).get("country") or ""
        country_counts[country] = country_counts.get(country, 0) + 1

    return CustomerStatistics(
        total_count=len(rows),
        new_count=new_count,
        country_counts=country_counts
    )
