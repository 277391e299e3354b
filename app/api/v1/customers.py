from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile, status
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional

from app.core.config import settings
from app.core.storage import BlobStorage, get_storage
from app.db.session import get_db
from app.schemas.customer import (
    Address,
    ClearPhoto,
    CountryCount,
    CustomerFormData,
    CustomerPageResponse,
    CustomerResponse,
    CustomerStatsResponse,
    KeepPhoto,
    PhotoChange,
    ReplacePhoto,
    ResumeToken,
)
from app.services.customer import (
    create_customer,
    delete_customer,
    get_customer,
    get_customer_statistics,
    list_customers,
    list_customers_page,
    search_customers,
    update_customer,
)


router = APIRouter(prefix="/api/v1/customers", tags=["customers"])


async def _photo_change(photo: Optional[UploadFile], remove_photo: bool) -> PhotoChange:
    if photo is not None and photo.filename:
        content = await photo.read()
        return ReplacePhoto(content=content, filename=photo.filename, content_type=photo.content_type)
    if remove_photo:
        return ClearPhoto()
    return KeepPhoto()


def _form_data(
    name: str,
    email: str,
    phone: str,
    street: str,
    city: str,
    state: str,
    zip_code: str,
    country: str,
    photo: PhotoChange
) -> CustomerFormData:
    try:
        return CustomerFormData(
            name=name,
            email=email,
            phone=phone,
            address=Address(street=street, city=city, state=state, zip_code=zip_code, country=country),
            photo=photo
        )
    except PydanticValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=e.errors(include_url=False, include_context=False),
        )


@router.post("", response_model=CustomerResponse, status_code=status.HTTP_201_CREATED)
async def create(
    name: str = Form(...),
    email: str = Form(""),
    phone: str = Form(""),
    street: str = Form(""),
    city: str = Form(""),
    state: str = Form(""),
    zip_code: str = Form(""),
    country: str = Form(""),
    photo: Optional[UploadFile] = File(None),
    db: AsyncSession = Depends(get_db),
    storage: BlobStorage = Depends(get_storage)
):
    photo_change = await _photo_change(photo, remove_photo=False)
    data = _form_data(name, email, phone, street, city, state, zip_code, country, photo_change)
    return await create_customer(db, storage, data)


@router.get("", response_model=CustomerPageResponse)
async def list_page(
    page_size: int = settings.PAGE_SIZE,
    cursor: Optional[str] = None,
    db: AsyncSession = Depends(get_db)
):
    if page_size < 1 or page_size > 100:
        page_size = settings.PAGE_SIZE

    token = ResumeToken.decode(cursor) if cursor else None
    page = await list_customers_page(db, page_size, token)

    return CustomerPageResponse(
        items=page.items,
        next_cursor=page.next_token.encode() if page.next_token else None,
        has_more=page.has_more
    )


@router.get("/all", response_model=list[CustomerResponse])
async def list_all(db: AsyncSession = Depends(get_db)):
    return await list_customers(db)


@router.get("/search", response_model=list[CustomerResponse])
async def search(q: str = "", db: AsyncSession = Depends(get_db)):
    if not q.strip():
        return await list_customers(db)
    return await search_customers(db, q)


@router.get("/stats", response_model=CustomerStatsResponse)
async def stats(db: AsyncSession = Depends(get_db)):
    statistics = await get_customer_statistics(db)
    return CustomerStatsResponse(
        total_count=statistics.total_count,
        new_count=statistics.new_count,
        country_data=[
            CountryCount(name=name, value=value)
            for name, value in sorted(
                statistics.country_counts.items(), key=lambda item: (-item[1], item[0])
            )
        ]
    )


@router.get("/{customer_id}", response_model=CustomerResponse)
async def get_one(customer_id: str, db: AsyncSession = Depends(get_db)):
    customer = await get_customer(db, customer_id)
    if customer is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Customer not found")
    return customer


@router.put("/{customer_id}", response_model=CustomerResponse)
async def update(
    customer_id: str,
    name: str = Form(...),
    email: str = Form(""),
    phone: str = Form(""),
    street: str = Form(""),
    city: str = Form(""),
    state: str = Form(""),
    zip_code: str = Form(""),
    country: str = Form(""),
    remove_photo: bool = Form(False),
    photo: Optional[UploadFile] = File(None),
    db: AsyncSession = Depends(get_db),
    storage: BlobStorage = Depends(get_storage)
):
    photo_change = await _photo_change(photo, remove_photo)
    data = _form_data(name, email, phone, street, city, state, zip_code, country, photo_change)
    return await update_customer(db, storage, customer_id, data)


@router.delete("/{customer_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete(
    customer_id: str,
    db: AsyncSession = Depends(get_db),
    storage: BlobStorage = Depends(get_storage)
):
    await delete_customer(db, storage, customer_id)
    return None
