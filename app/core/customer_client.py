import logging
import httpx
from typing import Optional

from app.core.config import settings
from app.core.exceptions import NotFoundError, StorageError, StoreError, ValidationError
from app.schemas.customer import (
    ClearPhoto,
    CustomerFormData,
    CustomerPage,
    CustomerResponse,
    CustomerStatistics,
    ReplacePhoto,
    ResumeToken,
)

logger = logging.getLogger(__name__)

API_PREFIX = "/api/v1/customers"


class CustomerAPIClient:
    """Talks to the customer API over HTTP.

    Exposes list_page/search/delete so it can drive a CustomerListController
    from outside the service process.
    """

    def __init__(self, base_url: str = None, transport: httpx.AsyncBaseTransport = None):
        self.base_url = (base_url or settings.API_BASE_URL).rstrip("/")
        self.transport = transport
        self.client = None

    async def _get_client(self) -> httpx.AsyncClient:
        if self.client is None:
            self.client = httpx.AsyncClient(base_url=self.base_url, transport=self.transport, timeout=30.0)
        return self.client

    async def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        client = await self._get_client()
        try:
            response = await client.request(method, f"{API_PREFIX}{path}", **kwargs)
        except httpx.RequestError as e:
            logger.error(f"{method} {path} failed: {str(e)}")
            raise StoreError(f"Customer API unreachable: {str(e)}") from e

        if response.status_code >= 400:
            detail = _error_detail(response)
            logger.warning(f"{method} {path} returned {response.status_code}: {detail}")
            if response.status_code in (400, 422):
                raise ValidationError(detail)
            if response.status_code == 404:
                raise NotFoundError(detail)
            if response.status_code == 502:
                raise StorageError(detail)
            raise StoreError(detail)
        return response

    async def list_page(self, page_size: int, token: Optional[ResumeToken] = None) -> CustomerPage:
        params = {"page_size": page_size}
        if token is not None:
            params["cursor"] = token.encode()

        response = await self._request("GET", "", params=params)
        data = response.json()
        next_cursor = data.get("next_cursor")
        return CustomerPage(
            items=[CustomerResponse(**item) for item in data.get("items", [])],
            next_token=ResumeToken.decode(next_cursor) if next_cursor else None,
            has_more=data.get("has_more", False)
        )

    async def list_all(self) -> list[CustomerResponse]:
        response = await self._request("GET", "/all")
        return [CustomerResponse(**item) for item in response.json()]

    async def search(self, term: str) -> list[CustomerResponse]:
        response = await self._request("GET", "/search", params={"q": term})
        return [CustomerResponse(**item) for item in response.json()]

    async def get_customer(self, customer_id: str) -> Optional[CustomerResponse]:
        try:
            response = await self._request("GET", f"/{customer_id}")
        except NotFoundError:
            return None
        return CustomerResponse(**response.json())

    async def create_customer(self, data: CustomerFormData) -> CustomerResponse:
        response = await self._request("POST", "", **_form_payload(data))
        return CustomerResponse(**response.json())

    async def update_customer(self, customer_id: str, data: CustomerFormData) -> CustomerResponse:
        response = await self._request("PUT", f"/{customer_id}", **_form_payload(data))
        return CustomerResponse(**response.json())

    async def delete(self, customer_id: str) -> None:
        await self._request("DELETE", f"/{customer_id}")

    async def get_statistics(self) -> CustomerStatistics:
        response = await self._request("GET", "/stats")
        data = response.json()
        return CustomerStatistics(
            total_count=data["total_count"],
            new_count=data["new_count"],
            country_counts={entry["name"]: entry["value"] for entry in data.get("country_data", [])}
        )

    async def close(self):
        if self.client:
            await self.client.aclose()
            self.client = None


def _error_detail(response: httpx.Response) -> str:
    try:
        detail = response.json().get("detail", response.text)
    except ValueError:
        detail = response.text
    return detail if isinstance(detail, str) else str(detail)


def _form_payload(data: CustomerFormData) -> dict:
    form = {
        "name": data.name,
        "email": data.email or "",
        "phone": data.phone,
        **data.address.model_dump(),
    }
    payload = {"data": form}

    if isinstance(data.photo, ReplacePhoto):
        payload["files"] = {
            "photo": (
                data.photo.filename,
                data.photo.content,
                data.photo.content_type or "application/octet-stream"
            )
        }
    elif isinstance(data.photo, ClearPhoto):
        form["remove_photo"] = "true"
    return payload
