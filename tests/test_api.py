import httpx
import pytest

from app.core.customer_client import CustomerAPIClient
from app.core.exceptions import NotFoundError, ValidationError
from app.schemas.customer import Address, ClearPhoto, CustomerFormData, ReplacePhoto
from app.services.listing import CustomerListController, ListMode
from tests.conftest import PNG_BYTES


CUSTOMER_FORM = {
    "name": "John Doe",
    "email": "john@example.com",
    "phone": "555-0100",
    "street": "1 Main St",
    "city": "Springfield",
    "state": "IL",
    "zip_code": "62701",
    "country": "US",
}


@pytest.fixture
async def remote(api_app):
    client = CustomerAPIClient(base_url="http://test", transport=httpx.ASGITransport(app=api_app))
    yield client
    await client.close()


@pytest.mark.asyncio
async def test_health(api_client):
    response = await api_client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


@pytest.mark.asyncio
async def test_create_and_fetch_customer_with_photo(api_client, storage):
    response = await api_client.post(
        "/api/v1/customers",
        data=CUSTOMER_FORM,
        files={"photo": ("me.png", PNG_BYTES, "image/png")},
    )

    assert response.status_code == 201
    created = response.json()
    assert created["name"] == "John Doe"
    assert created["address"]["zip_code"] == "62701"
    assert created["photo_url"].startswith("/static/uploads/customer-photos/")
    assert created["created_at"] == created["updated_at"]
    assert len(storage.puts) == 1

    response = await api_client.get(f"/api/v1/customers/{created['id']}")
    assert response.status_code == 200
    assert response.json() == created


@pytest.mark.asyncio
async def test_get_missing_customer_is_404(api_client):
    response = await api_client.get("/api/v1/customers/missing")

    assert response.status_code == 404
    assert response.json()["detail"] == "Customer not found"


@pytest.mark.asyncio
async def test_create_blank_name_is_400(api_client):
    response = await api_client.post("/api/v1/customers", data={**CUSTOMER_FORM, "name": "   "})

    assert response.status_code == 400
    assert response.json()["detail"] == "Name is required"


@pytest.mark.asyncio
async def test_create_invalid_email_is_422(api_client):
    response = await api_client.post("/api/v1/customers", data={**CUSTOMER_FORM, "email": "nope"})

    assert response.status_code == 422


@pytest.mark.asyncio
async def test_update_and_remove_photo(api_client, storage):
    created = (await api_client.post(
        "/api/v1/customers",
        data=CUSTOMER_FORM,
        files={"photo": ("me.jpg", PNG_BYTES, "image/jpeg")},
    )).json()

    response = await api_client.put(
        f"/api/v1/customers/{created['id']}",
        data={**CUSTOMER_FORM, "name": "Jane Doe", "remove_photo": "true"},
    )

    assert response.status_code == 200
    updated = response.json()
    assert updated["name"] == "Jane Doe"
    assert updated["photo_url"] is None
    assert updated["created_at"] == created["created_at"]
    assert storage.deletes == [created["photo_url"]]


@pytest.mark.asyncio
async def test_update_missing_customer_is_404(api_client):
    response = await api_client.put("/api/v1/customers/missing", data=CUSTOMER_FORM)

    assert response.status_code == 404


@pytest.mark.asyncio
async def test_delete_is_idempotent(api_client):
    created = (await api_client.post("/api/v1/customers", data=CUSTOMER_FORM)).json()

    first = await api_client.delete(f"/api/v1/customers/{created['id']}")
    second = await api_client.delete(f"/api/v1/customers/{created['id']}")

    assert first.status_code == 204
    assert second.status_code == 204
    assert (await api_client.get(f"/api/v1/customers/{created['id']}")).status_code == 404


@pytest.mark.asyncio
async def test_cursor_pagination(api_client, seed_customers):
    await seed_customers([(f"Customer {i}", 1_000 + i) for i in range(5)])

    first = (await api_client.get("/api/v1/customers", params={"page_size": 2})).json()
    second = (await api_client.get(
        "/api/v1/customers", params={"page_size": 2, "cursor": first["next_cursor"]}
    )).json()
    third = (await api_client.get(
        "/api/v1/customers", params={"page_size": 2, "cursor": second["next_cursor"]}
    )).json()

    assert [len(p["items"]) for p in (first, second, third)] == [2, 2, 1]
    assert [p["has_more"] for p in (first, second, third)] == [True, True, False]
    assert third["next_cursor"] is None
    names = [c["name"] for p in (first, second, third) for c in p["items"]]
    assert names == [f"Customer {i}" for i in range(4, -1, -1)]


@pytest.mark.asyncio
async def test_bad_cursor_is_400(api_client):
    response = await api_client.get("/api/v1/customers", params={"cursor": "garbage!"})

    assert response.status_code == 400


@pytest.mark.asyncio
async def test_search_endpoint(api_client, seed_customers):
    await seed_customers([("John", 1), ("Mark", 2), ("Joanna", 3)])

    response = await api_client.get("/api/v1/customers/search", params={"q": "Jo"})

    assert [c["name"] for c in response.json()] == ["Joanna", "John"]


@pytest.mark.asyncio
async def test_blank_search_lists_everyone(api_client, seed_customers):
    await seed_customers([("John", 1), ("Mark", 2)])

    response = await api_client.get("/api/v1/customers/search", params={"q": "  "})

    assert [c["name"] for c in response.json()] == ["Mark", "John"]


@pytest.mark.asyncio
async def test_stats_endpoint(api_client, seed_customers):
    await seed_customers([("Ann", 1, "US"), ("Bob", 2, "US"), ("Cid", 3, "FR")])

    response = await api_client.get("/api/v1/customers/stats")

    assert response.status_code == 200
    stats = response.json()
    assert stats["total_count"] == 3
    assert stats["new_count"] == 0
    assert stats["country_data"] == [{"name": "US", "value": 2}, {"name": "FR", "value": 1}]


@pytest.mark.asyncio
async def test_client_round_trip(remote, storage):
    created = await remote.create_customer(CustomerFormData(
        name="John Doe",
        email="john@example.com",
        address=Address(country="US"),
        photo=ReplacePhoto(PNG_BYTES, "me.png", "image/png"),
    ))

    assert created.photo_url is not None
    assert await remote.get_customer(created.id) == created

    updated = await remote.update_customer(created.id, CustomerFormData(name="John Doe", photo=ClearPhoto()))
    assert updated.photo_url is None
    assert storage.deletes == [created.photo_url]

    stats = await remote.get_statistics()
    assert stats.total_count == 1
    assert stats.country_counts == {"": 1}

    await remote.delete(created.id)
    assert await remote.get_customer(created.id) is None


@pytest.mark.asyncio
async def test_client_maps_errors(remote):
    with pytest.raises(NotFoundError):
        await remote.update_customer("missing", CustomerFormData(name="Nobody"))

    with pytest.raises(ValidationError):
        await remote.create_customer(CustomerFormData(name="   "))


@pytest.mark.asyncio
async def test_controller_over_http(remote, seed_customers):
    await seed_customers([(f"Customer {i}", 1_000 + i) for i in range(20)] + [("Joanna", 5), ("John", 6)])
    controller = CustomerListController(remote, page_size=9)

    await controller.load_first_page()
    await controller.load_more()
    await controller.load_more()

    assert len(controller.items) == 22
    assert controller.has_more is False

    await controller.search("Jo")
    assert controller.mode == ListMode.SEARCHING
    assert [c.name for c in controller.items] == ["Joanna", "John"]

    await controller.delete(controller.items[0].id)
    assert [c.name for c in controller.items] == ["John"]

    await controller.clear_search()
    assert len(controller.items) == 9
    assert all(c.name != "Joanna" for c in controller.items)
