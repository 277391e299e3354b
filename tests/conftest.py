import pytest
import httpx
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker

from app.core.exceptions import StorageError
from app.core.storage import BlobStorage, LocalBlobStorage, get_storage
from app.db.base import Base
from app.db.models import Customer
from app.db.session import get_db


DATABASE_URL = "sqlite+aiosqlite:///:memory:"

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64


class RecordingStorage(BlobStorage):
    """Local storage that remembers every put/delete and can be told to fail."""

    def __init__(self, inner: LocalBlobStorage):
        self.inner = inner
        self.puts = []
        self.deletes = []
        self.fail_puts = False
        self.fail_deletes = False

    async def put_bytes(self, key, data, content_type=None):
        self.puts.append(key)
        if self.fail_puts:
            raise StorageError("storage unavailable")
        await self.inner.put_bytes(key, data, content_type=content_type)

    def url_for(self, key):
        return self.inner.url_for(key)

    async def delete_url(self, url):
        self.deletes.append(url)
        if self.fail_deletes:
            raise StorageError("storage unavailable")
        await self.inner.delete_url(url)


@pytest.fixture
async def engine():
    engine = create_async_engine(DATABASE_URL, echo=False, future=True)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
async def db_session(engine):
    AsyncSessionLocal = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with AsyncSessionLocal() as session:
        yield session


@pytest.fixture
def storage(tmp_path):
    return RecordingStorage(LocalBlobStorage(root=tmp_path / "uploads", url_prefix="/static/uploads"))


@pytest.fixture
def seed_customers(db_session):
    async def _seed(rows):
        """rows: iterable of (name, created_at) or (name, created_at, country)."""
        customers = []
        for i, row in enumerate(rows):
            name, created_at = row[0], row[1]
            country = row[2] if len(row) > 2 else ""
            customer = Customer(
                id=f"{i:032x}",
                name=name,
                email=None,
                phone="",
                address={"street": "", "city": "", "state": "", "zip_code": "", "country": country},
                photo_url=None,
                created_at=created_at,
                updated_at=created_at
            )
            db_session.add(customer)
            customers.append(customer)
        await db_session.commit()
        return customers

    return _seed


@pytest.fixture
async def api_app(db_session, storage):
    from app.main import app

    async def _get_db():
        yield db_session

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_storage] = lambda: storage
    yield app
    app.dependency_overrides.clear()


@pytest.fixture
async def api_client(api_app):
    transport = httpx.ASGITransport(app=api_app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
