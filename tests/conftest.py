"""Test fixtures — async test client, test database, fake object storage, factories."""
import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./test.db")
os.environ.setdefault("JWT_SECRET", "test-secret-key-for-the-listings-suite")

import json
import threading
from decimal import Decimal
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from app.config import settings
from app.core.exceptions import StorageError
from app.core.security import create_access_token
from app.database import Base, install_sqlite_functions
from app.api.deps import get_db, get_image_storage
from app.main import app
from app.models import Property, PropertyImage
from app.services.image_service import ImageStorage, StoredImage


TEST_DATABASE_URL = "sqlite+aiosqlite:///./test.db"

test_engine = create_async_engine(TEST_DATABASE_URL, echo=False)
install_sqlite_functions(test_engine)
test_session_factory = async_sessionmaker(
    test_engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


class FakeImageStorage(ImageStorage):
    """In-memory storage. The public id is derived from the file content,
    content starting with ``fail`` makes the upload raise."""

    def __init__(self):
        self.uploaded_paths: list[str] = []
        self.uploaded: list[str] = []
        self.deleted: list[str] = []
        self.fail_deletes: set[str] = set()
        self._lock = threading.Lock()

    def upload(self, local_path: str) -> StoredImage:
        with open(local_path, "rb") as fh:
            content = fh.read().decode()
        with self._lock:
            self.uploaded_paths.append(local_path)
        if content.startswith("fail"):
            raise StorageError("upload failed")
        public_id = f"properties/{content}"
        with self._lock:
            self.uploaded.append(public_id)
        return StoredImage(public_id=public_id, url=f"https://img.test/{public_id}.jpg")

    def delete(self, public_id: str) -> None:
        with self._lock:
            self.deleted.append(public_id)
        if public_id in self.fail_deletes:
            raise StorageError("delete failed")


@pytest.fixture
def storage() -> FakeImageStorage:
    return FakeImageStorage()


@pytest_asyncio.fixture(scope="function")
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Create tables and yield a test database session."""
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with test_session_factory() as session:
        yield session

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest_asyncio.fixture(scope="function")
async def client(db_session: AsyncSession, storage: FakeImageStorage) -> AsyncGenerator[AsyncClient, None]:
    """Yield an HTTP test client with the test DB and fake storage injected."""

    async def override_get_db():
        try:
            yield db_session
            await db_session.commit()
        except Exception:
            await db_session.rollback()
            raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_image_storage] = lambda: storage

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


def auth_headers(user_id: str = "agent-1", role: str = "agent") -> dict:
    token = create_access_token(user_id=user_id, role=role, settings=settings)
    return {"Authorization": f"Bearer {token}"}


def make_property_payload(**overrides) -> dict:
    """Create a valid ``propertyData`` payload."""
    defaults = {
        "title": "Three bedroom house near the park",
        "description": "Bright family house with a garden.",
        "address": {
            "street": "12 Canal Road",
            "city": "Lahore",
            "state": "Punjab",
            "zipCode": "54000",
            "country": "Pakistan",
        },
        "price": 250000,
        "propertyType": "house",
        "bedrooms": 3,
        "bathrooms": 2,
        "area": 180.5,
        "features": ["garden", "garage"],
        "amenities": [{"name": "school", "distance": 400}],
        "latitude": 31.5204,
        "longitude": 74.3587,
    }
    defaults.update(overrides)
    return defaults


def image_files(*names: str) -> list:
    """Multipart ``images`` parts; each file's content is its name."""
    return [("images", (f"{name}.jpg", name.encode(), "image/jpeg")) for name in names]


async def create_via_api(
    client: AsyncClient,
    images=("img-a",),
    user_id: str = "agent-1",
    **overrides,
):
    return await client.post(
        "/api/v1/properties",
        data={"propertyData": json.dumps(make_property_payload(**overrides))},
        files=image_files(*images),
        headers=auth_headers(user_id),
    )


async def add_property(db: AsyncSession, **overrides) -> Property:
    """Insert a property directly, bypassing the API and storage."""
    images = overrides.pop("images", ["seed"])
    defaults = {
        "title": "Seeded property",
        "price": Decimal("150000"),
        "property_type": "apartment",
        "status": "available",
        "bedrooms": 2,
        "bathrooms": 1,
        "city": "Lahore",
        "state": "Punjab",
        "features": [],
        "amenities": [],
        "agent_id": "agent-1",
    }
    defaults.update(overrides)
    prop = Property(**defaults)
    prop.images = [
        PropertyImage(public_id=f"properties/{name}", url=f"https://img.test/{name}.jpg", position=i)
        for i, name in enumerate(images)
    ]
    db.add(prop)
    await db.commit()
    return prop
