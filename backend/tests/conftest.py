"""Pytest configuration and fixtures."""

import os
import secrets
from datetime import date

import pytest

# Generate a unique test secret for this test run to prevent token forgery
_TEST_JWT_SECRET = f"test-only-{secrets.token_urlsafe(32)}"

# Importing recuerdos.main builds a module-level app from the environment
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("JWT_SECRET_KEY", _TEST_JWT_SECRET)
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["STATIC_DIR"] = "__no_static_dir__"

from fastapi.testclient import TestClient  # noqa: E402

from recuerdos.core.config import Settings  # noqa: E402
from recuerdos.core.database import create_engine, create_sessionmaker, create_tables  # noqa: E402
from recuerdos.core.errors import StorageUnavailable  # noqa: E402
from recuerdos.core.security import CallerIdentity, hash_password  # noqa: E402
from recuerdos.main import create_app  # noqa: E402
from recuerdos.models.memory import Memory  # noqa: E402
from recuerdos.models.user import User  # noqa: E402

JPEG_BYTES = b"\xff\xd8\xff\xe0" + b"\x00\x10JFIF" + b"\x00" * 64
PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64


class FakeObjectStorage:
    """In-memory stand-in for the S3 bucket."""

    base_url = "https://storage.test/recuerdos"

    def __init__(self):
        self.blobs: dict[str, tuple[bytes, str]] = {}
        self.uploaded: list[str] = []
        self.deleted: list[str] = []
        self.fail_uploads = False
        self.fail_deletes = False

    def public_url(self, key: str) -> str:
        return f"{self.base_url}/{key}"

    async def upload(self, key: str, data: bytes, content_type: str) -> str:
        if self.fail_uploads:
            raise StorageUnavailable("Error al subir imagen")
        self.blobs[key] = (data, content_type)
        self.uploaded.append(key)
        return self.public_url(key)

    async def delete(self, key: str) -> None:
        if self.fail_deletes:
            raise StorageUnavailable("Error al eliminar imagen")
        self.blobs.pop(key, None)
        self.deleted.append(key)


@pytest.fixture
def settings(tmp_path):
    return Settings(
        DATABASE_URL=f"sqlite+aiosqlite:///{tmp_path / 'recuerdos.db'}",
        JWT_SECRET_KEY=_TEST_JWT_SECRET,
        AUTO_CREATE_TABLES=True,
        RATE_LIMIT_ENABLED=False,
        STATIC_DIR=str(tmp_path / "no-static"),
        MAX_PHOTO_BYTES=1024,
    )


@pytest.fixture
def storage():
    return FakeObjectStorage()


@pytest.fixture
def client(settings, storage):
    """Create a test client backed by a throwaway sqlite database."""
    app = create_app(settings, storage=storage)
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def register_and_login(client):
    def _register_and_login(username: str, password: str = "secreto") -> dict[str, str]:
        response = client.post("/api/auth/register", json={"username": username, "password": password})
        assert response.status_code == 201, response.text
        response = client.post("/api/auth/login", json={"username": username, "password": password})
        assert response.status_code == 200, response.text
        return {"Authorization": f"Bearer {response.json()['token']}"}

    return _register_and_login


@pytest.fixture
async def engine(settings):
    engine = create_engine(settings)
    await create_tables(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
async def db_session(engine):
    async with create_sessionmaker(engine)() as session:
        yield session


@pytest.fixture
def make_user(db_session):
    async def _make_user(username: str) -> CallerIdentity:
        user = User(username=username, password_hash=hash_password("secreto"))
        db_session.add(user)
        await db_session.commit()
        return CallerIdentity(user_id=user.id, username=user.username)

    return _make_user


@pytest.fixture
def make_memory(db_session):
    async def _make_memory(owner: CallerIdentity, title: str, memory_date: date, key: str | None = None) -> Memory:
        key = key or f"recuerdos/{owner.user_id}/{title.replace(' ', '_')}-{memory_date.isoformat()}.jpg"
        memory = Memory(
            user_id=owner.user_id,
            title=title,
            description=None,
            date=memory_date,
            photo_url=f"{FakeObjectStorage.base_url}/{key}",
            photo_storage_key=key,
        )
        db_session.add(memory)
        await db_session.commit()
        return memory

    return _make_memory
