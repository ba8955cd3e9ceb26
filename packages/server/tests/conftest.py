"""
Shared fixtures: an in-memory SQLite database behind the real app.

The app's session dependency is pointed at a per-test engine, uploads go to
a temp directory, and the Redis revocation list is replaced by a set.
"""

import os

os.environ.setdefault("CT_DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("CT_LOG_FORMAT", "console")
os.environ.setdefault("CT_SECRET_KEY", "test-secret-key-with-enough-length-for-hs256")

import uuid
from dataclasses import dataclass
from unittest.mock import AsyncMock, patch

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel

import app.models  # noqa: F401  populate metadata
from app.core.database import get_session
from app.core.storage import StorageClient, get_storage
from app.main import app

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64
PASSWORD = "correct-horse-battery"


@dataclass
class Account:
    id: uuid.UUID
    email: str
    role: str
    token: str

    @property
    def headers(self) -> dict:
        return {"Authorization": f"Bearer {self.token}"}


@pytest.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
def revoked():
    return set()


@pytest.fixture
async def client(session_factory, revoked, tmp_path):
    async def override_get_session():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    async def fake_revoke(jti, ttl_seconds=None):
        revoked.add(jti)

    async def fake_is_revoked(jti):
        return jti in revoked

    storage = StorageClient(root=str(tmp_path / "storage"))
    app.dependency_overrides[get_session] = override_get_session
    app.dependency_overrides[get_storage] = lambda: storage

    with patch("app.core.auth.is_jwt_revoked", AsyncMock(side_effect=fake_is_revoked)), \
         patch("app.core.auth.revoke_jwt", AsyncMock(side_effect=fake_revoke)), \
         patch("app.api.v1.auth.revoke_jwt", AsyncMock(side_effect=fake_revoke)):
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://testserver") as ac:
            yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def make_account(client):
    """Sign up a fresh creator or client and return its bearer credentials."""

    async def _make(role: str = "creator", display_name: str | None = None) -> Account:
        email = f"{role}-{uuid.uuid4().hex[:8]}@example.com"
        resp = await client.post(
            "/auth/signup",
            json={
                "email": email,
                "password": PASSWORD,
                "role": role,
                "display_name": display_name or role.title(),
            },
        )
        assert resp.status_code == 201, resp.text
        body = resp.json()
        return Account(
            id=uuid.UUID(body["user_id"]), email=email, role=role, token=body["access_token"]
        )

    return _make


@pytest.fixture
async def creator(make_account):
    return await make_account("creator", "Mika")


@pytest.fixture
async def client_account(make_account):
    return await make_account("client", "Ren")


@pytest.fixture
def make_work(client):
    async def _make(owner: Account, title: str = "Harbour at dusk", is_public: bool = True) -> dict:
        resp = await client.post(
            "/api/v1/works",
            data={"title": title, "tags": "watercolour, landscape", "is_public": str(is_public).lower()},
            files={"image": ("harbour.png", PNG_BYTES, "image/png")},
            headers=owner.headers,
        )
        assert resp.status_code == 201, resp.text
        return resp.json()

    return _make


@pytest.fixture
def make_request(client):
    async def _make(
        sender: Account,
        creator: Account,
        title: str = "Shop front painting",
        message: str = "Could you paint our shop front?",
        **extra,
    ) -> str:
        resp = await client.post(
            "/api/v1/requests",
            json={"creator_id": str(creator.id), "title": title, "message": message, **extra},
            headers=sender.headers,
        )
        assert resp.status_code == 201, resp.text
        return resp.json()["request_id"]

    return _make
