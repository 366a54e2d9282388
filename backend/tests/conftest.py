from __future__ import annotations

import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("ACCESS_PIN", "2025")
os.environ.setdefault("APP_SECRET_KEY", "test-secret")

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from factory_inventory.api.deps import get_db
from factory_inventory.db import models  # noqa: F401
from factory_inventory.db.base import Base
from factory_inventory.main import app


@pytest.fixture
async def engine():
    eng = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    @event.listens_for(eng.sync_engine, "connect")
    def _enable_foreign_keys(dbapi_conn, _record):
        cur = dbapi_conn.cursor()
        cur.execute("PRAGMA foreign_keys=ON")
        cur.close()

    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, expire_on_commit=False)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as s:
        yield s


@pytest.fixture
async def client(session_factory):
    async def _get_db():
        async with session_factory() as s:
            yield s

    app.dependency_overrides[get_db] = _get_db
    try:
        async with app.router.lifespan_context(app):
            async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
                yield c
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
async def auth_client(client):
    r = await client.post("/auth/pin", json={"pin": "2025"})
    assert r.status_code == 200, r.text
    client.headers["Authorization"] = f"Bearer {r.json()['access_token']}"
    return client


@pytest.fixture
def new_material(auth_client):
    async def _create(**overrides) -> dict:
        body = {
            "name": "Steel Rod",
            "category": "Raw",
            "unit": "kg",
            "current_stock": 100,
            "threshold": 20,
            "username": "alice",
        }
        body.update(overrides)
        r = await auth_client.post("/materials", json=body)
        assert r.status_code == 201, r.text
        return r.json()["material"]

    return _create
