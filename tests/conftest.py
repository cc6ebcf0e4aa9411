# backend/tests/conftest.py
# -*- coding: utf-8 -*-
"""
Config global de tests del ledger de créditos.

- PYTHON_ENV=test ANTES de importar la app (scheduler apagado, token
  interno conocido).
- Motor ASYNC sqlite+aiosqlite en ARCHIVO temporal por test: varias
  conexiones reales compiten por el mismo archivo, así que las pruebas de
  concurrencia ejercen de verdad la serialización.
- BEGIN IMMEDIATE en cada transacción: SQLite toma el lock de escritura
  al iniciar, equivalente práctico de SERIALIZABLE.
- Cliente httpx con ASGITransport; la fábrica de sesiones de la app se
  sustituye por la del test.
"""

import os
import sys
import pathlib

os.environ["PYTHON_ENV"] = "test"
os.environ.setdefault("APP_SERVICE_TOKEN", "test-service-token")

ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

import pytest
from sqlalchemy import event
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from httpx import AsyncClient, ASGITransport

from app.shared.database.base import Base

# Registrar tablas en Base.metadata
import app.modules.credits.models  # noqa: F401
import app.modules.concurrency.models  # noqa: F401

from app.modules.credits.enums import CreditTxType
from app.modules.credits.services import (
    BalanceService,
    CaptureService,
    ExpiryService,
    GrantService,
    HoldService,
    RefundService,
)

SERVICE_TOKEN = "test-service-token"


# -----------------------------------------------------------------------------
# Base de datos
# -----------------------------------------------------------------------------
@pytest.fixture
async def engine(tmp_path):
    """Motor SQLite en archivo con BEGIN IMMEDIATE por transacción."""
    url = f"sqlite+aiosqlite:///{tmp_path / 'ledger.db'}"
    eng = create_async_engine(url, connect_args={"timeout": 30})

    @event.listens_for(eng.sync_engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        # Desactiva el BEGIN implícito del driver; lo emitimos nosotros
        dbapi_connection.isolation_level = None

    @event.listens_for(eng.sync_engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield eng

    await eng.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


# -----------------------------------------------------------------------------
# Servicios
# -----------------------------------------------------------------------------
@pytest.fixture
def balance_service(session_factory):
    return BalanceService(session_factory)


@pytest.fixture
def hold_service(session_factory, balance_service):
    return HoldService(session_factory, balance_service=balance_service)


@pytest.fixture
def capture_service(session_factory):
    return CaptureService(session_factory)


@pytest.fixture
def refund_service(session_factory):
    return RefundService(session_factory)


@pytest.fixture
def grant_service(session_factory):
    return GrantService(session_factory)


@pytest.fixture
def expiry_service(session_factory):
    return ExpiryService(session_factory)


@pytest.fixture
def fund(grant_service):
    """Abona créditos permanentes (purchase) a un usuario."""

    async def _fund(user_id: str, amount: int, **kwargs):
        tx_type = kwargs.pop("tx_type", CreditTxType.PURCHASE)
        return await grant_service.add_credits(user_id, amount, tx_type, "test funding", **kwargs)

    return _fund


# -----------------------------------------------------------------------------
# App FastAPI y cliente httpx
# -----------------------------------------------------------------------------
@pytest.fixture
def app(session_factory):
    from app.main import app as fastapi_app
    from app.shared.database.database import get_session_factory

    fastapi_app.dependency_overrides[get_session_factory] = lambda: session_factory
    yield fastapi_app
    fastapi_app.dependency_overrides.clear()


@pytest.fixture
async def client(app):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
def auth_headers():
    return {"Authorization": f"Bearer {SERVICE_TOKEN}"}
