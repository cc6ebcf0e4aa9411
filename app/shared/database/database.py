# -*- coding: utf-8 -*-
"""
backend/app/shared/database/database.py

SQLAlchemy async + asyncpg para el ledger de créditos.

Provee:
- engine (create_async_engine)
- SessionLocal (async_sessionmaker)
- Dependencia FastAPI: get_session_factory
- check_database_health()

Notas:
- Las operaciones del ledger abren su propia
  sesión SERIALIZABLE por intento vía run_serializable(), por eso las
  rutas reciben la fábrica de sesiones y no una sesión.

Autor: Equipo Backend
Fecha: 2026-10-19
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from sqlalchemy import text
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from app.shared.config import settings
from app.shared.database.base import Base  # reutilizamos la Base única

logger = logging.getLogger(__name__)


def _engine_kwargs(url: str) -> dict[str, Any]:
    """Parámetros del engine según el dialecto (el pool solo aplica a PostgreSQL)."""
    kwargs: dict[str, Any] = {"echo": bool(settings.db_echo_sql)}
    if make_url(url).get_backend_name() == "postgresql":
        kwargs.update(
            pool_size=settings.db_pool_size,
            max_overflow=settings.db_max_overflow,
            pool_timeout=settings.db_pool_timeout,
            pool_recycle=settings.db_pool_recycle,
            pool_pre_ping=settings.db_pool_pre_ping,
            connect_args={"command_timeout": settings.db_command_timeout_s},
        )
    return kwargs


DATABASE_URL: str = settings.database_url

logger.info(
    "[DB] Engine configurado: %s",
    make_url(DATABASE_URL).render_as_string(hide_password=True),
)

# ── Engine
engine = create_async_engine(DATABASE_URL, **_engine_kwargs(DATABASE_URL))

# ── Session factory
SessionLocal = async_sessionmaker(
    bind=engine,
    expire_on_commit=False,
    class_=AsyncSession,
    autoflush=False,
)


# ── Dependencia FastAPI
def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """
    Dependencia FastAPI que entrega la fábrica de sesiones.

    Los servicios del ledger la usan para abrir una transacción nueva
    en cada reintento. Los tests la sustituyen vía dependency_overrides.
    """
    return SessionLocal


# ── Health check
async def check_database_health(timeout_s: float = 3.0, sql: str = "SELECT 1") -> bool:
    """
    Verifica conectividad a la base de datos.

    Returns:
        True si la conexión es exitosa, False en caso contrario
    """
    try:
        async with asyncio.timeout(timeout_s):
            async with engine.connect() as conn:
                await conn.execute(text(sql))
        return True
    except Exception as e:
        logger.warning("[DB] Health check failed: %s", e)
        return False


__all__ = [
    "engine",
    "SessionLocal",
    "Base",
    "get_session_factory",
    "check_database_health",
]
# Fin del archivo backend/app/shared/database/database.py
