# -*- coding: utf-8 -*-
"""
backend/app/shared/database/serializable.py

Ejecución de unidades de trabajo bajo aislamiento SERIALIZABLE con
reintentos acotados.

Cada intento abre una sesión NUEVA desde la fábrica, fija el nivel de
aislamiento antes del primer statement, ejecuta el trabajo y hace commit.
Si la base de datos aborta la transacción por conflicto de serialización
(SQLSTATE 40001 / 40P01 en PostgreSQL, "database is locked" en SQLite),
se descarta la sesión completa y se reintenta desde cero.

Uso:
    result = await run_serializable(
        session_factory,
        lambda session: _do_hold(session, user_id, amount),
        operation="credits.hold",
    )

Autor: Equipo Backend
Fecha: 2026-10-19
"""

from __future__ import annotations

import logging
from typing import Awaitable, Callable, Optional, TypeVar

from prometheus_client import Counter
from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.shared.config import settings

logger = logging.getLogger(__name__)

T = TypeVar("T")

ISOLATION_LEVEL = "SERIALIZABLE"

# serialization_failure, deadlock_detected
SERIALIZATION_SQLSTATES = frozenset({"40001", "40P01"})

_SQLITE_BUSY_MARKERS = ("database is locked", "database is busy")


SERIALIZABLE_RETRIES_TOTAL = Counter(
    "creditledger_db_serializable_retries_total",
    "Reintentos por conflicto de serialización",
    ["operation"],
)

SERIALIZABLE_EXHAUSTED_TOTAL = Counter(
    "creditledger_db_serializable_exhausted_total",
    "Operaciones que agotaron los reintentos SERIALIZABLE",
    ["operation"],
)


class TransactionConflictError(Exception):
    """Se agotaron los intentos SERIALIZABLE sin lograr commit."""

    code = "TRANSACTION_CONFLICT"

    def __init__(self, operation: str, attempts: int):
        self.operation = operation
        self.attempts = attempts
        super().__init__(
            f"{operation}: conflicto de serialización tras {attempts} intentos"
        )


def _sqlstate_of(exc: BaseException) -> Optional[str]:
    """Extrae el SQLSTATE de la excepción del driver (asyncpg / psycopg)."""
    for candidate in (exc, exc.__cause__):
        if candidate is None:
            continue
        for attr in ("sqlstate", "pgcode"):
            code = getattr(candidate, attr, None)
            if isinstance(code, str) and code:
                return code
    return None


def is_serialization_failure(exc: BaseException) -> bool:
    """
    Indica si la excepción corresponde a un aborto por conflicto de
    serialización (reintentable) y no a un error de negocio o de esquema.
    """
    if not isinstance(exc, DBAPIError):
        return False

    orig = exc.orig
    if orig is not None:
        code = _sqlstate_of(orig)
        if code in SERIALIZATION_SQLSTATES:
            return True

    message = str(orig if orig is not None else exc).lower()
    return any(marker in message for marker in _SQLITE_BUSY_MARKERS)


async def run_serializable(
    session_factory: async_sessionmaker[AsyncSession],
    work: Callable[[AsyncSession], Awaitable[T]],
    *,
    operation: str,
    max_attempts: Optional[int] = None,
) -> T:
    """
    Ejecuta `work` dentro de una transacción SERIALIZABLE con reintentos.

    Args:
        session_factory: fábrica de sesiones async
        work: corrutina que recibe la sesión y devuelve el resultado
        operation: etiqueta para logs y métricas
        max_attempts: intentos totales (por defecto LEDGER_SERIALIZABLE_MAX_ATTEMPTS)

    Returns:
        El valor devuelto por `work` tras un commit exitoso.

    Raises:
        TransactionConflictError: si todos los intentos fallan por serialización.
        Cualquier otra excepción de `work` se propaga sin reintento.
    """
    attempts = max_attempts or settings.serializable_max_attempts
    last_error: Optional[BaseException] = None

    for attempt in range(1, attempts + 1):
        async with session_factory() as session:
            try:
                await session.connection(
                    execution_options={"isolation_level": ISOLATION_LEVEL}
                )
                result = await work(session)
                await session.commit()
                return result
            except DBAPIError as e:
                await session.rollback()
                if not is_serialization_failure(e):
                    raise
                last_error = e
                SERIALIZABLE_RETRIES_TOTAL.labels(operation=operation).inc()
                logger.warning(
                    "Serialization conflict: operation=%s attempt=%d/%d",
                    operation, attempt, attempts,
                )
            except Exception:
                await session.rollback()
                raise

    SERIALIZABLE_EXHAUSTED_TOTAL.labels(operation=operation).inc()
    logger.error(
        "Serializable retries exhausted: operation=%s attempts=%d",
        operation, attempts,
    )
    raise TransactionConflictError(operation, attempts) from last_error


__all__ = [
    "ISOLATION_LEVEL",
    "SERIALIZATION_SQLSTATES",
    "TransactionConflictError",
    "is_serialization_failure",
    "run_serializable",
]

# Fin del archivo backend/app/shared/database/serializable.py
