# -*- coding: utf-8 -*-
"""
backend/app/modules/concurrency/jobs.py

Job programado de respaldo para borrar slots de concurrencia vencidos
(por si la limpieza perezosa en acquire_slot no corre para un usuario).

Autor: Equipo Backend
Fecha: 2026-10-19
"""

from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.shared.config import settings
from app.shared.scheduler import get_scheduler
from .services import ConcurrencyLimiter

logger = logging.getLogger(__name__)

CLEANUP_SLOTS_JOB_ID = "concurrency_cleanup_expired_slots"


async def cleanup_expired_slots(
    session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
) -> int:
    if session_factory is None:
        from app.shared.database.database import SessionLocal

        session_factory = SessionLocal
    return await ConcurrencyLimiter(session_factory).cleanup_expired_slots()


def register_slot_cleanup_job(interval_minutes: Optional[int] = None) -> str:
    """Registra la limpieza de slots en el scheduler global."""
    interval_minutes = interval_minutes or settings.slot_cleanup_interval_minutes
    job_id = get_scheduler().add_interval_job(
        func=cleanup_expired_slots,
        job_id=CLEANUP_SLOTS_JOB_ID,
        minutes=interval_minutes,
    )
    logger.info("Registered slot cleanup job: id=%s interval=%d min", job_id, interval_minutes)
    return job_id


__all__ = [
    "cleanup_expired_slots",
    "register_slot_cleanup_job",
    "CLEANUP_SLOTS_JOB_ID",
]

# Fin del archivo backend/app/modules/concurrency/jobs.py
