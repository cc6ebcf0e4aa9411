# -*- coding: utf-8 -*-
"""
backend/app/modules/credits/jobs.py

Jobs programados del ledger de créditos:
- Caducidad de créditos gratuitos (cron, por defecto diario 00:00 UTC)
- Cancelación de holds huérfanos (intervalo)

Autor: Equipo Backend
Fecha: 2026-10-19
"""

from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.shared.config import settings
from app.shared.scheduler import get_scheduler
from .services.expiry_service import ExpiryRunResult, ExpiryService

logger = logging.getLogger(__name__)

# IDs de los jobs para referencia
EXPIRE_CREDITS_JOB_ID = "credits_expire_free_credits"
CANCEL_STALE_HOLDS_JOB_ID = "credits_cancel_stale_holds"


def _default_session_factory() -> async_sessionmaker[AsyncSession]:
    from app.shared.database.database import SessionLocal

    return SessionLocal


async def expire_credits(
    session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
) -> ExpiryRunResult:
    """Ejecuta el barrido de caducidad de créditos."""
    service = ExpiryService(session_factory or _default_session_factory())
    return await service.process_expired_credits()


async def cancel_stale_holds(
    max_age_hours: Optional[int] = None,
    session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
) -> int:
    """Cancela holds pending más viejos que max_age_hours o con TTL vencido."""
    service = ExpiryService(session_factory or _default_session_factory())
    return await service.cancel_stale_holds(max_age_hours=max_age_hours)


def register_credit_jobs(
    cron_expression: Optional[str] = None,
    stale_interval_minutes: Optional[int] = None,
    max_age_hours: Optional[int] = None,
) -> list[str]:
    """
    Registra los jobs de créditos en el scheduler global.

    Returns:
        IDs de los jobs registrados
    """
    scheduler = get_scheduler()
    cron_expression = cron_expression or settings.expire_credits_cron
    stale_interval_minutes = stale_interval_minutes or settings.stale_holds_interval_minutes

    expire_id = scheduler.add_cron_job(
        func=expire_credits,
        job_id=EXPIRE_CREDITS_JOB_ID,
        cron_expression=cron_expression,
    )
    stale_id = scheduler.add_interval_job(
        func=cancel_stale_holds,
        job_id=CANCEL_STALE_HOLDS_JOB_ID,
        minutes=stale_interval_minutes,
        max_age_hours=max_age_hours,
    )

    logger.info(
        "Registered credit jobs: expire cron='%s' stale_holds every %d min",
        cron_expression,
        stale_interval_minutes,
    )
    return [expire_id, stale_id]


__all__ = [
    "expire_credits",
    "cancel_stale_holds",
    "register_credit_jobs",
    "EXPIRE_CREDITS_JOB_ID",
    "CANCEL_STALE_HOLDS_JOB_ID",
]

# Fin del archivo backend/app/modules/credits/jobs.py
