# -*- coding: utf-8 -*-
"""
backend/app/modules/concurrency/routes.py

Rutas internas del limitador de concurrencia.

PROTECTED: Authorization: Bearer <APP_SERVICE_TOKEN>.

Autor: Equipo Backend
Fecha: 2026-10-19
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.shared.database.database import get_session_factory
from app.shared.internal_auth import require_internal_service_token
from .services import ConcurrencyLimiter
from .tiers import SubscriptionTier, TierLimitProvider, StaticTierLimitProvider


class ConcurrencyStatusResponse(BaseModel):
    user_id: str
    tier: SubscriptionTier
    limit: int
    active: int
    remaining: int
    can_start: bool


class CleanupSlotsResponse(BaseModel):
    deleted: int


def get_tier_provider() -> TierLimitProvider:
    """Dependency inyectable; en producción se sustituye por el proveedor de suscripciones."""
    return StaticTierLimitProvider()


def get_concurrency_limiter(
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
    tier_provider: TierLimitProvider = Depends(get_tier_provider),
) -> ConcurrencyLimiter:
    return ConcurrencyLimiter(session_factory, tier_provider)


router = APIRouter(
    prefix="/concurrency",
    tags=["concurrency"],
    dependencies=[Depends(require_internal_service_token)],
)

cron_router = APIRouter(
    prefix="/_internal/concurrency/cron",
    tags=["concurrency-cron"],
    dependencies=[Depends(require_internal_service_token)],
)


@router.get("/{user_id}/status", response_model=ConcurrencyStatusResponse)
async def get_concurrency_status(
    user_id: str,
    limiter: ConcurrencyLimiter = Depends(get_concurrency_limiter),
) -> ConcurrencyStatusResponse:
    status = await limiter.get_concurrency_status(user_id)
    return ConcurrencyStatusResponse(
        user_id=status.user_id,
        tier=status.tier,
        limit=status.limit,
        active=status.active,
        remaining=status.remaining,
        can_start=status.can_start,
    )


@cron_router.post("/cleanup-slots", response_model=CleanupSlotsResponse)
async def run_cleanup_slots(
    limiter: ConcurrencyLimiter = Depends(get_concurrency_limiter),
) -> CleanupSlotsResponse:
    deleted = await limiter.cleanup_expired_slots()
    return CleanupSlotsResponse(deleted=deleted)


__all__ = ["router", "cron_router", "get_tier_provider", "get_concurrency_limiter"]

# Fin del archivo backend/app/modules/concurrency/routes.py
