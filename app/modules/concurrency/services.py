# -*- coding: utf-8 -*-
"""
backend/app/modules/concurrency/services.py

Limitador distribuido de operaciones concurrentes por usuario.

La tabla concurrency_slots + transacciones SERIALIZABLE hacen de lock
distribuido: no hay memoria compartida entre instancias.

acquire_slot(user_id), dentro de una transacción SERIALIZABLE:
1. borra los slots vencidos del usuario (autolimpieza)
2. cuenta los slots activos
3. si activos >= límite del plan -> None (no es error)
4. si no, inserta un slot con expires_at = now + TTL y devuelve request_id

Si los reintentos por conflicto se agotan, el resultado es None
(equivalente a "límite alcanzado").

Estados de un slot: none -> active -> released | expired.

Autor: Equipo Backend
Fecha: 2026-10-19
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional
from uuid import uuid4

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.shared.config import settings
from app.shared.database.serializable import TransactionConflictError, run_serializable
from app.shared.time import ensure_utc, utcnow
from . import metrics
from .repositories import SlotRepository
from .tiers import StaticTierLimitProvider, SubscriptionTier, TierLimitProvider

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ConcurrencyStatus:
    user_id: str
    tier: SubscriptionTier
    limit: int
    active: int

    @property
    def remaining(self) -> int:
        return max(0, self.limit - self.active)

    @property
    def can_start(self) -> bool:
        return self.active < self.limit


class ConcurrencyLimiter:
    """
    Cupo de operaciones en vuelo por usuario según su plan.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        tier_provider: Optional[TierLimitProvider] = None,
        slot_repo: Optional[SlotRepository] = None,
        ttl_seconds: Optional[int] = None,
    ):
        self.session_factory = session_factory
        self.tier_provider = tier_provider or StaticTierLimitProvider()
        self.slot_repo = slot_repo or SlotRepository()
        if ttl_seconds is None:
            ttl_seconds = settings.slot_ttl_seconds
        self.ttl = timedelta(seconds=ttl_seconds)

    async def acquire_slot(self, user_id: str) -> Optional[str]:
        """
        Intenta ocupar un slot.

        Returns:
            request_id del slot, o None si el límite está alcanzado.
        """
        limit = await self.tier_provider.get_concurrent_limit(user_id)

        async def _work(session: AsyncSession) -> tuple[Optional[str], int]:
            now = utcnow()
            swept = await self.slot_repo.delete_expired(session, now, user_id=user_id)
            active = await self.slot_repo.count_active(session, user_id, now)
            if active >= limit:
                return None, swept

            request_id = str(uuid4())
            await self.slot_repo.add(
                session,
                request_id=request_id,
                user_id=user_id,
                now=now,
                expires_at=now + self.ttl,
            )
            return request_id, swept

        try:
            request_id, swept = await run_serializable(
                self.session_factory, _work, operation="concurrency.acquire_slot"
            )
        except TransactionConflictError:
            metrics.slot_acquisitions_total.labels(outcome="conflict").inc()
            logger.warning("Slot acquisition gave up after serialization conflicts: user=%s", user_id)
            return None

        if swept:
            metrics.expired_slots_swept_total.labels(source="acquire").inc(swept)
            logger.info("Expired slots swept on acquire: user=%s count=%d", user_id, swept)

        if request_id is None:
            metrics.slot_acquisitions_total.labels(outcome="limit_reached").inc()
            logger.info("Concurrency limit reached: user=%s limit=%d", user_id, limit)
            return None

        metrics.slot_acquisitions_total.labels(outcome="acquired").inc()
        logger.debug("Slot acquired: user=%s request=%s", user_id, request_id)
        return request_id

    async def release_slot(self, user_id: str, request_id: str) -> bool:
        """
        Libera el slot. Idempotente: liberar un slot inexistente no es error.

        Returns:
            True si se borró una fila.
        """

        async def _work(session: AsyncSession) -> int:
            return await self.slot_repo.delete(session, user_id, request_id)

        deleted = await run_serializable(
            self.session_factory, _work, operation="concurrency.release_slot"
        )
        if deleted:
            metrics.slot_releases_total.labels(outcome="released").inc()
            logger.debug("Slot released: user=%s request=%s", user_id, request_id)
        else:
            metrics.slot_releases_total.labels(outcome="missing").inc()
            logger.debug("Slot already gone: user=%s request=%s", user_id, request_id)
        return bool(deleted)

    async def get_active_request_count(self, user_id: str) -> int:
        """Slots activos (los vencidos no cuentan aunque no se hayan borrado)."""
        async with self.session_factory() as session:
            return await self.slot_repo.count_active(session, user_id, utcnow())

    async def get_remaining_slots(self, user_id: str) -> int:
        status = await self.get_concurrency_status(user_id)
        return status.remaining

    async def get_concurrency_status(self, user_id: str) -> ConcurrencyStatus:
        tier = await self.tier_provider.get_user_tier(user_id)
        limit = await self.tier_provider.get_concurrent_limit(user_id)
        active = await self.get_active_request_count(user_id)
        return ConcurrencyStatus(user_id=user_id, tier=tier, limit=limit, active=active)

    async def cleanup_expired_slots(self, now: Optional[datetime] = None) -> int:
        """Barrido global de slots vencidos. Devuelve cuántos se borraron."""
        now = ensure_utc(now) if now else utcnow()

        async def _work(session: AsyncSession) -> int:
            return await self.slot_repo.delete_expired(session, now)

        deleted = await run_serializable(
            self.session_factory, _work, operation="concurrency.cleanup_expired_slots"
        )
        if deleted:
            metrics.expired_slots_swept_total.labels(source="cleanup").inc(deleted)
            logger.info("Expired slots cleaned up: count=%d", deleted)
        return deleted


__all__ = ["ConcurrencyLimiter", "ConcurrencyStatus"]

# Fin del archivo backend/app/modules/concurrency/services.py
