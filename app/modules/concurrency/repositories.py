# -*- coding: utf-8 -*-
"""
backend/app/modules/concurrency/repositories.py

Repositorio de slots de concurrencia. Sin commit: la transacción la
controla el llamador.

Autor: Equipo Backend
Fecha: 2026-10-19
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from .models import ConcurrencySlot


class SlotRepository:

    async def delete_expired(
        self,
        session: AsyncSession,
        now: datetime,
        user_id: Optional[str] = None,
    ) -> int:
        """Borra slots con expires_at < now (de un usuario o de todos)."""
        stmt = delete(ConcurrencySlot).where(ConcurrencySlot.expires_at < now)
        if user_id is not None:
            stmt = stmt.where(ConcurrencySlot.user_id == user_id)
        result = await session.execute(stmt.execution_options(synchronize_session=False))
        return int(result.rowcount or 0)

    async def count_active(self, session: AsyncSession, user_id: str, now: datetime) -> int:
        result = await session.execute(
            select(func.count())
            .select_from(ConcurrencySlot)
            .where(
                ConcurrencySlot.user_id == user_id,
                ConcurrencySlot.expires_at >= now,
            )
        )
        return int(result.scalar_one())

    async def add(
        self,
        session: AsyncSession,
        *,
        request_id: str,
        user_id: str,
        now: datetime,
        expires_at: datetime,
    ) -> ConcurrencySlot:
        slot = ConcurrencySlot(
            request_id=request_id,
            user_id=user_id,
            created_at=now,
            expires_at=expires_at,
        )
        session.add(slot)
        await session.flush()
        return slot

    async def delete(self, session: AsyncSession, user_id: str, request_id: str) -> int:
        result = await session.execute(
            delete(ConcurrencySlot)
            .where(
                ConcurrencySlot.request_id == request_id,
                ConcurrencySlot.user_id == user_id,
            )
            .execution_options(synchronize_session=False)
        )
        return int(result.rowcount or 0)


__all__ = ["SlotRepository"]

# Fin del archivo backend/app/modules/concurrency/repositories.py
