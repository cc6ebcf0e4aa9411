# -*- coding: utf-8 -*-
"""
backend/app/modules/credits/services/balance_service.py

Servicio de saldo: lectura sin mutación.

available = max(0, balance - suma de holds pending)

La lectura no toma locks: el hold vuelve a calcular el disponible dentro
de su propia transacción SERIALIZABLE.

Autor: Equipo Backend
Fecha: 2026-10-19
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.shared.config import settings
from ..enums import CreditTxType
from ..models import CreditTransaction
from ..repositories import AccountRepository, CreditTransactionRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BalanceSnapshot:
    """Saldo del usuario en un instante."""
    user_id: str
    balance: int
    pending_holds: int

    @property
    def available_balance(self) -> int:
        return max(0, self.balance - self.pending_holds)


@dataclass
class HistoryPage:
    items: list[CreditTransaction]
    total: int
    limit: int
    offset: int

    @property
    def has_more(self) -> bool:
        return self.offset + len(self.items) < self.total


@dataclass(frozen=True)
class CreditStats:
    """Resumen acumulado de movimientos que afectaron el saldo."""
    user_id: str
    balance: int
    available_balance: int
    total_added: int
    total_used: int
    total_expired: int
    total_purchased: int
    total_bonus: int
    total_referral: int
    total_refunded: int


class BalanceService:
    """
    Consultas de saldo e historial.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        account_repo: Optional[AccountRepository] = None,
        tx_repo: Optional[CreditTransactionRepository] = None,
    ):
        self.session_factory = session_factory
        self.account_repo = account_repo or AccountRepository()
        self.tx_repo = tx_repo or CreditTransactionRepository()

    async def snapshot(self, session: AsyncSession, user_id: str) -> BalanceSnapshot:
        """
        Calcula el saldo dentro de una sesión existente.

        El Hold lo invoca dentro de su transacción SERIALIZABLE para que la
        verificación y el INSERT formen una sola unidad atómica.
        """
        account = await self.account_repo.get_by_user_id(session, user_id)
        balance = account.balance if account else 0
        pending = await self.tx_repo.sum_pending_holds(session, user_id)
        return BalanceSnapshot(user_id=user_id, balance=balance, pending_holds=pending)

    async def get_balance(self, user_id: str) -> BalanceSnapshot:
        async with self.session_factory() as session:
            return await self.snapshot(session, user_id)

    async def has_enough_credits(self, user_id: str, amount: int) -> bool:
        snap = await self.get_balance(user_id)
        return snap.available_balance >= amount

    async def get_history(
        self,
        user_id: str,
        limit: Optional[int] = None,
        offset: int = 0,
        tx_type: Optional[CreditTxType] = None,
    ) -> HistoryPage:
        """
        Historial de transacciones paginado (más reciente primero).

        Args:
            limit: tamaño de página (por defecto DEFAULT_PAGE_SIZE, tope MAX_PAGE_SIZE)
            offset: desplazamiento
            tx_type: filtro opcional por tipo
        """
        if limit is None:
            limit = settings.page_size_default
        limit = max(1, min(limit, settings.page_size_max))
        offset = max(0, offset)

        async with self.session_factory() as session:
            items, total = await self.tx_repo.list_history(
                session, user_id, limit=limit, offset=offset, tx_type=tx_type
            )
        return HistoryPage(items=items, total=total, limit=limit, offset=offset)

    async def get_stats(self, user_id: str) -> CreditStats:
        """
        Totales del usuario a partir de credit_transactions.

        total_used cuenta solo capturas; lo caducado va en total_expired.
        Los holds y sus reembolsos no cuentan: nunca movieron el saldo.
        """
        async with self.session_factory() as session:
            snap = await self.snapshot(session, user_id)
            totals = await self.tx_repo.sum_amounts_by_type(session, user_id)

        def added(tx_type: CreditTxType) -> int:
            return totals.get(tx_type, (0, 0))[0]

        def deducted(tx_type: CreditTxType) -> int:
            return totals.get(tx_type, (0, 0))[1]

        return CreditStats(
            user_id=user_id,
            balance=snap.balance,
            available_balance=snap.available_balance,
            total_added=sum(a for a, _ in totals.values()),
            total_used=deducted(CreditTxType.CAPTURE),
            total_expired=deducted(CreditTxType.EXPIRE),
            total_purchased=added(CreditTxType.PURCHASE),
            total_bonus=added(CreditTxType.BONUS),
            total_referral=added(CreditTxType.REFERRAL),
            total_refunded=added(CreditTxType.REFUND),
        )


__all__ = ["BalanceService", "BalanceSnapshot", "CreditStats", "HistoryPage"]

# Fin del archivo backend/app/modules/credits/services/balance_service.py
