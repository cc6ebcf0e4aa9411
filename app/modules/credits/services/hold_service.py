# -*- coding: utf-8 -*-
"""
backend/app/modules/credits/services/hold_service.py

Reserva de créditos (hold).

Dentro de UNA transacción SERIALIZABLE:
1. Recalcula disponible = balance - holds pending
2. Si disponible < amount -> InsufficientCreditsError
3. Inserta el hold (amount negativo, status pending, hold_id = id,
   expires_at = now + HOLD_TTL_MINUTES)

El saldo de la cuenta NO se toca: el hold solo existe como pasivo.
Si los reintentos por conflicto de serialización se agotan, el llamador
recibe el mismo InsufficientCreditsError que en un rechazo normal.

Autor: Equipo Backend
Fecha: 2026-10-19
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.shared.config import settings
from app.shared.database.serializable import TransactionConflictError, run_serializable
from app.shared.time import ensure_utc, utcnow
from .. import metrics
from ..enums import CreditTxStatus, CreditTxType
from ..errors import InsufficientCreditsError, require_positive_amount
from ..models import new_id
from ..repositories import CreditTransactionRepository
from .balance_service import BalanceService

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class HoldResult:
    hold_id: str
    user_id: str
    amount: int
    expires_at: datetime


@dataclass(frozen=True)
class HoldInfo:
    hold_id: str
    user_id: str
    amount: int
    status: CreditTxStatus
    description: Optional[str]
    created_at: datetime
    expires_at: Optional[datetime]


class HoldService:
    """
    Gestor de reservas de créditos.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        balance_service: Optional[BalanceService] = None,
        tx_repo: Optional[CreditTransactionRepository] = None,
        ttl_minutes: Optional[int] = None,
    ):
        self.session_factory = session_factory
        self.balance_service = balance_service or BalanceService(session_factory)
        self.tx_repo = tx_repo or CreditTransactionRepository()
        if ttl_minutes is None:
            ttl_minutes = settings.hold_ttl_minutes
        self.ttl = timedelta(minutes=ttl_minutes)

    async def hold(
        self,
        user_id: str,
        amount: int,
        description: str = "",
    ) -> HoldResult:
        """
        Reserva `amount` créditos del usuario.

        Raises:
            InvalidAmountError: amount no es entero > 0 (antes de I/O)
            InsufficientCreditsError: disponible < amount, o conflicto persistente
        """
        require_positive_amount(amount)

        async def _work(session: AsyncSession) -> HoldResult:
            snap = await self.balance_service.snapshot(session, user_id)
            if snap.available_balance < amount:
                raise InsufficientCreditsError(user_id, amount, snap.available_balance)

            now = utcnow()
            hold_id = new_id()
            expires_at = now + self.ttl
            await self.tx_repo.create(
                session,
                tx_id=hold_id,
                hold_id=hold_id,
                user_id=user_id,
                tx_type=CreditTxType.HOLD,
                status=CreditTxStatus.PENDING,
                amount=-amount,
                description=description or None,
                expires_at=expires_at,
                now=now,
            )
            return HoldResult(hold_id=hold_id, user_id=user_id, amount=amount, expires_at=expires_at)

        try:
            result = await run_serializable(
                self.session_factory, _work, operation="credits.hold"
            )
        except InsufficientCreditsError as e:
            metrics.holds_total.labels(outcome="insufficient").inc()
            logger.info(
                "Hold rejected: user=%s amount=%d available=%s",
                user_id, amount, e.available,
            )
            raise
        except TransactionConflictError as e:
            metrics.holds_total.labels(outcome="conflict").inc()
            logger.warning("Hold rejected after serialization conflicts: user=%s amount=%d", user_id, amount)
            raise InsufficientCreditsError(user_id, amount) from e

        metrics.holds_total.labels(outcome="created").inc()
        logger.info(
            "Hold created: id=%s user=%s amount=%d expires_at=%s",
            result.hold_id, user_id, amount, result.expires_at.isoformat(),
        )
        return result

    async def get_hold(self, hold_id: str) -> Optional[HoldInfo]:
        async with self.session_factory() as session:
            tx = await self.tx_repo.get_hold(session, hold_id)
        if tx is None:
            return None
        return HoldInfo(
            hold_id=tx.id,
            user_id=tx.user_id,
            amount=tx.held_amount,
            status=tx.status,
            description=tx.description,
            created_at=ensure_utc(tx.created_at),
            expires_at=ensure_utc(tx.expires_at) if tx.expires_at else None,
        )

    async def is_hold_valid(self, hold_id: str) -> bool:
        """True si el hold existe, sigue pending y su TTL no ha vencido."""
        info = await self.get_hold(hold_id)
        if info is None or info.status != CreditTxStatus.PENDING:
            return False
        return info.expires_at is None or info.expires_at > utcnow()


__all__ = ["HoldService", "HoldResult", "HoldInfo"]

# Fin del archivo backend/app/modules/credits/services/hold_service.py
