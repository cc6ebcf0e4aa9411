# -*- coding: utf-8 -*-
"""
backend/app/modules/credits/services/refund_service.py

Reembolsos.

- refund(hold_id): libera un hold pending. Marca el hold cancelled e
  inserta un refund por +retenido. NO toca el saldo: el hold nunca se
  descontó de balance.
- refund_captured(user_id, amount): reversa post-captura (soporte).
  Incrementa el saldo y deja transacción + renglón de ledger.
- refund_all_pending_holds(user_id): barrido best-effort; el fallo de un
  hold no aborta los demás.

Autor: Equipo Backend
Fecha: 2026-10-19
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.shared.database.serializable import TransactionConflictError, run_serializable
from app.shared.time import utcnow
from .. import metrics
from ..enums import CreditTxStatus, CreditTxType
from ..errors import (
    AlreadyProcessedError,
    CreditsError,
    HoldNotFoundError,
    require_positive_amount,
)
from ..repositories import AccountRepository, CreditTransactionRepository, LedgerRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RefundResult:
    hold_id: str
    user_id: str
    refunded_amount: int
    refund_transaction_id: str


@dataclass(frozen=True)
class CapturedRefundResult:
    user_id: str
    amount: int
    balance_after: int
    transaction_id: str


@dataclass
class BulkRefundResult:
    total: int = 0
    refunded: int = 0
    skipped: int = 0
    failed: int = 0


class RefundService:
    """
    Servicio de reembolsos de holds y de créditos ya capturados.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        account_repo: Optional[AccountRepository] = None,
        tx_repo: Optional[CreditTransactionRepository] = None,
        ledger_repo: Optional[LedgerRepository] = None,
    ):
        self.session_factory = session_factory
        self.account_repo = account_repo or AccountRepository()
        self.tx_repo = tx_repo or CreditTransactionRepository()
        self.ledger_repo = ledger_repo or LedgerRepository()

    async def refund(self, hold_id: str, reason: str = "") -> RefundResult:
        """
        Libera un hold pending.

        Raises:
            HoldNotFoundError: el hold no existe
            AlreadyProcessedError: el hold ya fue capturado o reembolsado
        """

        async def _work(session: AsyncSession) -> RefundResult:
            hold = await self.tx_repo.get_hold(session, hold_id, for_update=True)
            if hold is None:
                raise HoldNotFoundError(hold_id)
            if hold.status != CreditTxStatus.PENDING:
                raise AlreadyProcessedError(hold_id, hold.status.value)

            await self.tx_repo.mark_status(session, hold, CreditTxStatus.CANCELLED)
            refund_tx = await self.tx_repo.create(
                session,
                hold_id=hold_id,
                user_id=hold.user_id,
                tx_type=CreditTxType.REFUND,
                amount=hold.held_amount,
                description=reason or f"Refund of hold {hold_id}",
            )
            return RefundResult(
                hold_id=hold_id,
                user_id=hold.user_id,
                refunded_amount=hold.held_amount,
                refund_transaction_id=refund_tx.id,
            )

        try:
            result = await run_serializable(self.session_factory, _work, operation="credits.refund")
        except AlreadyProcessedError as e:
            metrics.settlements_total.labels(operation="refund", outcome="already_processed").inc()
            logger.warning("Refund skipped, hold already processed: id=%s status=%s", hold_id, e.status)
            raise
        except HoldNotFoundError:
            metrics.settlements_total.labels(operation="refund", outcome="not_found").inc()
            logger.error("Refund failed, hold not found: id=%s", hold_id)
            raise

        metrics.settlements_total.labels(operation="refund", outcome="ok").inc()
        logger.info(
            "Hold refunded: id=%s user=%s amount=%d",
            hold_id, result.user_id, result.refunded_amount,
        )
        return result

    async def refund_captured(
        self,
        user_id: str,
        amount: int,
        reason: str = "",
    ) -> CapturedRefundResult:
        """
        Devuelve créditos ya capturados (reembolso de soporte).

        Raises:
            InvalidAmountError: amount no es entero > 0
        """
        require_positive_amount(amount)

        async def _work(session: AsyncSession) -> CapturedRefundResult:
            now = utcnow()
            account, _ = await self.account_repo.get_or_create(session, user_id)
            balance_after = await self.account_repo.apply_delta(session, account, amount)
            tx = await self.tx_repo.create(
                session,
                user_id=user_id,
                tx_type=CreditTxType.REFUND,
                amount=amount,
                description=reason or "Support refund",
                now=now,
            )
            await self.ledger_repo.append(
                session,
                user_id=user_id,
                credit_id=tx.id,
                change=amount,
                balance_after=balance_after,
                reason=reason or "support_refund",
                now=now,
            )
            return CapturedRefundResult(
                user_id=user_id,
                amount=amount,
                balance_after=balance_after,
                transaction_id=tx.id,
            )

        result = await run_serializable(
            self.session_factory, _work, operation="credits.refund_captured"
        )
        metrics.settlements_total.labels(operation="refund_captured", outcome="ok").inc()
        logger.info(
            "Captured credits refunded: user=%s amount=%d balance_after=%d",
            user_id, amount, result.balance_after,
        )
        return result

    async def refund_all_pending_holds(self, user_id: str, reason: str = "") -> BulkRefundResult:
        """
        Reembolsa todos los holds pending del usuario, uno por transacción.

        Returns:
            BulkRefundResult con totales (reembolsados, omitidos por ya
            procesados, fallidos)
        """
        async with self.session_factory() as session:
            hold_ids = await self.tx_repo.list_pending_hold_ids(session, user_id)

        result = BulkRefundResult(total=len(hold_ids))
        for hold_id in hold_ids:
            try:
                await self.refund(hold_id, reason=reason)
                result.refunded += 1
            except (AlreadyProcessedError, HoldNotFoundError):
                result.skipped += 1
            except (CreditsError, TransactionConflictError, SQLAlchemyError):
                result.failed += 1
                logger.exception("Bulk refund failed for hold: id=%s user=%s", hold_id, user_id)

        logger.info(
            "Bulk refund finished: user=%s total=%d refunded=%d skipped=%d failed=%d",
            user_id, result.total, result.refunded, result.skipped, result.failed,
        )
        return result


__all__ = [
    "RefundService",
    "RefundResult",
    "CapturedRefundResult",
    "BulkRefundResult",
]

# Fin del archivo backend/app/modules/credits/services/refund_service.py
