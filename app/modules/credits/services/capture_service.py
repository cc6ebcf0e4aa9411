# -*- coding: utf-8 -*-
"""
backend/app/modules/credits/services/capture_service.py

Captura de holds: convierte una reserva pending en cargo definitivo.

Unidad atómica (SERIALIZABLE):
- hold -> completed
- balance -= monto capturado
- INSERT capture (amount = -capturado, hold_id = hold)
- si es parcial, INSERT refund por la diferencia
- INSERT credit_ledger con el saldo resultante
- descuenta el remanente de abonos con caducidad (el que caduca antes primero)

Capturar dos veces el mismo hold lanza AlreadyProcessedError y no
vuelve a debitar.

Autor: Equipo Backend
Fecha: 2026-10-19
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.shared.database.serializable import run_serializable
from app.shared.time import utcnow
from .. import metrics
from ..enums import CreditTxStatus, CreditTxType
from ..errors import (
    AlreadyProcessedError,
    CaptureExceedsHoldError,
    CreditsError,
    HoldNotFoundError,
    require_positive_amount,
)
from ..repositories import AccountRepository, CreditTransactionRepository, LedgerRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CaptureResult:
    hold_id: str
    user_id: str
    captured_amount: int
    refunded_amount: int
    balance_after: int
    capture_transaction_id: str


class CaptureService:
    """
    Servicio de captura total o parcial de holds.
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

    async def capture(self, hold_id: str, description: str = "") -> CaptureResult:
        """Captura el monto completo del hold."""
        return await self._settle(hold_id, None, description, operation="capture")

    async def partial_capture(
        self,
        hold_id: str,
        capture_amount: int,
        description: str = "",
    ) -> CaptureResult:
        """
        Captura `capture_amount` (<= retenido) y reembolsa la diferencia
        en la misma transacción.

        Raises:
            InvalidAmountError: capture_amount no es entero > 0
            CaptureExceedsHoldError: capture_amount > monto retenido
        """
        require_positive_amount(capture_amount)
        return await self._settle(hold_id, capture_amount, description, operation="partial_capture")

    async def _settle(
        self,
        hold_id: str,
        capture_amount: Optional[int],
        description: str,
        *,
        operation: str,
    ) -> CaptureResult:
        async def _work(session: AsyncSession) -> CaptureResult:
            hold = await self.tx_repo.get_hold(session, hold_id, for_update=True)
            if hold is None:
                raise HoldNotFoundError(hold_id)
            if hold.status != CreditTxStatus.PENDING:
                raise AlreadyProcessedError(hold_id, hold.status.value)

            held = hold.held_amount
            captured = held if capture_amount is None else capture_amount
            if captured > held:
                raise CaptureExceedsHoldError(hold_id, captured, held)
            remainder = held - captured

            now = utcnow()
            await self.tx_repo.mark_status(session, hold, CreditTxStatus.COMPLETED)

            account, _ = await self.account_repo.get_or_create(session, hold.user_id)
            balance_after = await self.account_repo.apply_delta(session, account, -captured)

            capture_tx = await self.tx_repo.create(
                session,
                hold_id=hold_id,
                user_id=hold.user_id,
                tx_type=CreditTxType.CAPTURE,
                amount=-captured,
                description=description or hold.description,
                now=now,
            )
            if remainder > 0:
                await self.tx_repo.create(
                    session,
                    hold_id=hold_id,
                    user_id=hold.user_id,
                    tx_type=CreditTxType.REFUND,
                    amount=remainder,
                    description=f"Partial capture remainder for hold {hold_id}",
                    now=now,
                )

            await self.ledger_repo.append(
                session,
                user_id=hold.user_id,
                credit_id=capture_tx.id,
                change=-captured,
                balance_after=balance_after,
                reason=description or f"capture:{hold_id}",
                now=now,
            )
            await self.tx_repo.consume_expiring_grants(session, hold.user_id, captured, now)

            return CaptureResult(
                hold_id=hold_id,
                user_id=hold.user_id,
                captured_amount=captured,
                refunded_amount=remainder,
                balance_after=balance_after,
                capture_transaction_id=capture_tx.id,
            )

        try:
            result = await run_serializable(
                self.session_factory, _work, operation=f"credits.{operation}"
            )
        except AlreadyProcessedError as e:
            metrics.settlements_total.labels(operation=operation, outcome="already_processed").inc()
            logger.warning("Capture skipped, hold already processed: id=%s status=%s", hold_id, e.status)
            raise
        except HoldNotFoundError:
            metrics.settlements_total.labels(operation=operation, outcome="not_found").inc()
            logger.error("Capture failed, hold not found: id=%s", hold_id)
            raise
        except CreditsError:
            metrics.settlements_total.labels(operation=operation, outcome="rejected").inc()
            raise

        metrics.settlements_total.labels(operation=operation, outcome="ok").inc()
        metrics.captured_credits_total.inc(result.captured_amount)
        logger.info(
            "Hold captured: id=%s user=%s captured=%d refunded=%d balance_after=%d",
            hold_id, result.user_id, result.captured_amount,
            result.refunded_amount, result.balance_after,
        )
        return result


__all__ = ["CaptureService", "CaptureResult"]

# Fin del archivo backend/app/modules/credits/services/capture_service.py
