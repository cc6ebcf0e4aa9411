# -*- coding: utf-8 -*-
"""
backend/app/modules/credits/services/usage_guard.py

Contrato del llamador para una operación facturable:

    slot -> hold -> (trabajo) -> capture | refund -> liberar slot

Uso:
    guard = UsageGuard(limiter, holds, captures, refunds)
    async with guard.reserve(user_id, 4, "upscale x4") as usage:
        images = await provider.generate(...)
        usage.settle(len(images))       # opcional: captura parcial

- Salida normal: captura total (o parcial si se llamó settle();
  settle(0) reembolsa el hold completo).
- Excepción (incluida cancelación): reembolsa el hold y re-lanza.
- El slot se libera siempre.

Autor: Equipo Backend
Fecha: 2026-10-19
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import AsyncIterator, Optional

from sqlalchemy.exc import SQLAlchemyError

from app.modules.concurrency.services import ConcurrencyLimiter
from app.shared.database.serializable import TransactionConflictError
from ..errors import (
    CaptureExceedsHoldError,
    CreditsError,
    InvalidAmountError,
    SlotLimitReachedError,
)
from .capture_service import CaptureService
from .hold_service import HoldService
from .refund_service import RefundService

logger = logging.getLogger(__name__)


@dataclass
class UsageReservation:
    user_id: str
    hold_id: str
    request_id: str
    amount: int
    settled_amount: Optional[int] = field(default=None)

    def settle(self, actual: int) -> None:
        """Fija cuánto se cobrará al salir (0 <= actual <= amount)."""
        if isinstance(actual, bool) or not isinstance(actual, int) or actual < 0:
            raise InvalidAmountError(actual)
        if actual > self.amount:
            raise CaptureExceedsHoldError(self.hold_id, actual, self.amount)
        self.settled_amount = actual


class UsageGuard:
    """
    Orquesta limitador + hold + captura/reembolso para una operación.
    """

    def __init__(
        self,
        limiter: ConcurrencyLimiter,
        hold_service: HoldService,
        capture_service: CaptureService,
        refund_service: RefundService,
    ):
        self.limiter = limiter
        self.hold_service = hold_service
        self.capture_service = capture_service
        self.refund_service = refund_service

    @asynccontextmanager
    async def reserve(
        self,
        user_id: str,
        amount: int,
        description: str = "",
    ) -> AsyncIterator[UsageReservation]:
        """
        Raises:
            SlotLimitReachedError: cupo de concurrencia agotado
            InsufficientCreditsError: saldo disponible insuficiente
        """
        request_id = await self.limiter.acquire_slot(user_id)
        if request_id is None:
            raise SlotLimitReachedError(user_id)

        try:
            hold = await self.hold_service.hold(user_id, amount, description)
            usage = UsageReservation(
                user_id=user_id,
                hold_id=hold.hold_id,
                request_id=request_id,
                amount=amount,
            )
            try:
                yield usage
            except (Exception, asyncio.CancelledError):
                await self._refund_quietly(usage, reason=f"Operation failed: {description}".strip())
                raise

            await self._finalize(usage, description)
        finally:
            await self._release_quietly(user_id, request_id)

    async def _finalize(self, usage: UsageReservation, description: str) -> None:
        settled = usage.settled_amount
        if settled is None or settled == usage.amount:
            await self.capture_service.capture(usage.hold_id, description)
        elif settled == 0:
            await self.refund_service.refund(usage.hold_id, reason="Nothing produced")
        else:
            await self.capture_service.partial_capture(usage.hold_id, settled, description)

    async def _release_quietly(self, user_id: str, request_id: str) -> None:
        # El slot caduca por TTL si la liberación no se completa
        try:
            await self.limiter.release_slot(user_id, request_id)
        except (TransactionConflictError, SQLAlchemyError):
            logger.exception(
                "Slot release did not complete: request=%s user=%s",
                request_id, user_id,
            )

    async def _refund_quietly(self, usage: UsageReservation, reason: str) -> None:
        # El barrido de holds obsoletos cubre el caso en que esto falle
        try:
            await self.refund_service.refund(usage.hold_id, reason=reason)
        except (CreditsError, TransactionConflictError):
            logger.exception(
                "Refund after failed operation did not complete: hold=%s user=%s",
                usage.hold_id, usage.user_id,
            )


__all__ = ["UsageGuard", "UsageReservation"]

# Fin del archivo backend/app/modules/credits/services/usage_guard.py
