# -*- coding: utf-8 -*-
"""
backend/app/modules/credits/services/expiry_service.py

Barridos de caducidad y limpieza.

1. process_expired_credits(now): por usuario (una transacción SERIALIZABLE
   cada uno) pone en cero el remanente de los abonos vencidos, descuenta
   del saldo lo efectivamente caducado y registra un `expire` + ledger.
   El descuento nunca deja el saldo por debajo de los holds pending:
       descontado = min(remanente, max(0, balance - holds_pending))
   Los fallos de un usuario se aíslan y se cuentan.
2. cancel_stale_holds(max_age_hours): cancela en lote los holds pending
   huérfanos (más viejos que el corte o con TTL vencido).
3. get_expiring_credits(user_id, within_days): pronóstico de solo lectura.

Autor: Equipo Backend
Fecha: 2026-10-19
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.shared.config import settings
from app.shared.database.serializable import run_serializable
from app.shared.time import ensure_utc, utcnow
from .. import metrics
from ..enums import CreditTxType
from ..repositories import AccountRepository, CreditTransactionRepository, LedgerRepository

logger = logging.getLogger(__name__)

EXPIRY_LEDGER_REASON = "credit_expiry"
DEFAULT_FORECAST_DAYS = 7


@dataclass
class ExpiryRunResult:
    processed_users: int = 0
    expired_credits: int = 0
    errors: int = 0
    error_user_ids: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class ExpiringCredit:
    transaction_id: str
    tx_type: CreditTxType
    amount: int
    expires_at: datetime
    days_until_expiry: int


@dataclass(frozen=True)
class ExpiringForecast:
    user_id: str
    within_days: int
    total: int
    items: list[ExpiringCredit]


class ExpiryService:
    """
    Servicio de caducidad de créditos y limpieza de holds huérfanos.
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

    async def process_expired_credits(self, now: Optional[datetime] = None) -> ExpiryRunResult:
        now = ensure_utc(now) if now else utcnow()

        async with self.session_factory() as session:
            user_ids = await self.tx_repo.list_users_with_expired_grants(session, now)

        result = ExpiryRunResult()
        for user_id in user_ids:
            try:
                deducted = await self._expire_for_user(user_id, now)
            except Exception:
                result.errors += 1
                result.error_user_ids.append(user_id)
                metrics.sweep_items_total.labels(sweep="expire_credits", outcome="error").inc()
                logger.exception("Credit expiry failed: user=%s", user_id)
                continue

            result.processed_users += 1
            result.expired_credits += deducted
            metrics.sweep_items_total.labels(sweep="expire_credits", outcome="ok").inc()

        if result.expired_credits:
            metrics.expired_credits_total.inc(result.expired_credits)
        logger.info(
            "Credit expiry sweep finished: users=%d expired=%d errors=%d",
            result.processed_users, result.expired_credits, result.errors,
        )
        return result

    async def _expire_for_user(self, user_id: str, now: datetime) -> int:
        async def _work(session: AsyncSession) -> int:
            grants = await self.tx_repo.list_expired_grants(session, user_id, now)
            if not grants:
                return 0

            lapsed = sum(g.remaining_amount or 0 for g in grants)
            for grant in grants:
                grant.remaining_amount = 0
                grant.updated_at = now

            account, _ = await self.account_repo.get_or_create(session, user_id)
            pending = await self.tx_repo.sum_pending_holds(session, user_id)
            deduct = min(lapsed, max(0, account.balance - pending))

            if deduct > 0:
                balance_after = await self.account_repo.apply_delta(session, account, -deduct)
                expire_tx = await self.tx_repo.create(
                    session,
                    user_id=user_id,
                    tx_type=CreditTxType.EXPIRE,
                    amount=-deduct,
                    description=f"Expired {deduct} credits",
                    tx_metadata={
                        "grant_ids": [g.id for g in grants],
                        "lapsed": lapsed,
                    },
                    now=now,
                )
                await self.ledger_repo.append(
                    session,
                    user_id=user_id,
                    credit_id=expire_tx.id,
                    change=-deduct,
                    balance_after=balance_after,
                    reason=EXPIRY_LEDGER_REASON,
                    now=now,
                )
            else:
                await session.flush()

            logger.info(
                "Credits expired: user=%s grants=%d lapsed=%d deducted=%d",
                user_id, len(grants), lapsed, deduct,
            )
            return deduct

        return await run_serializable(
            self.session_factory, _work, operation="credits.expire"
        )

    async def cancel_stale_holds(
        self,
        max_age_hours: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> int:
        """
        Cancela holds pending con antigüedad > max_age_hours o TTL vencido.

        Returns:
            Número de holds cancelados
        """
        now = ensure_utc(now) if now else utcnow()
        hours = settings.stale_hold_max_age_hours if max_age_hours is None else max_age_hours
        cutoff = now - timedelta(hours=hours)

        async def _work(session: AsyncSession) -> int:
            return await self.tx_repo.cancel_stale_holds(
                session, created_before=cutoff, now=now
            )

        cancelled = await run_serializable(
            self.session_factory, _work, operation="credits.cancel_stale_holds"
        )
        if cancelled:
            metrics.sweep_items_total.labels(sweep="cancel_stale_holds", outcome="ok").inc(cancelled)
            logger.warning("Stale holds cancelled: count=%d cutoff=%s", cancelled, cutoff.isoformat())
        else:
            logger.debug("No stale holds found: cutoff=%s", cutoff.isoformat())
        return cancelled

    async def get_expiring_credits(
        self,
        user_id: str,
        within_days: int = DEFAULT_FORECAST_DAYS,
        now: Optional[datetime] = None,
    ) -> ExpiringForecast:
        """Abonos vigentes que caducan dentro de `within_days` días."""
        now = ensure_utc(now) if now else utcnow()
        horizon = now + timedelta(days=within_days)

        async with self.session_factory() as session:
            grants = await self.tx_repo.list_grants_expiring_between(session, user_id, now, horizon)

        items = []
        for grant in grants:
            expires_at = ensure_utc(grant.expires_at)
            days_left = math.ceil((expires_at - now).total_seconds() / 86400)
            items.append(
                ExpiringCredit(
                    transaction_id=grant.id,
                    tx_type=grant.tx_type,
                    amount=grant.remaining_amount or 0,
                    expires_at=expires_at,
                    days_until_expiry=days_left,
                )
            )
        return ExpiringForecast(
            user_id=user_id,
            within_days=within_days,
            total=sum(i.amount for i in items),
            items=items,
        )


__all__ = [
    "ExpiryService",
    "ExpiryRunResult",
    "ExpiringCredit",
    "ExpiringForecast",
]

# Fin del archivo backend/app/modules/credits/services/expiry_service.py
