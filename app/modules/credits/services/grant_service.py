# -*- coding: utf-8 -*-
"""
backend/app/modules/credits/services/grant_service.py

Abonos de créditos fuera del ciclo hold/capture: compras, bono de
bienvenida y recompensas por referido.

- Crea la cuenta si no existe.
- Incrementa el saldo, inserta la transacción (completed) y el ledger.
- Idempotente por (user_id, idempotency_key).
- Los abonos con caducidad guardan remaining_amount = amount.

Autor: Equipo Backend
Fecha: 2026-10-19
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.shared.config import settings
from app.shared.database.serializable import run_serializable
from app.shared.time import ensure_utc, utcnow
from .. import metrics
from ..enums import GRANT_TYPES, CreditTxType, SignupType
from ..errors import InvalidGrantTypeError, InvalidReferralError, require_positive_amount
from ..models import CreditTransaction
from ..repositories import AccountRepository, CreditTransactionRepository, LedgerRepository

logger = logging.getLogger(__name__)

SIGNUP_BONUS_KEY = "signup_bonus"


@dataclass(frozen=True)
class GrantResult:
    transaction_id: str
    user_id: str
    tx_type: CreditTxType
    amount: int
    expires_at: Optional[datetime]
    created: bool


def _to_result(tx: CreditTransaction, created: bool) -> GrantResult:
    return GrantResult(
        transaction_id=tx.id,
        user_id=tx.user_id,
        tx_type=tx.tx_type,
        amount=tx.amount,
        expires_at=ensure_utc(tx.expires_at) if tx.expires_at else None,
        created=created,
    )


class GrantService:
    """
    Servicio de abonos (purchase / bonus / referral).
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

    async def add_credits(
        self,
        user_id: str,
        amount: int,
        tx_type: CreditTxType,
        description: str = "",
        *,
        metadata: Optional[dict[str, Any]] = None,
        expires_at: Optional[datetime] = None,
        idempotency_key: Optional[str] = None,
    ) -> GrantResult:
        """
        Abona créditos al usuario.

        Raises:
            InvalidAmountError: amount no es entero > 0
            InvalidGrantTypeError: tx_type no es purchase/bonus/referral
        """
        require_positive_amount(amount)
        try:
            tx_type = CreditTxType(tx_type)
        except ValueError:
            raise InvalidGrantTypeError(tx_type) from None
        if tx_type not in GRANT_TYPES:
            raise InvalidGrantTypeError(tx_type)
        expires_at = ensure_utc(expires_at) if expires_at else None

        async def _work(session: AsyncSession) -> GrantResult:
            if idempotency_key:
                existing = await self.tx_repo.get_by_idempotency_key(session, user_id, idempotency_key)
                if existing is not None:
                    return _to_result(existing, created=False)

            now = utcnow()
            account, _ = await self.account_repo.get_or_create(session, user_id)
            balance_after = await self.account_repo.apply_delta(session, account, amount)
            tx = await self.tx_repo.create(
                session,
                user_id=user_id,
                tx_type=tx_type,
                amount=amount,
                description=description or None,
                expires_at=expires_at,
                remaining_amount=amount if expires_at else None,
                idempotency_key=idempotency_key,
                tx_metadata=metadata,
                now=now,
            )
            await self.ledger_repo.append(
                session,
                user_id=user_id,
                credit_id=tx.id,
                change=amount,
                balance_after=balance_after,
                reason=description or tx_type.value,
                now=now,
            )
            return _to_result(tx, created=True)

        try:
            result = await run_serializable(
                self.session_factory, _work, operation="credits.add_credits"
            )
        except IntegrityError:
            # Carrera con la misma idempotency_key: el otro abono ganó
            if not idempotency_key:
                raise
            async with self.session_factory() as session:
                existing = await self.tx_repo.get_by_idempotency_key(session, user_id, idempotency_key)
            if existing is None:
                raise
            result = _to_result(existing, created=False)

        outcome = "created" if result.created else "duplicate"
        metrics.grants_total.labels(tx_type=tx_type.value, outcome=outcome).inc()
        if result.created:
            logger.info(
                "Credits granted: user=%s type=%s amount=%d tx=%s",
                user_id, tx_type.value, amount, result.transaction_id,
            )
        else:
            logger.info(
                "Credit grant already applied: user=%s key=%s tx=%s",
                user_id, idempotency_key, result.transaction_id,
            )
        return result

    async def grant_signup_bonus(
        self,
        user_id: str,
        signup_type: SignupType = SignupType.GENERAL,
    ) -> GrantResult:
        """Bono de bienvenida (crea la cuenta). Una sola vez por usuario."""
        signup_type = SignupType(signup_type)
        amount = (
            settings.signup_bonus_business
            if signup_type == SignupType.BUSINESS
            else settings.signup_bonus_general
        )
        expires_at = utcnow() + timedelta(days=settings.free_credit_expiry_days)
        return await self.add_credits(
            user_id,
            amount,
            CreditTxType.BONUS,
            f"Welcome bonus ({signup_type.value})",
            metadata={"signup_type": signup_type.value},
            expires_at=expires_at,
            idempotency_key=SIGNUP_BONUS_KEY,
        )

    async def grant_referral_reward(
        self,
        referrer_id: str,
        referee_id: str,
    ) -> tuple[GrantResult, GrantResult]:
        """
        Recompensa de referido: mismo monto a quien refiere y al referido.
        Idempotente por pareja.

        Returns:
            (resultado_referrer, resultado_referee)
        """
        if referrer_id == referee_id:
            raise InvalidReferralError(f"Auto-referido no permitido: user={referrer_id}")

        amount = settings.referral_reward_credits
        expires_at = utcnow() + timedelta(days=settings.free_credit_expiry_days)
        key = f"referral:{referrer_id}:{referee_id}"

        referrer = await self.add_credits(
            referrer_id,
            amount,
            CreditTxType.REFERRAL,
            "Referral reward (referrer)",
            metadata={"referee_id": referee_id, "role": "referrer"},
            expires_at=expires_at,
            idempotency_key=key,
        )
        referee = await self.add_credits(
            referee_id,
            amount,
            CreditTxType.REFERRAL,
            "Referral reward (referee)",
            metadata={"referrer_id": referrer_id, "role": "referee"},
            expires_at=expires_at,
            idempotency_key=key,
        )
        return referrer, referee


__all__ = ["GrantService", "GrantResult", "SIGNUP_BONUS_KEY"]

# Fin del archivo backend/app/modules/credits/services/grant_service.py
