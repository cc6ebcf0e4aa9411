# -*- coding: utf-8 -*-
"""
backend/app/modules/credits/repositories.py

Repositorios del ledger de créditos.

Todos los métodos reciben la sesión como primer argumento y NO hacen
commit: la transacción (SERIALIZABLE) la controla run_serializable().

Autor: Equipo Backend
Fecha: 2026-10-19
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import and_, case, func, not_, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.shared.time import utcnow
from .enums import GRANT_TYPES, CreditTxStatus, CreditTxType
from .models import CreditAccount, CreditLedgerEntry, CreditTransaction, new_id

logger = logging.getLogger(__name__)


class AccountRepository:
    """Repositorio de CreditAccount."""

    async def get_by_user_id(
        self,
        session: AsyncSession,
        user_id: str,
        *,
        for_update: bool = False,
    ) -> Optional[CreditAccount]:
        stmt = select(CreditAccount).where(CreditAccount.user_id == user_id)
        if for_update:
            stmt = stmt.with_for_update()
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_or_create(
        self,
        session: AsyncSession,
        user_id: str,
    ) -> tuple[CreditAccount, bool]:
        """
        Obtiene o crea la cuenta del usuario.

        Usa SAVEPOINT para absorber la carrera de creación sin invalidar
        la transacción principal.

        Returns:
            Tuple (account, created: bool)
        """
        account = await self.get_by_user_id(session, user_id, for_update=True)
        if account:
            return account, False

        try:
            async with session.begin_nested():
                account = CreditAccount(id=new_id(), user_id=user_id, balance=0)
                session.add(account)
                await session.flush()
            logger.info("Credit account created: user=%s", user_id)
            return account, True
        except IntegrityError:
            logger.debug("Credit account already exists: user=%s (concurrent create)", user_id)

        account = await self.get_by_user_id(session, user_id, for_update=True)
        if account is None:
            raise RuntimeError(f"Failed to get or create credit account for user {user_id}")
        return account, False

    async def apply_delta(
        self,
        session: AsyncSession,
        account: CreditAccount,
        delta: int,
    ) -> int:
        """Aplica `delta` al saldo y devuelve el saldo resultante."""
        account.balance += delta
        account.updated_at = utcnow()
        await session.flush()
        return account.balance


class CreditTransactionRepository:
    """Repositorio de CreditTransaction."""

    async def create(
        self,
        session: AsyncSession,
        *,
        user_id: str,
        tx_type: CreditTxType,
        amount: int,
        status: CreditTxStatus = CreditTxStatus.COMPLETED,
        tx_id: Optional[str] = None,
        hold_id: Optional[str] = None,
        description: Optional[str] = None,
        expires_at: Optional[datetime] = None,
        remaining_amount: Optional[int] = None,
        idempotency_key: Optional[str] = None,
        tx_metadata: Optional[dict[str, Any]] = None,
        now: Optional[datetime] = None,
    ) -> CreditTransaction:
        """
        Inserta una transacción.

        Validaciones:
        - amount != 0
        """
        if amount == 0:
            raise ValueError("amount cannot be zero")

        ts = now or utcnow()
        tx = CreditTransaction(
            id=tx_id or new_id(),
            hold_id=hold_id,
            user_id=user_id,
            tx_type=tx_type,
            status=status,
            amount=amount,
            description=description,
            expires_at=expires_at,
            remaining_amount=remaining_amount,
            idempotency_key=idempotency_key,
            tx_metadata=tx_metadata or {},
            created_at=ts,
            updated_at=ts,
        )
        session.add(tx)
        await session.flush()
        return tx

    async def get_hold(
        self,
        session: AsyncSession,
        hold_id: str,
        *,
        for_update: bool = False,
    ) -> Optional[CreditTransaction]:
        stmt = select(CreditTransaction).where(
            CreditTransaction.id == hold_id,
            CreditTransaction.tx_type == CreditTxType.HOLD,
        )
        if for_update:
            stmt = stmt.with_for_update()
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_by_idempotency_key(
        self,
        session: AsyncSession,
        user_id: str,
        idempotency_key: str,
    ) -> Optional[CreditTransaction]:
        result = await session.execute(
            select(CreditTransaction).where(
                CreditTransaction.user_id == user_id,
                CreditTransaction.idempotency_key == idempotency_key,
            )
        )
        return result.scalar_one_or_none()

    async def sum_pending_holds(self, session: AsyncSession, user_id: str) -> int:
        """Suma abs(amount) de los holds pending del usuario."""
        result = await session.execute(
            select(func.coalesce(func.sum(func.abs(CreditTransaction.amount)), 0)).where(
                CreditTransaction.user_id == user_id,
                CreditTransaction.tx_type == CreditTxType.HOLD,
                CreditTransaction.status == CreditTxStatus.PENDING,
            )
        )
        return int(result.scalar_one())

    async def list_pending_hold_ids(self, session: AsyncSession, user_id: str) -> list[str]:
        result = await session.execute(
            select(CreditTransaction.id)
            .where(
                CreditTransaction.user_id == user_id,
                CreditTransaction.tx_type == CreditTxType.HOLD,
                CreditTransaction.status == CreditTxStatus.PENDING,
            )
            .order_by(CreditTransaction.created_at.asc())
        )
        return list(result.scalars().all())

    async def mark_status(
        self,
        session: AsyncSession,
        tx: CreditTransaction,
        status: CreditTxStatus,
    ) -> CreditTransaction:
        tx.status = status
        tx.updated_at = utcnow()
        await session.flush()
        return tx

    async def list_history(
        self,
        session: AsyncSession,
        user_id: str,
        *,
        limit: int,
        offset: int,
        tx_type: Optional[CreditTxType] = None,
    ) -> tuple[list[CreditTransaction], int]:
        """Historial paginado, más reciente primero. Devuelve (items, total)."""
        conditions = [CreditTransaction.user_id == user_id]
        if tx_type is not None:
            conditions.append(CreditTransaction.tx_type == tx_type)

        total = (
            await session.execute(
                select(func.count()).select_from(CreditTransaction).where(*conditions)
            )
        ).scalar_one()

        result = await session.execute(
            select(CreditTransaction)
            .where(*conditions)
            .order_by(CreditTransaction.created_at.desc(), CreditTransaction.id.desc())
            .limit(limit)
            .offset(offset)
        )
        return list(result.scalars().all()), int(total)

    async def sum_amounts_by_type(
        self,
        session: AsyncSession,
        user_id: str,
    ) -> dict[CreditTxType, tuple[int, int]]:
        """
        Totales por tipo que movieron el saldo contable: {tipo: (abonado, debitado)}.

        Excluye los holds y los reembolsos de hold, que nunca tocan el saldo.
        """
        added = func.coalesce(
            func.sum(case((CreditTransaction.amount > 0, CreditTransaction.amount), else_=0)), 0
        )
        deducted = func.coalesce(
            func.sum(case((CreditTransaction.amount < 0, -CreditTransaction.amount), else_=0)), 0
        )
        result = await session.execute(
            select(CreditTransaction.tx_type, added, deducted)
            .where(
                CreditTransaction.user_id == user_id,
                CreditTransaction.tx_type != CreditTxType.HOLD,
                not_(
                    and_(
                        CreditTransaction.tx_type == CreditTxType.REFUND,
                        CreditTransaction.hold_id.is_not(None),
                    )
                ),
            )
            .group_by(CreditTransaction.tx_type)
        )
        return {CreditTxType(row[0]): (int(row[1]), int(row[2])) for row in result.all()}

    # ------------------------------------------------------------------
    # Abonos con caducidad
    # ------------------------------------------------------------------

    def _expiring_grants_stmt(self):
        return select(CreditTransaction).where(
            CreditTransaction.tx_type.in_(GRANT_TYPES),
            CreditTransaction.status == CreditTxStatus.COMPLETED,
            CreditTransaction.expires_at.is_not(None),
            CreditTransaction.remaining_amount > 0,
        )

    async def list_unexpired_grants(
        self,
        session: AsyncSession,
        user_id: str,
        now: datetime,
    ) -> list[CreditTransaction]:
        """Abonos vigentes con saldo remanente, el que caduca antes primero."""
        result = await session.execute(
            self._expiring_grants_stmt()
            .where(
                CreditTransaction.user_id == user_id,
                CreditTransaction.expires_at > now,
            )
            .order_by(CreditTransaction.expires_at.asc(), CreditTransaction.created_at.asc())
        )
        return list(result.scalars().all())

    async def consume_expiring_grants(
        self,
        session: AsyncSession,
        user_id: str,
        amount: int,
        now: datetime,
    ) -> int:
        """
        Descuenta `amount` del remanente de los abonos vigentes, el que
        caduca antes primero. Devuelve cuánto se descontó de abonos con
        caducidad (el resto proviene de créditos permanentes).
        """
        pending = amount
        for grant in await self.list_unexpired_grants(session, user_id, now):
            if pending <= 0:
                break
            take = min(grant.remaining_amount or 0, pending)
            grant.remaining_amount = (grant.remaining_amount or 0) - take
            grant.updated_at = now
            pending -= take
        await session.flush()
        return amount - pending

    async def list_grants_expiring_between(
        self,
        session: AsyncSession,
        user_id: str,
        start: datetime,
        end: datetime,
    ) -> list[CreditTransaction]:
        result = await session.execute(
            self._expiring_grants_stmt()
            .where(
                CreditTransaction.user_id == user_id,
                CreditTransaction.expires_at > start,
                CreditTransaction.expires_at <= end,
            )
            .order_by(CreditTransaction.expires_at.asc())
        )
        return list(result.scalars().all())

    async def list_expired_grants(
        self,
        session: AsyncSession,
        user_id: str,
        now: datetime,
    ) -> list[CreditTransaction]:
        result = await session.execute(
            self._expiring_grants_stmt().where(
                CreditTransaction.user_id == user_id,
                CreditTransaction.expires_at <= now,
            )
        )
        return list(result.scalars().all())

    async def list_users_with_expired_grants(
        self,
        session: AsyncSession,
        now: datetime,
    ) -> list[str]:
        result = await session.execute(
            select(CreditTransaction.user_id)
            .where(
                CreditTransaction.tx_type.in_(GRANT_TYPES),
                CreditTransaction.status == CreditTxStatus.COMPLETED,
                CreditTransaction.expires_at <= now,
                CreditTransaction.remaining_amount > 0,
            )
            .distinct()
        )
        return list(result.scalars().all())

    async def cancel_stale_holds(
        self,
        session: AsyncSession,
        *,
        created_before: datetime,
        now: datetime,
    ) -> int:
        """
        Cancela en lote los holds pending creados antes de `created_before`
        o cuyo TTL ya venció. Devuelve el número de filas afectadas.
        """
        stmt = (
            update(CreditTransaction)
            .where(
                CreditTransaction.tx_type == CreditTxType.HOLD,
                CreditTransaction.status == CreditTxStatus.PENDING,
                or_(
                    CreditTransaction.created_at < created_before,
                    CreditTransaction.expires_at < now,
                ),
            )
            .values(status=CreditTxStatus.CANCELLED, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        result = await session.execute(stmt)
        return int(result.rowcount or 0)


class LedgerRepository:
    """Repositorio de CreditLedgerEntry (solo INSERT)."""

    async def append(
        self,
        session: AsyncSession,
        *,
        user_id: str,
        credit_id: str,
        change: int,
        balance_after: int,
        reason: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> CreditLedgerEntry:
        entry = CreditLedgerEntry(
            id=new_id(),
            user_id=user_id,
            credit_id=credit_id,
            change=change,
            balance_after=balance_after,
            reason=reason,
            created_at=now or utcnow(),
        )
        session.add(entry)
        await session.flush()
        return entry


__all__ = [
    "AccountRepository",
    "CreditTransactionRepository",
    "LedgerRepository",
]

# Fin del archivo backend/app/modules/credits/repositories.py
