# -*- coding: utf-8 -*-
"""
backend/app/modules/credits/models.py

Modelos ORM del ledger de créditos.

Tablas:
- credit_accounts: saldo por usuario
- credit_transactions: bitácora de eventos (hold, capture, refund, abonos, caducidad)
- credit_ledger: auditoría inmutable de cada cambio aplicado al saldo

Los identificadores son UUID4 generados en cliente: un hold queda
autoconsistente (hold_id == id) en un solo INSERT.

Autor: Equipo Backend
Fecha: 2026-10-19
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional
from uuid import uuid4

from sqlalchemy import (
    JSON,
    CheckConstraint,
    DateTime,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from app.shared.database.base import Base, str_enum
from app.shared.time import utcnow
from .enums import CreditTxStatus, CreditTxType


def new_id() -> str:
    return str(uuid4())


_JSONType = JSON().with_variant(JSONB(), "postgresql")


class CreditAccount(Base):
    """
    Saldo de créditos del usuario.

    `balance` solo lo modifican la captura, el reembolso post-captura,
    los abonos y la caducidad. Los holds NO lo tocan: son un pasivo
    derivado (suma de holds pending).
    """

    __tablename__ = "credit_accounts"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    user_id: Mapped[str] = mapped_column(String(128), nullable=False, unique=True)
    balance: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )

    __table_args__ = (
        CheckConstraint("balance >= 0", name="balance_non_negative"),
    )

    def __repr__(self) -> str:
        return f"<CreditAccount user={self.user_id} balance={self.balance}>"


class CreditTransaction(Base):
    """
    Evento del ciclo de vida de créditos.

    - hold: amount < 0, status pending -> completed | cancelled, hold_id = id
    - capture / refund: hold_id apunta al hold de origen (NULL en reembolsos
      de soporte), status completed
    - purchase / bonus / referral: amount > 0; si caducan llevan
      expires_at + remaining_amount
    - expire: amount < 0, registra lo efectivamente descontado
    """

    __tablename__ = "credit_transactions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    hold_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True, index=True)
    user_id: Mapped[str] = mapped_column(String(128), nullable=False)

    amount: Mapped[int] = mapped_column(Integer, nullable=False)

    tx_type: Mapped[CreditTxType] = mapped_column(
        str_enum(CreditTxType, name="credit_tx_type"),
        nullable=False,
    )
    status: Mapped[CreditTxStatus] = mapped_column(
        str_enum(CreditTxStatus, name="credit_tx_status"),
        nullable=False,
    )

    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    remaining_amount: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    expires_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    idempotency_key: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    # Atributo tx_metadata mapeado a la columna real "metadata"
    tx_metadata: Mapped[dict[str, Any]] = mapped_column(
        "metadata", _JSONType, nullable=False, default=dict
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )

    __table_args__ = (
        CheckConstraint("amount <> 0", name="amount_nonzero"),
        CheckConstraint(
            "remaining_amount IS NULL OR remaining_amount >= 0",
            name="remaining_non_negative",
        ),
        UniqueConstraint("user_id", "idempotency_key", name="uq_credit_tx_user_idem"),
        Index("ix_credit_tx_user_type_status", "user_id", "tx_type", "status"),
        Index("ix_credit_tx_user_created", "user_id", "created_at"),
        Index("ix_credit_tx_expires_at", "expires_at"),
    )

    @property
    def held_amount(self) -> int:
        """Créditos retenidos por un hold (valor positivo)."""
        return abs(self.amount)

    def __repr__(self) -> str:
        return (
            f"<CreditTransaction id={self.id} user={self.user_id} "
            f"type={self.tx_type.value} status={self.status.value} amount={self.amount}>"
        )


class CreditLedgerEntry(Base):
    """
    Auditoría inmutable: un renglón por cada cambio aplicado a `balance`.
    Solo INSERT; nunca se actualiza.
    """

    __tablename__ = "credit_ledger"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    user_id: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    credit_id: Mapped[str] = mapped_column(String(128), nullable=False)
    change: Mapped[int] = mapped_column(Integer, nullable=False)
    balance_after: Mapped[int] = mapped_column(Integer, nullable=False)
    reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )

    def __repr__(self) -> str:
        return (
            f"<CreditLedgerEntry user={self.user_id} change={self.change} "
            f"balance_after={self.balance_after}>"
        )


__all__ = [
    "CreditAccount",
    "CreditTransaction",
    "CreditLedgerEntry",
    "new_id",
]

# Fin del archivo backend/app/modules/credits/models.py
