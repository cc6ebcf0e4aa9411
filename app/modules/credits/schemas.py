# -*- coding: utf-8 -*-
"""
backend/app/modules/credits/schemas.py

Esquemas Pydantic para las rutas internas del ledger de créditos.

Autor: Equipo Backend
Fecha: 2026-10-19
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from .enums import CreditTxStatus, CreditTxType


class BalanceResponse(BaseModel):
    user_id: str
    balance: int = Field(description="Saldo contable (no descuenta holds).")
    pending_holds: int = Field(description="Suma de holds pending.")
    available_balance: int = Field(description="max(0, balance - pending_holds).")


class CreditStatsResponse(BaseModel):
    user_id: str
    balance: int
    available_balance: int
    total_added: int = Field(description="Abonos y reembolsos de soporte.")
    total_used: int = Field(description="Créditos capturados.")
    total_expired: int
    total_purchased: int
    total_bonus: int
    total_referral: int
    total_refunded: int


class TransactionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    hold_id: Optional[str] = None
    tx_type: CreditTxType
    status: CreditTxStatus
    amount: int
    description: Optional[str] = None
    remaining_amount: Optional[int] = None
    expires_at: Optional[datetime] = None
    created_at: datetime


class HistoryResponse(BaseModel):
    items: list[TransactionOut]
    total: int
    limit: int
    offset: int
    has_more: bool


class ExpiringCreditOut(BaseModel):
    transaction_id: str
    tx_type: CreditTxType
    amount: int
    expires_at: datetime
    days_until_expiry: int


class ExpiringCreditsResponse(BaseModel):
    user_id: str
    within_days: int
    total: int
    items: list[ExpiringCreditOut]


class GrantRequest(BaseModel):
    """Abono manual (compra conciliada, bono promocional o referido)."""

    amount: int = Field(gt=0, description="Créditos a abonar.")
    tx_type: Literal["purchase", "bonus", "referral"] = Field(default="purchase")
    description: str = Field(default="", max_length=500)
    expires_at: Optional[datetime] = Field(
        default=None,
        description="Si se indica, el abono caduca en esa fecha.",
    )
    idempotency_key: Optional[str] = Field(default=None, min_length=1, max_length=255)
    metadata: dict[str, Any] = Field(default_factory=dict)


class GrantResponse(BaseModel):
    transaction_id: str
    user_id: str
    tx_type: CreditTxType
    amount: int
    expires_at: Optional[datetime] = None
    created: bool


class CapturedRefundRequest(BaseModel):
    amount: int = Field(gt=0)
    reason: str = Field(default="", max_length=500)


class CapturedRefundResponse(BaseModel):
    user_id: str
    amount: int
    balance_after: int
    transaction_id: str


class ExpiryRunResponse(BaseModel):
    processed_users: int
    expired_credits: int
    errors: int


class StaleHoldsResponse(BaseModel):
    cancelled: int
    max_age_hours: int


__all__ = [
    "BalanceResponse",
    "CreditStatsResponse",
    "TransactionOut",
    "HistoryResponse",
    "ExpiringCreditOut",
    "ExpiringCreditsResponse",
    "GrantRequest",
    "GrantResponse",
    "CapturedRefundRequest",
    "CapturedRefundResponse",
    "ExpiryRunResponse",
    "StaleHoldsResponse",
]

# Fin del archivo backend/app/modules/credits/schemas.py
