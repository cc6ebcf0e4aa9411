# -*- coding: utf-8 -*-
"""
backend/app/modules/credits/errors.py

Taxonomía de errores del ledger de créditos.

Cada error expone un `code` estable que las rutas traducen a HTTP.
Los errores de validación se lanzan antes de cualquier I/O.

Autor: Equipo Backend
Fecha: 2026-10-19
"""

from __future__ import annotations

from typing import Optional

from app.shared.database.serializable import TransactionConflictError


class CreditsError(Exception):
    """Base para errores de negocio del ledger."""

    code = "CREDITS_ERROR"


class InvalidAmountError(CreditsError):
    code = "INVALID_AMOUNT"

    def __init__(self, amount: object):
        self.amount = amount
        super().__init__(f"Monto inválido: {amount!r} (debe ser entero > 0)")


class InsufficientCreditsError(CreditsError):
    code = "INSUFFICIENT_CREDITS"

    def __init__(self, user_id: str, required: int, available: Optional[int] = None):
        self.user_id = user_id
        self.required = required
        self.available = available
        if available is None:
            msg = f"Créditos insuficientes para user={user_id}: requeridos={required}"
        else:
            msg = (
                f"Créditos insuficientes para user={user_id}: "
                f"requeridos={required} disponibles={available}"
            )
        super().__init__(msg)


class HoldNotFoundError(CreditsError):
    code = "HOLD_NOT_FOUND"

    def __init__(self, hold_id: str):
        self.hold_id = hold_id
        super().__init__(f"Hold no encontrado: {hold_id}")


class AlreadyProcessedError(CreditsError):
    """El hold ya no está pending (capturado o reembolsado)."""

    code = "ALREADY_PROCESSED"

    def __init__(self, hold_id: str, status: str):
        self.hold_id = hold_id
        self.status = status
        super().__init__(f"Hold {hold_id} ya procesado (status={status})")


class CaptureExceedsHoldError(CreditsError):
    code = "CAPTURE_EXCEEDS_HOLD"

    def __init__(self, hold_id: str, requested: int, held: int):
        self.hold_id = hold_id
        self.requested = requested
        self.held = held
        super().__init__(
            f"Captura de {requested} excede el hold {hold_id} ({held})"
        )


class SlotLimitReachedError(CreditsError):
    """Cupo de operaciones concurrentes agotado."""

    code = "SLOT_LIMIT_REACHED"

    def __init__(self, user_id: str):
        self.user_id = user_id
        super().__init__(f"Límite de operaciones concurrentes alcanzado para user={user_id}")


class InvalidGrantTypeError(CreditsError):
    code = "INVALID_GRANT_TYPE"

    def __init__(self, tx_type: object):
        self.tx_type = tx_type
        super().__init__(f"Tipo de abono inválido: {tx_type!r}")


class InvalidReferralError(CreditsError):
    code = "INVALID_REFERRAL"


def require_positive_amount(amount: object) -> int:
    """Valida que el monto sea un entero > 0 (sin I/O). Devuelve el monto."""
    if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
        raise InvalidAmountError(amount)
    return amount


__all__ = [
    "CreditsError",
    "InvalidAmountError",
    "InsufficientCreditsError",
    "HoldNotFoundError",
    "AlreadyProcessedError",
    "CaptureExceedsHoldError",
    "SlotLimitReachedError",
    "InvalidGrantTypeError",
    "InvalidReferralError",
    "TransactionConflictError",
    "require_positive_amount",
]

# Fin del archivo backend/app/modules/credits/errors.py
