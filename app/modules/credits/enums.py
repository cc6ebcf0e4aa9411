# -*- coding: utf-8 -*-
"""
backend/app/modules/credits/enums.py

Enums para el ledger de créditos.

Se almacenan como VARCHAR (enums no nativos) para que el mismo esquema
funcione en PostgreSQL y en SQLite.

Autor: Equipo Backend
Fecha: 2026-10-19
"""

from enum import Enum


class CreditTxType(str, Enum):
    """Tipo de evento en el ciclo de vida de los créditos."""
    HOLD = "hold"            # Reserva (amount < 0, nace pending)
    CAPTURE = "capture"      # Cargo definitivo de una reserva
    REFUND = "refund"        # Devolución (de reserva o post-captura)
    PURCHASE = "purchase"    # Compra de créditos
    BONUS = "bonus"          # Bono de bienvenida / promocional
    REFERRAL = "referral"    # Recompensa por referido
    EXPIRE = "expire"        # Caducidad de créditos gratuitos


class CreditTxStatus(str, Enum):
    """
    Estado de una transacción.

    Un hold nace PENDING y pasa exactamente una vez a COMPLETED (captura)
    o CANCELLED (reembolso). El resto de tipos nace COMPLETED.
    """
    PENDING = "pending"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class SignupType(str, Enum):
    """Tipo de registro; determina el bono de bienvenida."""
    GENERAL = "general"
    BUSINESS = "business"


# Tipos que abonan créditos desde fuera del ciclo hold/capture
GRANT_TYPES = frozenset({CreditTxType.PURCHASE, CreditTxType.BONUS, CreditTxType.REFERRAL})


__all__ = [
    "CreditTxType",
    "CreditTxStatus",
    "SignupType",
    "GRANT_TYPES",
]
