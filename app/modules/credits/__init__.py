# -*- coding: utf-8 -*-
"""
backend/app/modules/credits/__init__.py

Ledger de créditos: reservas (hold), captura, reembolso y caducidad.

Uso típico:
    from app.modules.credits import HoldService, CaptureService

Autor: Equipo Backend
Fecha: 2026-10-19
"""

from .enums import CreditTxType, CreditTxStatus, SignupType
from .models import CreditAccount, CreditTransaction, CreditLedgerEntry
from .errors import (
    CreditsError,
    InvalidAmountError,
    InsufficientCreditsError,
    HoldNotFoundError,
    AlreadyProcessedError,
    CaptureExceedsHoldError,
    SlotLimitReachedError,
    TransactionConflictError,
)
from .services import (
    BalanceService,
    HoldService,
    CaptureService,
    RefundService,
    ExpiryService,
    GrantService,
    UsageGuard,
)

__all__ = [
    # Enums
    "CreditTxType",
    "CreditTxStatus",
    "SignupType",
    # Models
    "CreditAccount",
    "CreditTransaction",
    "CreditLedgerEntry",
    # Errors
    "CreditsError",
    "InvalidAmountError",
    "InsufficientCreditsError",
    "HoldNotFoundError",
    "AlreadyProcessedError",
    "CaptureExceedsHoldError",
    "SlotLimitReachedError",
    "TransactionConflictError",
    # Services
    "BalanceService",
    "HoldService",
    "CaptureService",
    "RefundService",
    "ExpiryService",
    "GrantService",
    "UsageGuard",
]
