# -*- coding: utf-8 -*-
"""
backend/app/modules/credits/services/__init__.py

Servicios del ledger de créditos.

Autor: Equipo Backend
Fecha: 2026-10-19
"""

from .balance_service import BalanceService, BalanceSnapshot, CreditStats, HistoryPage
from .hold_service import HoldService, HoldResult, HoldInfo
from .capture_service import CaptureService, CaptureResult
from .refund_service import RefundService, RefundResult, CapturedRefundResult, BulkRefundResult
from .expiry_service import ExpiryService, ExpiryRunResult, ExpiringCredit, ExpiringForecast
from .grant_service import GrantService, GrantResult
from .usage_guard import UsageGuard, UsageReservation

__all__ = [
    "BalanceService",
    "BalanceSnapshot",
    "CreditStats",
    "HistoryPage",
    "HoldService",
    "HoldResult",
    "HoldInfo",
    "CaptureService",
    "CaptureResult",
    "RefundService",
    "RefundResult",
    "CapturedRefundResult",
    "BulkRefundResult",
    "ExpiryService",
    "ExpiryRunResult",
    "ExpiringCredit",
    "ExpiringForecast",
    "GrantService",
    "GrantResult",
    "UsageGuard",
    "UsageReservation",
]
