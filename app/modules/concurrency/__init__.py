# -*- coding: utf-8 -*-
"""
backend/app/modules/concurrency/__init__.py

Limitador distribuido de operaciones concurrentes por plan.

Autor: Equipo Backend
Fecha: 2026-10-19
"""

from .models import ConcurrencySlot
from .tiers import SubscriptionTier, TierLimitProvider, StaticTierLimitProvider
from .services import ConcurrencyLimiter, ConcurrencyStatus

__all__ = [
    "ConcurrencySlot",
    "SubscriptionTier",
    "TierLimitProvider",
    "StaticTierLimitProvider",
    "ConcurrencyLimiter",
    "ConcurrencyStatus",
]
