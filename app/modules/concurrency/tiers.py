# -*- coding: utf-8 -*-
"""
backend/app/modules/concurrency/tiers.py

Proveedor de límites de concurrencia por plan de suscripción.

El limitador solo consume el entero resuelto; el almacenamiento de
suscripciones es externo y se inyecta como `tier_resolver`.

Autor: Equipo Backend
Fecha: 2026-10-19
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Awaitable, Callable, Mapping, Optional, Protocol

from app.shared.config import settings

logger = logging.getLogger(__name__)


class SubscriptionTier(str, Enum):
    FREE = "FREE"
    PLUS = "PLUS"
    PRO = "PRO"
    BUSINESS = "BUSINESS"


TierResolver = Callable[[str], Awaitable[Optional[SubscriptionTier]]]


class TierLimitProvider(Protocol):
    async def get_user_tier(self, user_id: str) -> SubscriptionTier: ...

    async def get_concurrent_limit(self, user_id: str) -> int: ...


class StaticTierLimitProvider:
    """
    Resuelve el plan del usuario y lo traduce a un límite con una tabla
    estática (por defecto CONCURRENCY_TIER_LIMITS).

    Usuarios sin plan conocido resuelven a FREE.
    """

    def __init__(
        self,
        tier_resolver: Optional[TierResolver] = None,
        limits: Optional[Mapping[str, int]] = None,
        user_tiers: Optional[Mapping[str, SubscriptionTier]] = None,
    ):
        self._resolver = tier_resolver
        self._limits = dict(limits if limits is not None else settings.concurrency_tier_limits)
        self._user_tiers = dict(user_tiers or {})

    async def get_user_tier(self, user_id: str) -> SubscriptionTier:
        tier = self._user_tiers.get(user_id)
        if tier is None and self._resolver is not None:
            tier = await self._resolver(user_id)
        return SubscriptionTier(tier) if tier else SubscriptionTier.FREE

    async def get_concurrent_limit(self, user_id: str) -> int:
        tier = await self.get_user_tier(user_id)
        limit = self._limits.get(tier.value)
        if limit is None:
            logger.warning("No concurrency limit configured for tier=%s; using FREE", tier.value)
            limit = self._limits.get(SubscriptionTier.FREE.value, 1)
        return limit


__all__ = [
    "SubscriptionTier",
    "TierLimitProvider",
    "TierResolver",
    "StaticTierLimitProvider",
]

# Fin del archivo backend/app/modules/concurrency/tiers.py
