# -*- coding: utf-8 -*-
"""
backend/tests/modules/concurrency/test_tier_limits.py

Tests de StaticTierLimitProvider.

Autor: Equipo Backend
Fecha: 2026-10-19
"""

import pytest

from app.modules.concurrency.tiers import StaticTierLimitProvider, SubscriptionTier


@pytest.mark.asyncio
async def test_unknown_user_defaults_to_free():
    provider = StaticTierLimitProvider()

    assert await provider.get_user_tier("anyone") == SubscriptionTier.FREE
    assert await provider.get_concurrent_limit("anyone") == 1


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "tier, expected",
    [
        (SubscriptionTier.FREE, 1),
        (SubscriptionTier.PLUS, 3),
        (SubscriptionTier.PRO, 5),
        (SubscriptionTier.BUSINESS, 10),
    ],
)
async def test_default_limits_by_tier(tier, expected):
    provider = StaticTierLimitProvider(user_tiers={"u1": tier})
    assert await provider.get_concurrent_limit("u1") == expected


@pytest.mark.asyncio
async def test_resolver_is_consulted():
    calls = []

    async def resolver(user_id):
        calls.append(user_id)
        return SubscriptionTier.PRO if user_id == "pro-user" else None

    provider = StaticTierLimitProvider(tier_resolver=resolver)

    assert await provider.get_concurrent_limit("pro-user") == 5
    assert await provider.get_concurrent_limit("nobody") == 1
    assert calls == ["pro-user", "nobody"]


@pytest.mark.asyncio
async def test_resolver_may_return_plain_string():
    async def resolver(user_id):
        return "BUSINESS"

    provider = StaticTierLimitProvider(tier_resolver=resolver)
    assert await provider.get_user_tier("u1") == SubscriptionTier.BUSINESS


@pytest.mark.asyncio
async def test_missing_tier_in_table_falls_back_to_free():
    provider = StaticTierLimitProvider(
        limits={"FREE": 2},
        user_tiers={"u1": SubscriptionTier.PRO},
    )
    assert await provider.get_concurrent_limit("u1") == 2
