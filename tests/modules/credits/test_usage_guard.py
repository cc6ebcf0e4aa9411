# -*- coding: utf-8 -*-
"""
backend/tests/modules/credits/test_usage_guard.py

Tests de UsageGuard (slot -> hold -> trabajo -> capture|refund -> liberar):
- Salida normal: captura total y libera el slot
- Excepción: reembolsa el hold, re-lanza y libera el slot
- settle(n): captura parcial; settle(0): reembolso total
- Sin cupo: SlotLimitReachedError sin crear hold
- Sin saldo: el slot se libera
- Fallo al liberar el slot: se registra y no sustituye el resultado

Autor: Equipo Backend
Fecha: 2026-10-19
"""

import asyncio
from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy.exc import OperationalError

from app.modules.concurrency.services import ConcurrencyLimiter
from app.modules.concurrency.tiers import StaticTierLimitProvider
from app.modules.credits.enums import CreditTxStatus, CreditTxType
from app.modules.credits.errors import (
    CaptureExceedsHoldError,
    InsufficientCreditsError,
    InvalidAmountError,
    SlotLimitReachedError,
)
from app.modules.credits.services import UsageGuard
from app.shared.database.serializable import TransactionConflictError


@pytest.fixture
def limiter(session_factory):
    return ConcurrencyLimiter(
        session_factory,
        StaticTierLimitProvider(limits={"FREE": 1, "PLUS": 3, "PRO": 5, "BUSINESS": 10}),
    )


@pytest.fixture
def guard(limiter, hold_service, capture_service, refund_service):
    return UsageGuard(limiter, hold_service, capture_service, refund_service)


@pytest.mark.asyncio
async def test_successful_operation_is_captured(guard, limiter, hold_service, balance_service, fund):
    await fund("u1", 100)

    async with guard.reserve("u1", 10, "generate") as usage:
        assert await limiter.get_active_request_count("u1") == 1
        assert (await balance_service.get_balance("u1")).available_balance == 90

    assert (await hold_service.get_hold(usage.hold_id)).status == CreditTxStatus.COMPLETED
    assert (await balance_service.get_balance("u1")).balance == 90
    assert await limiter.get_active_request_count("u1") == 0


@pytest.mark.asyncio
async def test_failed_operation_is_refunded(guard, limiter, hold_service, balance_service, fund):
    await fund("u1", 100)

    with pytest.raises(RuntimeError, match="provider down"):
        async with guard.reserve("u1", 10) as usage:
            raise RuntimeError("provider down")

    assert (await hold_service.get_hold(usage.hold_id)).status == CreditTxStatus.CANCELLED
    snap = await balance_service.get_balance("u1")
    assert snap.balance == 100
    assert snap.available_balance == 100
    assert await limiter.get_active_request_count("u1") == 0


@pytest.mark.asyncio
async def test_cancelled_operation_is_refunded(guard, limiter, hold_service, fund):
    await fund("u1", 100)
    started = asyncio.Event()
    holder = {}

    async def work():
        async with guard.reserve("u1", 10) as usage:
            holder["hold_id"] = usage.hold_id
            started.set()
            await asyncio.sleep(3600)

    task = asyncio.create_task(work())
    await started.wait()
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    assert (await hold_service.get_hold(holder["hold_id"])).status == CreditTxStatus.CANCELLED
    assert await limiter.get_active_request_count("u1") == 0


@pytest.mark.asyncio
async def test_settle_partial_captures_actual_usage(guard, balance_service, fund):
    await fund("u1", 100)

    async with guard.reserve("u1", 8, "8 images") as usage:
        usage.settle(3)

    snap = await balance_service.get_balance("u1")
    assert snap.balance == 97
    assert snap.pending_holds == 0


@pytest.mark.asyncio
async def test_settle_zero_refunds_everything(guard, hold_service, balance_service, fund):
    await fund("u1", 100)

    async with guard.reserve("u1", 8) as usage:
        usage.settle(0)

    assert (await hold_service.get_hold(usage.hold_id)).status == CreditTxStatus.CANCELLED
    assert (await balance_service.get_balance("u1")).balance == 100


@pytest.mark.asyncio
async def test_settle_validates_amount(guard, fund):
    await fund("u1", 100)

    async with guard.reserve("u1", 5) as usage:
        with pytest.raises(CaptureExceedsHoldError):
            usage.settle(6)
        with pytest.raises(InvalidAmountError):
            usage.settle(-1)
        usage.settle(5)


@pytest.mark.asyncio
async def test_slot_limit_blocks_before_hold(guard, balance_service, fund):
    await fund("u1", 100)

    async with guard.reserve("u1", 10):
        with pytest.raises(SlotLimitReachedError):
            async with guard.reserve("u1", 10):
                pass  # pragma: no cover
        assert (await balance_service.get_balance("u1")).pending_holds == 10

    history = await balance_service.get_history("u1", tx_type=CreditTxType.HOLD)
    assert history.total == 1


@pytest.mark.asyncio
async def test_insufficient_credits_releases_slot(guard, limiter, fund):
    await fund("u1", 5)

    with pytest.raises(InsufficientCreditsError):
        async with guard.reserve("u1", 10):
            pass  # pragma: no cover

    assert await limiter.get_active_request_count("u1") == 0


@pytest.mark.asyncio
async def test_release_failure_after_capture_does_not_raise(guard, limiter, hold_service, balance_service, fund):
    await fund("u1", 100)
    failing = AsyncMock(side_effect=TransactionConflictError("concurrency.release_slot", 3))

    with patch.object(limiter, "release_slot", failing):
        async with guard.reserve("u1", 30, "generate") as usage:
            pass

    failing.assert_awaited_once_with("u1", usage.request_id)
    assert (await hold_service.get_hold(usage.hold_id)).status == CreditTxStatus.COMPLETED
    assert (await balance_service.get_balance("u1")).balance == 70


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "release_error",
    [
        TransactionConflictError("concurrency.release_slot", 3),
        OperationalError("DELETE FROM concurrency_slots", {}, Exception("connection lost")),
    ],
)
async def test_release_failure_keeps_original_exception(guard, limiter, hold_service, balance_service, fund, release_error):
    await fund("u1", 100)

    with patch.object(limiter, "release_slot", AsyncMock(side_effect=release_error)):
        with pytest.raises(ValueError, match="provider failed"):
            async with guard.reserve("u1", 30) as usage:
                raise ValueError("provider failed")

    assert (await hold_service.get_hold(usage.hold_id)).status == CreditTxStatus.CANCELLED
    assert (await balance_service.get_balance("u1")).balance == 100
