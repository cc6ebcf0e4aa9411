# -*- coding: utf-8 -*-
"""
backend/tests/modules/credits/test_hold_service.py

Tests de HoldService:
- Validación de monto antes de cualquier I/O
- Rechazo por saldo disponible insuficiente
- El hold no toca el saldo contable
- Holds concurrentes nunca sobre-reservan
- Conflicto persistente -> InsufficientCreditsError

Autor: Equipo Backend
Fecha: 2026-10-19
"""

import asyncio
from datetime import timedelta
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from app.modules.credits.enums import CreditTxStatus
from app.modules.credits.errors import InsufficientCreditsError, InvalidAmountError
from app.modules.credits.services.hold_service import HoldService
from app.shared.database.serializable import TransactionConflictError
from app.shared.time import utcnow


@pytest.mark.asyncio
@pytest.mark.parametrize("amount", [0, -5, 1.5, "10", True, None])
async def test_invalid_amount_rejected_before_io(amount):
    factory = MagicMock()
    service = HoldService(factory, balance_service=MagicMock(), tx_repo=MagicMock())

    with pytest.raises(InvalidAmountError):
        await service.hold("u1", amount)

    factory.assert_not_called()


@pytest.mark.asyncio
async def test_hold_without_funds_is_rejected(hold_service):
    with pytest.raises(InsufficientCreditsError) as exc_info:
        await hold_service.hold("u1", 1)

    assert exc_info.value.code == "INSUFFICIENT_CREDITS"
    assert exc_info.value.available == 0


@pytest.mark.asyncio
async def test_hold_creates_pending_reservation(hold_service, balance_service, fund):
    await fund("u1", 100)

    before = utcnow()
    result = await hold_service.hold("u1", 40, "render")

    assert result.amount == 40
    assert result.expires_at >= before + timedelta(minutes=59)

    info = await hold_service.get_hold(result.hold_id)
    assert info is not None
    assert info.hold_id == result.hold_id
    assert info.amount == 40
    assert info.status == CreditTxStatus.PENDING
    assert info.description == "render"

    snap = await balance_service.get_balance("u1")
    assert snap.balance == 100
    assert snap.available_balance == 60


@pytest.mark.asyncio
async def test_hold_exactly_available_then_nothing_left(hold_service, fund):
    await fund("u1", 50)
    await hold_service.hold("u1", 50)

    with pytest.raises(InsufficientCreditsError):
        await hold_service.hold("u1", 1)


@pytest.mark.asyncio
async def test_concurrent_holds_never_overbook(hold_service, balance_service, fund):
    await fund("u1", 100)

    results = await asyncio.gather(
        *(hold_service.hold("u1", 30) for _ in range(5)),
        return_exceptions=True,
    )

    ok = [r for r in results if not isinstance(r, Exception)]
    failed = [r for r in results if isinstance(r, Exception)]
    assert len(ok) == 3
    assert len(failed) == 2
    assert all(isinstance(e, InsufficientCreditsError) for e in failed)

    snap = await balance_service.get_balance("u1")
    assert snap.pending_holds == 90
    assert snap.pending_holds <= snap.balance


@pytest.mark.asyncio
async def test_conflict_exhaustion_reported_as_insufficient(hold_service, fund):
    await fund("u1", 100)

    with patch(
        "app.modules.credits.services.hold_service.run_serializable",
        AsyncMock(side_effect=TransactionConflictError("credits.hold", 3)),
    ):
        with pytest.raises(InsufficientCreditsError) as exc_info:
            await hold_service.hold("u1", 10)

    assert isinstance(exc_info.value.__cause__, TransactionConflictError)


@pytest.mark.asyncio
async def test_get_hold_unknown_returns_none(hold_service):
    assert await hold_service.get_hold("missing") is None
    assert await hold_service.is_hold_valid("missing") is False


@pytest.mark.asyncio
async def test_is_hold_valid_tracks_status_and_ttl(session_factory, balance_service, capture_service, fund):
    await fund("u1", 100)
    short = HoldService(session_factory, balance_service=balance_service, ttl_minutes=60)

    live = await short.hold("u1", 10)
    assert await short.is_hold_valid(live.hold_id) is True

    await capture_service.capture(live.hold_id)
    assert await short.is_hold_valid(live.hold_id) is False


@pytest.mark.asyncio
async def test_is_hold_valid_false_after_ttl(hold_service, fund):
    await fund("u1", 100)
    result = await hold_service.hold("u1", 10)

    later = utcnow() + timedelta(hours=2)
    with patch("app.modules.credits.services.hold_service.utcnow", return_value=later):
        assert await hold_service.is_hold_valid(result.hold_id) is False


@pytest.mark.asyncio
async def test_zero_ttl_is_respected(session_factory, balance_service, fund):
    await fund("u1", 100)
    instant = HoldService(session_factory, balance_service=balance_service, ttl_minutes=0)

    result = await instant.hold("u1", 10)
    info = await instant.get_hold(result.hold_id)

    assert instant.ttl == timedelta(0)
    assert info.expires_at == info.created_at
    assert await instant.is_hold_valid(result.hold_id) is False
