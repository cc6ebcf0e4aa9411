# -*- coding: utf-8 -*-
"""
backend/tests/modules/credits/test_capture_service.py

Tests de CaptureService:
- Captura total: debita saldo, inserta capture + ledger
- Captura idempotente (segunda llamada no vuelve a debitar)
- Captura parcial con reembolso del remanente en la misma transacción
- Captura mayor que lo retenido se rechaza sin efectos
- Consumo FIFO de abonos con caducidad
- capture / refund concurrentes sobre el mismo hold: un solo ganador

Autor: Equipo Backend
Fecha: 2026-10-19
"""

import asyncio
from datetime import timedelta

import pytest
from sqlalchemy import select

from app.modules.credits.enums import CreditTxStatus, CreditTxType
from app.modules.credits.errors import (
    AlreadyProcessedError,
    CaptureExceedsHoldError,
    HoldNotFoundError,
    InvalidAmountError,
)
from app.modules.credits.models import CreditLedgerEntry, CreditTransaction
from app.shared.time import utcnow


async def _transactions(session_factory, hold_id):
    async with session_factory() as session:
        result = await session.execute(
            select(CreditTransaction).where(CreditTransaction.hold_id == hold_id)
        )
        return list(result.scalars().all())


@pytest.mark.asyncio
async def test_full_capture_debits_balance(
    session_factory, hold_service, capture_service, balance_service, fund
):
    await fund("u1", 100)
    hold = await hold_service.hold("u1", 40, "upscale")

    result = await capture_service.capture(hold.hold_id)

    assert result.captured_amount == 40
    assert result.refunded_amount == 0
    assert result.balance_after == 60

    snap = await balance_service.get_balance("u1")
    assert snap.balance == 60
    assert snap.pending_holds == 0

    rows = await _transactions(session_factory, hold.hold_id)
    by_type = {tx.tx_type: tx for tx in rows}
    assert by_type[CreditTxType.HOLD].status == CreditTxStatus.COMPLETED
    assert by_type[CreditTxType.CAPTURE].amount == -40
    assert by_type[CreditTxType.CAPTURE].description == "upscale"
    assert CreditTxType.REFUND not in by_type

    async with session_factory() as session:
        entry = (
            await session.execute(
                select(CreditLedgerEntry).where(
                    CreditLedgerEntry.credit_id == result.capture_transaction_id
                )
            )
        ).scalar_one()
    assert entry.change == -40
    assert entry.balance_after == 60


@pytest.mark.asyncio
async def test_capture_twice_debits_once(hold_service, capture_service, balance_service, fund):
    await fund("u1", 100)
    hold = await hold_service.hold("u1", 25)

    await capture_service.capture(hold.hold_id)
    with pytest.raises(AlreadyProcessedError) as exc_info:
        await capture_service.capture(hold.hold_id)

    assert exc_info.value.status == CreditTxStatus.COMPLETED.value
    snap = await balance_service.get_balance("u1")
    assert snap.balance == 75


@pytest.mark.asyncio
async def test_capture_after_refund_is_rejected(hold_service, capture_service, refund_service, fund):
    await fund("u1", 100)
    hold = await hold_service.hold("u1", 25)
    await refund_service.refund(hold.hold_id)

    with pytest.raises(AlreadyProcessedError):
        await capture_service.capture(hold.hold_id)


@pytest.mark.asyncio
async def test_capture_unknown_hold(capture_service):
    with pytest.raises(HoldNotFoundError):
        await capture_service.capture("does-not-exist")


@pytest.mark.asyncio
async def test_partial_capture_refunds_remainder(
    session_factory, hold_service, capture_service, balance_service, fund
):
    await fund("u1", 100)
    hold = await hold_service.hold("u1", 40)

    result = await capture_service.partial_capture(hold.hold_id, 15, "3 of 8 images")

    assert result.captured_amount == 15
    assert result.refunded_amount == 25
    assert result.balance_after == 85

    rows = await _transactions(session_factory, hold.hold_id)
    amounts = {tx.tx_type: tx.amount for tx in rows}
    assert amounts[CreditTxType.CAPTURE] == -15
    assert amounts[CreditTxType.REFUND] == 25

    snap = await balance_service.get_balance("u1")
    assert snap.balance == 85
    assert snap.available_balance == 85


@pytest.mark.asyncio
async def test_partial_capture_of_full_amount_has_no_refund(
    session_factory, hold_service, capture_service, fund
):
    await fund("u1", 100)
    hold = await hold_service.hold("u1", 40)

    result = await capture_service.partial_capture(hold.hold_id, 40)

    assert result.refunded_amount == 0
    rows = await _transactions(session_factory, hold.hold_id)
    assert CreditTxType.REFUND not in {tx.tx_type for tx in rows}


@pytest.mark.asyncio
async def test_partial_capture_exceeding_hold_leaves_it_pending(
    hold_service, capture_service, balance_service, fund
):
    await fund("u1", 100)
    hold = await hold_service.hold("u1", 40)

    with pytest.raises(CaptureExceedsHoldError) as exc_info:
        await capture_service.partial_capture(hold.hold_id, 41)

    assert exc_info.value.held == 40
    info = await hold_service.get_hold(hold.hold_id)
    assert info.status == CreditTxStatus.PENDING
    snap = await balance_service.get_balance("u1")
    assert snap.balance == 100


@pytest.mark.asyncio
@pytest.mark.parametrize("amount", [0, -1, 2.5])
async def test_partial_capture_requires_positive_integer(hold_service, capture_service, fund, amount):
    await fund("u1", 100)
    hold = await hold_service.hold("u1", 10)

    with pytest.raises(InvalidAmountError):
        await capture_service.partial_capture(hold.hold_id, amount)


@pytest.mark.asyncio
async def test_capture_of_ttl_expired_pending_hold_is_allowed(
    session_factory, hold_service, capture_service, fund
):
    await fund("u1", 100)
    hold = await hold_service.hold("u1", 10)

    async with session_factory() as session:
        tx = await session.get(CreditTransaction, hold.hold_id)
        tx.expires_at = utcnow() - timedelta(minutes=1)
        await session.commit()

    result = await capture_service.capture(hold.hold_id)
    assert result.captured_amount == 10


@pytest.mark.asyncio
async def test_capture_consumes_soonest_expiring_grant_first(
    session_factory, grant_service, hold_service, capture_service
):
    soon = utcnow() + timedelta(days=2)
    later = utcnow() + timedelta(days=20)
    first = await grant_service.add_credits("u1", 30, CreditTxType.BONUS, expires_at=later)
    second = await grant_service.add_credits("u1", 20, CreditTxType.REFERRAL, expires_at=soon)

    hold = await hold_service.hold("u1", 35)
    await capture_service.capture(hold.hold_id)

    async with session_factory() as session:
        soon_tx = await session.get(CreditTransaction, second.transaction_id)
        later_tx = await session.get(CreditTransaction, first.transaction_id)
    assert soon_tx.remaining_amount == 0
    assert later_tx.remaining_amount == 15


@pytest.mark.asyncio
async def test_concurrent_capture_and_refund_settle_once(
    hold_service, capture_service, refund_service, balance_service, fund
):
    await fund("u1", 100)
    hold = await hold_service.hold("u1", 30)

    results = await asyncio.gather(
        capture_service.capture(hold.hold_id),
        refund_service.refund(hold.hold_id),
        capture_service.capture(hold.hold_id),
        return_exceptions=True,
    )

    winners = [r for r in results if not isinstance(r, BaseException)]
    losers = [r for r in results if isinstance(r, BaseException)]
    assert len(winners) == 1
    assert len(losers) == 2
    assert all(isinstance(e, AlreadyProcessedError) for e in losers)

    info = await hold_service.get_hold(hold.hold_id)
    snap = await balance_service.get_balance("u1")
    assert snap.pending_holds == 0
    if info.status == CreditTxStatus.COMPLETED:
        assert snap.balance == 70
    else:
        assert info.status == CreditTxStatus.CANCELLED
        assert snap.balance == 100
