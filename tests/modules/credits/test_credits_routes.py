# -*- coding: utf-8 -*-
"""
backend/tests/modules/credits/test_credits_routes.py

Tests de las rutas internas de créditos:
- Autenticación por token de servicio (401 / 403)
- Saldo, historial, estadísticas, pronóstico de caducidad
- Abonos (201, idempotencia) y reembolsos de soporte
- Endpoints de cron

Autor: Equipo Backend
Fecha: 2026-10-19
"""

from datetime import timedelta

import pytest
from fastapi import status

from app.modules.credits.enums import CreditTxType
from app.modules.credits.errors import AlreadyProcessedError, InsufficientCreditsError
from app.modules.credits.routes import to_http_exception
from app.shared.database.serializable import TransactionConflictError
from app.shared.time import to_iso8601, utcnow


@pytest.mark.asyncio
async def test_missing_token_is_401(client):
    resp = await client.get("/credits/u1/balance")
    assert resp.status_code == status.HTTP_401_UNAUTHORIZED


@pytest.mark.asyncio
async def test_wrong_token_is_403(client):
    resp = await client.get("/credits/u1/balance", headers={"Authorization": "Bearer nope"})
    assert resp.status_code == status.HTTP_403_FORBIDDEN


@pytest.mark.asyncio
async def test_malformed_header_is_401(client):
    resp = await client.get("/credits/u1/balance", headers={"Authorization": "Token abc"})
    assert resp.status_code == status.HTTP_401_UNAUTHORIZED


@pytest.mark.asyncio
async def test_balance_endpoint(client, auth_headers, hold_service, fund):
    await fund("u1", 100)
    await hold_service.hold("u1", 30)

    resp = await client.get("/credits/u1/balance", headers=auth_headers)

    assert resp.status_code == 200
    assert resp.json() == {
        "user_id": "u1",
        "balance": 100,
        "pending_holds": 30,
        "available_balance": 70,
    }


@pytest.mark.asyncio
async def test_stats_endpoint(client, auth_headers, hold_service, capture_service, fund):
    await fund("u1", 100)
    await fund("u1", 25, tx_type=CreditTxType.BONUS)
    hold = await hold_service.hold("u1", 30)
    await capture_service.capture(hold.hold_id)
    await hold_service.hold("u1", 10)

    resp = await client.get("/credits/u1/stats", headers=auth_headers)

    assert resp.status_code == 200
    assert resp.json() == {
        "user_id": "u1",
        "balance": 95,
        "available_balance": 85,
        "total_added": 125,
        "total_used": 30,
        "total_expired": 0,
        "total_purchased": 100,
        "total_bonus": 25,
        "total_referral": 0,
        "total_refunded": 0,
    }


@pytest.mark.asyncio
async def test_history_endpoint_filters_and_paginates(client, auth_headers, hold_service, fund):
    await fund("u1", 100)
    await fund("u1", 50)
    await hold_service.hold("u1", 10)

    resp = await client.get("/credits/u1/history", params={"limit": 2}, headers=auth_headers)
    body = resp.json()
    assert resp.status_code == 200
    assert body["total"] == 3
    assert len(body["items"]) == 2
    assert body["has_more"] is True

    resp = await client.get("/credits/u1/history", params={"type": "hold"}, headers=auth_headers)
    body = resp.json()
    assert body["total"] == 1
    assert body["items"][0]["tx_type"] == "hold"
    assert body["items"][0]["status"] == "pending"
    assert body["items"][0]["amount"] == -10


@pytest.mark.asyncio
async def test_history_rejects_unknown_type(client, auth_headers):
    resp = await client.get("/credits/u1/history", params={"type": "gift"}, headers=auth_headers)
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_expiring_endpoint(client, auth_headers):
    payload = {
        "amount": 30,
        "tx_type": "bonus",
        "expires_at": to_iso8601(utcnow() + timedelta(days=3)),
    }
    resp = await client.post("/credits/u1/grants", json=payload, headers=auth_headers)
    assert resp.status_code == status.HTTP_201_CREATED

    resp = await client.get("/credits/u1/expiring", params={"within_days": 7}, headers=auth_headers)
    body = resp.json()
    assert resp.status_code == 200
    assert body["total"] == 30
    assert body["items"][0]["days_until_expiry"] == 3


@pytest.mark.asyncio
async def test_grant_endpoint_is_idempotent(client, auth_headers):
    payload = {"amount": 100, "tx_type": "purchase", "idempotency_key": "order-9"}

    first = await client.post("/credits/u1/grants", json=payload, headers=auth_headers)
    second = await client.post("/credits/u1/grants", json=payload, headers=auth_headers)

    assert first.status_code == status.HTTP_201_CREATED
    assert first.json()["created"] is True
    assert second.json()["created"] is False
    assert second.json()["transaction_id"] == first.json()["transaction_id"]

    balance = await client.get("/credits/u1/balance", headers=auth_headers)
    assert balance.json()["balance"] == 100


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "payload",
    [
        {"amount": 0},
        {"amount": -5},
        {"amount": 10, "tx_type": "hold"},
    ],
)
async def test_grant_endpoint_validation(client, auth_headers, payload):
    resp = await client.post("/credits/u1/grants", json=payload, headers=auth_headers)
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_refund_captured_endpoint(client, auth_headers, fund):
    await fund("u1", 10)

    resp = await client.post(
        "/credits/u1/refunds", json={"amount": 7, "reason": "ticket 12"}, headers=auth_headers
    )

    assert resp.status_code == 200
    assert resp.json()["balance_after"] == 17


@pytest.mark.asyncio
async def test_cron_expire_credits(client, auth_headers, grant_service):
    await grant_service.add_credits(
        "u1", 30, CreditTxType.BONUS, expires_at=utcnow() - timedelta(seconds=1)
    )

    resp = await client.post("/_internal/credits/cron/expire-credits", headers=auth_headers)

    assert resp.status_code == 200
    assert resp.json() == {"processed_users": 1, "expired_credits": 30, "errors": 0}


@pytest.mark.asyncio
async def test_cron_cancel_stale_holds(client, auth_headers, hold_service, fund):
    await fund("u1", 100)
    await hold_service.hold("u1", 10)

    resp = await client.post(
        "/_internal/credits/cron/cancel-stale-holds",
        params={"max_age_hours": 24},
        headers=auth_headers,
    )
    assert resp.json() == {"cancelled": 0, "max_age_hours": 24}

    resp = await client.post(
        "/_internal/credits/cron/cancel-stale-holds",
        params={"max_age_hours": 0},
        headers=auth_headers,
    )
    assert resp.json()["cancelled"] == 1


@pytest.mark.asyncio
async def test_cron_requires_token(client):
    resp = await client.post("/_internal/credits/cron/expire-credits")
    assert resp.status_code == status.HTTP_401_UNAUTHORIZED


def test_error_mapping():
    conflict = to_http_exception(TransactionConflictError("credits.hold", 3))
    assert conflict.status_code == 503
    assert conflict.headers == {"Retry-After": "1"}
    assert conflict.detail["code"] == "TRANSACTION_CONFLICT"

    assert to_http_exception(InsufficientCreditsError("u1", 10, 2)).status_code == 402
    assert to_http_exception(AlreadyProcessedError("h1", "completed")).status_code == 409
