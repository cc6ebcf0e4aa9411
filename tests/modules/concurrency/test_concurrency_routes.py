# -*- coding: utf-8 -*-
"""
backend/tests/modules/concurrency/test_concurrency_routes.py

Tests de las rutas internas del limitador y del job de limpieza.

Autor: Equipo Backend
Fecha: 2026-10-19
"""

from datetime import timedelta
from unittest.mock import patch

import pytest

from app.modules.concurrency import jobs
from app.modules.concurrency.routes import get_tier_provider
from app.modules.concurrency.services import ConcurrencyLimiter
from app.modules.concurrency.tiers import StaticTierLimitProvider, SubscriptionTier
from app.shared.scheduler.scheduler_service import SchedulerService
from app.shared.time import utcnow


@pytest.fixture
def pro_provider():
    return StaticTierLimitProvider(user_tiers={"u1": SubscriptionTier.PRO})


@pytest.mark.asyncio
async def test_status_endpoint(app, client, auth_headers, session_factory, pro_provider):
    app.dependency_overrides[get_tier_provider] = lambda: pro_provider
    limiter = ConcurrencyLimiter(session_factory, pro_provider)
    await limiter.acquire_slot("u1")

    resp = await client.get("/concurrency/u1/status", headers=auth_headers)

    assert resp.status_code == 200
    assert resp.json() == {
        "user_id": "u1",
        "tier": "PRO",
        "limit": 5,
        "active": 1,
        "remaining": 4,
        "can_start": True,
    }


@pytest.mark.asyncio
async def test_status_requires_token(client):
    resp = await client.get("/concurrency/u1/status")
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_cleanup_endpoint(client, auth_headers, session_factory):
    limiter = ConcurrencyLimiter(session_factory, ttl_seconds=1)
    await limiter.acquire_slot("u1")

    later = utcnow() + timedelta(seconds=5)
    with patch("app.modules.concurrency.services.utcnow", return_value=later):
        resp = await client.post("/_internal/concurrency/cron/cleanup-slots", headers=auth_headers)

    assert resp.status_code == 200
    assert resp.json() == {"deleted": 1}


@pytest.mark.asyncio
async def test_cleanup_job_uses_given_factory(session_factory):
    limiter = ConcurrencyLimiter(session_factory, ttl_seconds=1)
    await limiter.acquire_slot("u1")

    later = utcnow() + timedelta(seconds=5)
    with patch("app.modules.concurrency.services.utcnow", return_value=later):
        assert await jobs.cleanup_expired_slots(session_factory=session_factory) == 1


def test_register_slot_cleanup_job():
    scheduler = SchedulerService()

    with patch.object(jobs, "get_scheduler", return_value=scheduler):
        job_id = jobs.register_slot_cleanup_job(interval_minutes=2)

    assert job_id == jobs.CLEANUP_SLOTS_JOB_ID
    status = scheduler.get_job_status(job_id)
    assert status is not None
    assert "interval" in status["trigger"]
