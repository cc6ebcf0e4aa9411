# -*- coding: utf-8 -*-
"""
backend/tests/shared/scheduler/test_scheduler_service.py

Tests de SchedulerService:
- Registro de jobs por intervalo y por cron
- Validación de expresión cron
- Arranque / apagado idempotentes

Autor: Equipo Backend
Fecha: 2026-10-19
"""

import pytest

from app.shared.scheduler import get_scheduler
from app.shared.scheduler.scheduler_service import SchedulerService


async def _noop(**kwargs):
    return kwargs


def test_add_interval_job_registers_job():
    scheduler = SchedulerService()

    job_id = scheduler.add_interval_job(_noop, "sweep", minutes=5, max_age_hours=24)

    assert job_id == "sweep"
    status = scheduler.get_job_status("sweep")
    assert status["id"] == "sweep"
    assert "interval" in status["trigger"]


def test_add_cron_job_registers_job():
    scheduler = SchedulerService()

    scheduler.add_cron_job(_noop, "daily", "0 0 * * *")

    jobs = scheduler.get_jobs()
    assert [j["id"] for j in jobs] == ["daily"]
    assert "cron" in jobs[0]["trigger"]


@pytest.mark.parametrize("expression", ["", "* * *", "0 0 * * * *", "every day"])
def test_add_cron_job_rejects_invalid_expression(expression):
    scheduler = SchedulerService()

    with pytest.raises(ValueError):
        scheduler.add_cron_job(_noop, "bad", expression)

    assert scheduler.get_jobs() == []


def test_unknown_job_status_is_none():
    assert SchedulerService().get_job_status("missing") is None


@pytest.mark.asyncio
async def test_start_and_shutdown_are_idempotent():
    scheduler = SchedulerService()
    assert scheduler.is_running is False

    scheduler.start()
    scheduler.start()
    assert scheduler.is_running is True

    scheduler.shutdown(wait=False)
    scheduler.shutdown(wait=False)
    assert scheduler.is_running is False


def test_get_scheduler_is_singleton():
    assert get_scheduler() is get_scheduler()
