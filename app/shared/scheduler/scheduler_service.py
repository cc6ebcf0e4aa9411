# -*- coding: utf-8 -*-
"""
backend/app/shared/scheduler/scheduler_service.py

Servicio de programación de barridos periódicos usando APScheduler.

Los barridos del ledger (expiración de créditos, holds obsoletos,
slots de concurrencia vencidos) se registran aquí desde el lifespan
de la aplicación.

Autor: Equipo Backend
Fecha: 2026-10-19
"""

import logging
from typing import Any, Callable, Optional

from apscheduler.executors.asyncio import AsyncIOExecutor
from apscheduler.jobstores.memory import MemoryJobStore
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

logger = logging.getLogger(__name__)


class SchedulerService:
    """
    Envoltura delgada sobre AsyncIOScheduler.

    - Jobs con intervalo fijo o expresión cron de 5 campos
    - Una sola instancia por job (max_instances=1), ejecuciones perdidas
      combinadas (coalesce)
    """

    def __init__(self):
        self._scheduler = AsyncIOScheduler(
            jobstores={"default": MemoryJobStore()},
            executors={"default": AsyncIOExecutor()},
            job_defaults={
                "coalesce": True,
                "max_instances": 1,
                "misfire_grace_time": 60,
            },
            timezone="UTC",
        )
        self._started = False

    def start(self) -> None:
        if not self._started:
            self._scheduler.start()
            self._started = True
            logger.info("Scheduler started: jobs=%d", len(self._scheduler.get_jobs()))

    def shutdown(self, wait: bool = True) -> None:
        """
        Detiene el scheduler.

        Args:
            wait: Si True, espera a que terminen los jobs en ejecución
        """
        if self._started:
            self._scheduler.shutdown(wait=wait)
            self._started = False
            logger.info("Scheduler stopped")

    def add_interval_job(
        self,
        func: Callable[..., Any],
        job_id: str,
        hours: int = 0,
        minutes: int = 0,
        seconds: int = 0,
        **kwargs: Any,
    ) -> str:
        """Registra (o reemplaza) un job que corre a intervalos regulares."""
        trigger = IntervalTrigger(hours=hours, minutes=minutes, seconds=seconds)
        self._scheduler.add_job(
            func=func,
            trigger=trigger,
            id=job_id,
            name=job_id,
            replace_existing=True,
            kwargs=kwargs,
        )
        logger.info("Job registered: id=%s every=%dh%dm%ds", job_id, hours, minutes, seconds)
        return job_id

    def add_cron_job(
        self,
        func: Callable[..., Any],
        job_id: str,
        cron_expression: str,
        **kwargs: Any,
    ) -> str:
        """
        Registra (o reemplaza) un job según expresión cron.

        Args:
            func: Corrutina o función a ejecutar
            job_id: ID único del job
            cron_expression: Expresión cron estándar de 5 campos (UTC)

        Raises:
            ValueError: si la expresión no tiene 5 campos
        """
        if len(cron_expression.split()) != 5:
            raise ValueError("Expresión cron inválida (requiere 5 campos)")

        trigger = CronTrigger.from_crontab(cron_expression, timezone="UTC")
        self._scheduler.add_job(
            func=func,
            trigger=trigger,
            id=job_id,
            name=job_id,
            replace_existing=True,
            kwargs=kwargs,
        )
        logger.info("Job registered: id=%s cron='%s'", job_id, cron_expression)
        return job_id

    def get_jobs(self) -> list[dict]:
        return [
            {
                "id": job.id,
                "name": job.name,
                "next_run": getattr(job, "next_run_time", None),
                "trigger": str(job.trigger),
            }
            for job in self._scheduler.get_jobs()
        ]

    def get_job_status(self, job_id: str) -> Optional[dict]:
        job = self._scheduler.get_job(job_id)
        if job is None:
            return None
        return {
            "id": job.id,
            "name": job.name,
            "next_run": getattr(job, "next_run_time", None),
            "trigger": str(job.trigger),
        }

    @property
    def is_running(self) -> bool:
        return self._started and self._scheduler.running


# Singleton global del scheduler
_scheduler_instance: Optional[SchedulerService] = None


def get_scheduler() -> SchedulerService:
    """Obtiene la instancia global del scheduler (singleton)."""
    global _scheduler_instance
    if _scheduler_instance is None:
        _scheduler_instance = SchedulerService()
    return _scheduler_instance


__all__ = ["SchedulerService", "get_scheduler"]

# Fin del archivo backend/app/shared/scheduler/scheduler_service.py
