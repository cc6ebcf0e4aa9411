# -*- coding: utf-8 -*-
"""
backend/app/main.py

Punto de entrada del servicio de créditos.

- Configuración vía app.core.settings (Pydantic v2, según PYTHON_ENV)
- Logging centralizado (dictConfig, JSON en producción)
- Observabilidad Prometheus (/metrics)
- Scheduler con los barridos del ledger (caducidad, holds obsoletos,
  slots vencidos)
- Shutdown ordenado con CancelScope blindado

Autor: Equipo Backend
Fecha: 2026-10-19
"""

import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path

# ---------------------------------------------------------------------------
# Cargar .env ANTES de cualquier import que lea settings
# En PROD no se sobreescriben variables del entorno
# ---------------------------------------------------------------------------
from dotenv import load_dotenv

_ENV_PATH = Path(__file__).resolve().parents[1] / ".env"
_PYTHON_ENV = os.getenv("PYTHON_ENV", "development").strip().lower()
load_dotenv(dotenv_path=_ENV_PATH, override=_PYTHON_ENV == "development")

import anyio
import uvicorn
from fastapi import FastAPI

from app.core.logging import setup_logging
from app.core.settings import get_settings
from app.observability.prom import setup_observability
from app.routes import router as main_router

_settings = get_settings()
setup_logging(level=_settings.log_level, fmt=_settings.log_format)
logger = logging.getLogger(__name__)


def _register_jobs() -> None:
    from app.modules.concurrency.jobs import register_slot_cleanup_job
    from app.modules.credits.jobs import register_credit_jobs

    register_credit_jobs()
    register_slot_cleanup_job()


@asynccontextmanager
async def lifespan(app: FastAPI):
    # ────────── STARTUP ──────────
    settings = get_settings()
    from app.shared.scheduler import get_scheduler

    scheduler = get_scheduler()
    if settings.scheduler_enabled:
        _register_jobs()
        scheduler.start()
        logger.info("Scheduler started with ledger sweeps")
    else:
        logger.info("Scheduler disabled (SCHEDULER_ENABLED=false)")

    logger.info("%s started (env=%s)", settings.app_name, settings.python_env)
    try:
        yield
    finally:
        # ────────── SHUTDOWN ──────────
        with anyio.CancelScope(shield=True):
            try:
                scheduler.shutdown(wait=True)
            except Exception as e:
                logger.warning("Error stopping scheduler: %s", e)

            try:
                from app.shared.database.database import engine

                await engine.dispose()
            except Exception as e:
                logger.warning("Error disposing database engine: %s", e)

        logger.info("%s stopped", settings.app_name)


openapi_tags = [
    {"name": "credits", "description": "Saldo, historial, abonos y reembolsos de soporte"},
    {"name": "credits-cron", "description": "Barridos de caducidad y holds obsoletos"},
    {"name": "concurrency", "description": "Estado del cupo de operaciones concurrentes"},
    {"name": "concurrency-cron", "description": "Limpieza de slots vencidos"},
]

app = FastAPI(
    title="Credit Ledger API",
    description="Ledger de créditos con reservas y limitador de concurrencia",
    version=_settings.app_version,
    lifespan=lifespan,
    openapi_tags=openapi_tags,
)

setup_observability(app)
app.include_router(main_router)


if __name__ == "__main__":
    uvicorn.run(
        "app.main:app",
        host=_settings.app_host,
        port=_settings.app_port,
        reload=_settings.is_dev,
    )

# Fin del archivo backend/app/main.py
