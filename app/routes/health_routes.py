# -*- coding: utf-8 -*-
"""
backend/app/routes/health_routes.py

Endpoint básico de health check del servicio de créditos.

Autor: Equipo Backend
Fecha: 2026-10-19
"""

from fastapi import APIRouter

from app.core.db import check_database_health
from app.core.settings import get_settings
from app.shared.scheduler import get_scheduler
from app.shared.time import to_iso8601, utcnow

router = APIRouter()


@router.get(
    "/health",
    summary="Health check del backend",
    description="Estado del servicio, conectividad a la base de datos y scheduler.",
)
async def health_check() -> dict:
    settings = get_settings()

    db_ok = await check_database_health(timeout_s=2.0)

    return {
        "status": "ok" if db_ok else "degraded",
        "timestamp": to_iso8601(utcnow()),
        "environment": settings.python_env,
        "database": {
            "reachable": db_ok,
        },
        "scheduler": {
            "running": get_scheduler().is_running,
        },
        "service": {
            "name": settings.app_name,
            "version": settings.app_version,
        },
    }

# Fin del archivo backend/app/routes/health_routes.py
