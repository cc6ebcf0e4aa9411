# -*- coding: utf-8 -*-
"""
backend/app/routes/__init__.py

Ensamblador principal de ruteadores del servicio.

- /health
- /credits/... y /_internal/credits/cron/...
- /concurrency/... y /_internal/concurrency/cron/...

Autor: Equipo Backend
Fecha: 2026-10-19
"""

from fastapi import APIRouter

from app.modules.concurrency.routes import cron_router as concurrency_cron_router
from app.modules.concurrency.routes import router as concurrency_router
from app.modules.credits.routes import cron_router as credits_cron_router
from app.modules.credits.routes import router as credits_router
from .health_routes import router as health_router

router = APIRouter()

# Health check sin prefijo adicional
router.include_router(health_router)

router.include_router(credits_router)
router.include_router(credits_cron_router)
router.include_router(concurrency_router)
router.include_router(concurrency_cron_router)

__all__ = ["router"]

# Fin del archivo backend/app/routes/__init__.py
