# -*- coding: utf-8 -*-
"""
backend/app/core/__init__.py

Fachada unificada para componentes centrales del backend:
configuración (settings), logging y motor de base de datos.

Autor: Equipo Backend
Fecha: 2026-10-19
"""

from .settings import get_settings
from .logging import setup_logging
from .db import (
    engine,
    SessionLocal,
    Base,
    get_session_factory,
    check_database_health,
    run_serializable,
)

__all__ = [
    "get_settings",
    "setup_logging",
    "engine",
    "SessionLocal",
    "Base",
    "get_session_factory",
    "check_database_health",
    "run_serializable",
]

# Fin del archivo backend/app/core/__init__.py
