# -*- coding: utf-8 -*-
"""
backend/app/shared/database/__init__.py

Re-exporta utilidades comunes de base de datos.

Autor: Equipo Backend
Fecha: 2026-10-19
"""

from __future__ import annotations

from .database import (
    engine,
    SessionLocal,
    get_session_factory,
    check_database_health,
)
from .base import Base, NAMING_CONVENTION, str_enum
from .serializable import TransactionConflictError, run_serializable

__all__ = [
    "engine",
    "SessionLocal",
    "Base",
    "NAMING_CONVENTION",
    "str_enum",
    "get_session_factory",
    "check_database_health",
    "TransactionConflictError",
    "run_serializable",
]

# Fin del archivo backend/app/shared/database/__init__.py
