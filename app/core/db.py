# -*- coding: utf-8 -*-
"""
backend/app/core/db.py

Fachada para la capa de acceso a datos basada en SQLAlchemy async.
Envuelve `app.shared.database` para exponer un conjunto claro de
primitivas:

- engine / SessionLocal / Base
- get_session_factory() / check_database_health()
- run_serializable() para operaciones del ledger

Autor: Equipo Backend
Fecha: 2026-10-19
"""

from app.shared.database.database import (
    engine,
    SessionLocal,
    Base,
    get_session_factory,
    check_database_health,
)
from app.shared.database.serializable import TransactionConflictError, run_serializable


__all__ = [
    "engine",
    "SessionLocal",
    "Base",
    "get_session_factory",
    "check_database_health",
    "TransactionConflictError",
    "run_serializable",
]

# Fin del archivo backend/app/core/db.py
