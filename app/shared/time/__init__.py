# -*- coding: utf-8 -*-
"""
backend/app/shared/time/__init__.py

Utilidades de tiempo en UTC.

Autor: Equipo Backend
Fecha: 2026-10-19
"""

from .datetime_helpers import utcnow, ensure_utc, to_iso8601

__all__ = ["utcnow", "ensure_utc", "to_iso8601"]
