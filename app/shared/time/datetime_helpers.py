# -*- coding: utf-8 -*-
"""
backend/app/shared/time/datetime_helpers.py

Utilidades para manejo consistente de timestamps UTC.

SQLite (pruebas) devuelve datetimes naive aunque la columna sea
DateTime(timezone=True); toda comparación de instantes pasa por
ensure_utc() antes de operar.

Autor: Equipo Backend
Fecha: 2026-10-19
"""

from datetime import datetime, timezone
from typing import Optional


def utcnow() -> datetime:
    """
    Retorna el timestamp UTC actual (timezone-aware).

    Examples:
        >>> utcnow().tzinfo == timezone.utc
        True
    """
    return datetime.now(timezone.utc)


def ensure_utc(dt: datetime) -> datetime:
    """
    Asegura que un datetime sea UTC timezone-aware.

    Un datetime naive se interpreta como UTC.

    Examples:
        >>> ensure_utc(datetime(2026, 1, 1, 12, 0)).tzinfo == timezone.utc
        True
    """
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    if dt.tzinfo != timezone.utc:
        return dt.astimezone(timezone.utc)
    return dt


def to_iso8601(dt: Optional[datetime]) -> Optional[str]:
    """Serializa a ISO 8601 con sufijo Z; None se conserva."""
    if dt is None:
        return None
    return ensure_utc(dt).isoformat().replace("+00:00", "Z")


__all__ = ["utcnow", "ensure_utc", "to_iso8601"]

# Fin del archivo backend/app/shared/time/datetime_helpers.py
