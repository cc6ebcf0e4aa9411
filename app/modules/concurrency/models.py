# -*- coding: utf-8 -*-
"""
backend/app/modules/concurrency/models.py

Modelo ORM de slots de concurrencia.

Un slot es un registro efímero de ocupación: se crea al adquirirlo,
se borra al liberarlo o al vencer su TTL (limpieza perezosa en la
siguiente adquisición o por el barrido programado).

Autor: Equipo Backend
Fecha: 2026-10-19
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from app.shared.database.base import Base
from app.shared.time import utcnow


class ConcurrencySlot(Base):
    """Operación en vuelo de un usuario."""

    __tablename__ = "concurrency_slots"

    request_id: Mapped[str] = mapped_column(String(36), primary_key=True)
    user_id: Mapped[str] = mapped_column(String(128), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        Index("ix_concurrency_slots_user_expires", "user_id", "expires_at"),
        Index("ix_concurrency_slots_expires_at", "expires_at"),
    )

    def __repr__(self) -> str:
        return f"<ConcurrencySlot request={self.request_id} user={self.user_id}>"


__all__ = ["ConcurrencySlot"]

# Fin del archivo backend/app/modules/concurrency/models.py
