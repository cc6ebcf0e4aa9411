# -*- coding: utf-8 -*-
"""
backend/app/shared/database/base.py

Base declarativa y convención de nombres para modelos ORM.

Este módulo proporciona:
- Base: clase base declarativa de SQLAlchemy
- NAMING_CONVENTION: convención de nombres para constraints
- str_enum: helper para mapear enums Python a columnas VARCHAR con CHECK

Autor: Equipo Backend
Fecha: 2026-10-19
"""

from __future__ import annotations

from enum import Enum
from typing import Type

from sqlalchemy import Enum as SQLEnum
from sqlalchemy import MetaData
from sqlalchemy.orm import DeclarativeBase

# ===== NAMING CONVENTION =====
NAMING_CONVENTION = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}


# ===== BASE DECLARATIVA =====
class Base(DeclarativeBase):
    """
    Base declarativa para todos los modelos ORM del servicio.
    Incluye convención de nombres para constraints.
    """
    metadata = MetaData(naming_convention=NAMING_CONVENTION)


# ===== HELPER GENÉRICO PARA ENUMS =====
def str_enum(enum_cls: Type[Enum], name: str | None = None) -> SQLEnum:
    """
    Devuelve un tipo Enum de SQLAlchemy almacenado como VARCHAR + CHECK.

    Uso típico:

        class CreditTransaction(Base):
            status: Mapped[TransactionStatus] = mapped_column(
                str_enum(TransactionStatus, name="credit_tx_status"),
                nullable=False,
            )

    - Persiste el `.value` del enum (no el nombre del miembro).
    - No usa ENUM nativo de PostgreSQL: el mismo esquema funciona en
      SQLite para pruebas.
    """
    enum_name = name or enum_cls.__name__.lower()
    return SQLEnum(
        enum_cls,
        name=enum_name,
        native_enum=False,
        create_constraint=True,
        length=32,
        values_callable=lambda e: [x.value for x in e],
    )


__all__ = ["Base", "NAMING_CONVENTION", "str_enum"]

# Fin del archivo backend/app/shared/database/base.py
