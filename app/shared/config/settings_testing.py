# -*- coding: utf-8 -*-
"""
backend/app/shared/config/settings_testing.py

Overrides para entorno de PRUEBAS (test) usando Pydantic v2.
Busca ser determinista: logging moderado, scheduler apagado y token
interno conocido para los tests de rutas.

Autor: Equipo Backend
Fecha: 2026-10-19
"""

from typing import Literal, Optional

from pydantic import SecretStr
from pydantic_settings import SettingsConfigDict

from .settings_base import BaseAppSettings


class EnvTestingSettings(BaseAppSettings):
    # --- Identidad de entorno ---
    python_env: Literal["development", "test", "production"] = "test"

    # --- Logging en test: menos ruido ---
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "WARNING"
    log_format: Literal["json", "pretty", "plain"] = "plain"

    # --- Base de datos: los tests montan su propio engine SQLite ---
    db_name: str = "credit_ledger_test"

    # --- Jobs: nunca arrancar el scheduler en pruebas ---
    scheduler_enabled: bool = False

    internal_service_token: Optional[SecretStr] = SecretStr("test-service-token")

    model_config = SettingsConfigDict(
        env_file=".env.test",
        env_file_encoding="utf-8",
        extra="ignore",
    )


__all__ = ["EnvTestingSettings"]
# Fin del archivo backend/app/shared/config/settings_testing.py
