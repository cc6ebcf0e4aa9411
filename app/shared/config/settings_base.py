# -*- coding: utf-8 -*-
"""
backend/app/shared/config/settings_base.py

Base de configuración (Pydantic v2) para el servicio de créditos.
- Esta clase NO instancia singletons ni resuelve .env; eso lo hace config_loader.
- Es la base para settings_dev.py, settings_testing.py y settings_prod.py.

Autor: Equipo Backend
Fecha: 2026-10-19
"""

import json
from typing import Literal, Optional, Any

from pydantic import Field, SecretStr, computed_field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


# Tipos de entorno soportados
EnvName = Literal["development", "test", "production"]

# Límites de concurrencia por plan de suscripción
DEFAULT_TIER_LIMITS: dict[str, int] = {
    "FREE": 1,
    "PLUS": 3,
    "PRO": 5,
    "BUSINESS": 10,
}


class BaseAppSettings(BaseSettings):
    # =========================
    # Núcleo de la aplicación
    # =========================
    python_env: EnvName = Field(default="development", validation_alias="PYTHON_ENV")
    app_name: str = Field(default="CreditLedger", validation_alias="APP_NAME")
    app_version: str = Field(default="0.1.0", validation_alias="APP_VERSION")
    app_host: str = Field(default="0.0.0.0", validation_alias="APP_HOST")
    app_port: int = Field(default=8000, validation_alias="APP_PORT")
    debug: bool = Field(default=False, validation_alias="DEBUG")

    # =========================
    # Base de datos (PostgreSQL, SERIALIZABLE)
    # =========================
    db_user: str = Field(default="postgres", validation_alias="DB_USER")
    db_password: SecretStr = Field(default=SecretStr("postgres"), validation_alias="DB_PASSWORD")
    db_host: str = Field(default="localhost", validation_alias="DB_HOST")
    db_port: int = Field(default=5432, validation_alias="DB_PORT")
    db_name: str = Field(default="credit_ledger", validation_alias="DB_NAME")
    db_pool_size: int = Field(default=5, validation_alias="DB_POOL_SIZE")
    db_max_overflow: int = Field(default=5, validation_alias="DB_MAX_OVERFLOW")
    db_pool_timeout: int = Field(default=5, validation_alias="DB_POOL_TIMEOUT")
    db_pool_recycle: int = Field(default=1800, validation_alias="DB_POOL_RECYCLE")
    db_pool_pre_ping: bool = Field(default=True, validation_alias="DB_POOL_PRE_PING")
    db_echo_sql: bool = Field(default=False, validation_alias="DB_ECHO_SQL")
    db_command_timeout_s: float = Field(default=5.0, validation_alias="DB_COMMAND_TIMEOUT_S")
    db_url: Optional[str] = Field(default=None, validation_alias="DB_URL")

    @computed_field  # type: ignore[misc]
    @property
    def database_url(self) -> str:
        """
        Genera la URL de conexión completa para SQLAlchemy + asyncpg.
        Prioriza DB_URL si existe, sino construye desde componentes individuales.
        """
        from urllib.parse import quote_plus

        if self.db_url:
            url = self.db_url
            if url.startswith("postgres://"):
                url = url.replace("postgres://", "postgresql+asyncpg://", 1)
            elif url.startswith("postgresql://"):
                url = url.replace("postgresql://", "postgresql+asyncpg://", 1)
            return url

        pw = quote_plus(self.db_password.get_secret_value())
        return (
            f"postgresql+asyncpg://{self.db_user}:{pw}"
            f"@{self.db_host}:{self.db_port}/{self.db_name}"
        )

    # =========================
    # Reservas de créditos (holds)
    # =========================
    hold_ttl_minutes: int = Field(default=60, validation_alias="HOLD_TTL_MINUTES")
    stale_hold_max_age_hours: int = Field(default=24, validation_alias="STALE_HOLD_MAX_AGE_HOURS")
    serializable_max_attempts: int = Field(default=3, validation_alias="LEDGER_SERIALIZABLE_MAX_ATTEMPTS")

    # =========================
    # Créditos gratuitos (bonos / referidos)
    # =========================
    free_credit_expiry_days: int = Field(default=30, validation_alias="FREE_CREDIT_EXPIRY_DAYS")
    signup_bonus_general: int = Field(default=30, validation_alias="SIGNUP_BONUS_GENERAL")
    signup_bonus_business: int = Field(default=150, validation_alias="SIGNUP_BONUS_BUSINESS")
    referral_reward_credits: int = Field(default=40, validation_alias="REFERRAL_REWARD_CREDITS")

    # =========================
    # Límite de concurrencia por plan
    # =========================
    slot_ttl_seconds: int = Field(default=300, validation_alias="CONCURRENCY_SLOT_TTL_SECONDS")
    concurrency_tier_limits: dict[str, int] = Field(
        default_factory=lambda: dict(DEFAULT_TIER_LIMITS),
        validation_alias="CONCURRENCY_TIER_LIMITS",
    )

    # =========================
    # Scheduler (barridos periódicos)
    # =========================
    scheduler_enabled: bool = Field(default=True, validation_alias="SCHEDULER_ENABLED")
    expire_credits_cron: str = Field(default="0 0 * * *", validation_alias="EXPIRE_CREDITS_CRON")
    stale_holds_interval_minutes: int = Field(default=60, validation_alias="STALE_HOLDS_INTERVAL_MINUTES")
    slot_cleanup_interval_minutes: int = Field(default=5, validation_alias="SLOT_CLEANUP_INTERVAL_MINUTES")

    # =========================
    # Internal Service Auth (cron / soporte)
    # =========================
    internal_service_token: Optional[SecretStr] = Field(default=None, validation_alias="APP_SERVICE_TOKEN")

    # Paginación
    page_size_default: int = Field(20, validation_alias="DEFAULT_PAGE_SIZE")
    page_size_max: int = Field(100, validation_alias="MAX_PAGE_SIZE")

    # =========================
    # Observabilidad / Logging
    # =========================
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(default="INFO", validation_alias="LOG_LEVEL")
    log_format: Literal["json", "pretty", "plain"] = Field(default="plain", validation_alias="LOG_FORMAT")

    # ===== Helpers de entorno =====
    @computed_field  # type: ignore[misc]
    @property
    def is_dev(self) -> bool:
        return self.python_env == "development"

    @computed_field  # type: ignore[misc]
    @property
    def is_test(self) -> bool:
        return self.python_env == "test"

    @computed_field  # type: ignore[misc]
    @property
    def is_prod(self) -> bool:
        return self.python_env == "production"

    # ===== Normalizador de límites por plan =====
    @field_validator("concurrency_tier_limits", mode="before")
    @classmethod
    def _normalize_tier_limits(cls, v: Any) -> Any:
        if v is None or (isinstance(v, str) and not v.strip()):
            return dict(DEFAULT_TIER_LIMITS)
        if isinstance(v, str):
            v = json.loads(v)
        if isinstance(v, dict):
            merged = dict(DEFAULT_TIER_LIMITS)
            merged.update({str(k).upper(): int(n) for k, n in v.items()})
            return merged
        return v

    @field_validator("serializable_max_attempts")
    @classmethod
    def _clamp_attempts(cls, v: int) -> int:
        # Al menos un reintento, nunca más de tres intentos
        return min(max(v, 2), 3)

    def _security_checks(self) -> None:
        """
        Validaciones mínimas de seguridad y coherencia.
        Se invoca desde config_loader tras instanciar el settings.
        """
        import logging
        logger = logging.getLogger(__name__)

        if any(limit < 0 for limit in self.concurrency_tier_limits.values()):
            raise ValueError("CONCURRENCY_TIER_LIMITS no admite valores negativos")
        if self.slot_ttl_seconds <= 0:
            raise ValueError("CONCURRENCY_SLOT_TTL_SECONDS debe ser > 0")
        if self.hold_ttl_minutes <= 0:
            raise ValueError("HOLD_TTL_MINUTES debe ser > 0")

        if self.is_prod:
            if not self.internal_service_token or not self.internal_service_token.get_secret_value():
                raise ValueError("APP_SERVICE_TOKEN es requerido en producción")
            # El ledger depende de aislamiento SERIALIZABLE real
            if not self.database_url.startswith("postgresql"):
                raise ValueError("En producción la base de datos debe ser PostgreSQL")

        if self.is_dev and not self.internal_service_token:
            logger.info("APP_SERVICE_TOKEN vacío - endpoints internos responderán 500")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )


__all__ = ["BaseAppSettings", "EnvName", "DEFAULT_TIER_LIMITS"]
# Fin del archivo backend/app/shared/config/settings_base.py
