# -*- coding: utf-8 -*-
import os
import pytest

_ENV_PREFIXES = (
    "DB_",
    "APP_",
    "HOLD_",
    "STALE_",
    "LEDGER_",
    "FREE_",
    "SIGNUP_",
    "REFERRAL_",
    "CONCURRENCY_",
    "SCHEDULER_",
    "EXPIRE_",
    "SLOT_",
    "LOG_",
)


@pytest.fixture(autouse=True)
def _isolate_env_and_cache(monkeypatch):
    """
    Aísla variables de entorno y limpia el caché de get_settings() en cada test.
    """
    # No heredar configuración del shell del dev
    for k in list(os.environ.keys()):
        if k.startswith(_ENV_PREFIXES):
            monkeypatch.delenv(k, raising=False)
    monkeypatch.setenv("PYTHON_ENV", "development")
    # Sin .env del proyecto
    monkeypatch.chdir(os.path.dirname(__file__))

    from app.shared.config.config_loader import get_settings
    get_settings.cache_clear()

    yield

    # El resto de la suite vuelve a cargar settings de test
    get_settings.cache_clear()
# Fin del archivo backend/tests/shared/config/conftest.py
