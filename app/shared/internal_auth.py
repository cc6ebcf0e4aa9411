# -*- coding: utf-8 -*-
"""
backend/app/shared/internal_auth.py

Autenticación de servicio interno para los endpoints de cron y soporte
(expiración de créditos, holds obsoletos, limpieza de slots, grants).

Uso:
    from app.shared.internal_auth import require_internal_service_token

Autor: Equipo Backend
Fecha: 2026-10-19
"""

from __future__ import annotations

import logging
import secrets
from typing import Annotated

from fastapi import Header, HTTPException, status

logger = logging.getLogger(__name__)


async def require_internal_service_token(
    authorization: Annotated[str | None, Header()] = None,
) -> bool:
    """
    Valida el header `Authorization: Bearer <token>` contra APP_SERVICE_TOKEN.

    Raises:
        HTTPException 401: Si no hay header o el formato es inválido.
        HTTPException 403: Si el token no coincide.
        HTTPException 500: Si el token no está configurado en el backend.
    """
    from app.shared.config.config_loader import get_settings

    settings = get_settings()

    if not settings.internal_service_token:
        logger.error("internal_service_token_not_configured: APP_SERVICE_TOKEN must be set")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Internal service token not configured",
        )

    if not authorization:
        logger.warning("internal_auth_missing_header")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authorization header required",
            headers={"WWW-Authenticate": "Bearer"},
        )

    scheme, _, provided_token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not provided_token.strip():
        logger.warning("internal_auth_invalid_format")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authorization format. Use: Bearer <token>",
            headers={"WWW-Authenticate": "Bearer"},
        )

    expected_token = settings.internal_service_token.get_secret_value()

    # Comparación en tiempo constante
    if not secrets.compare_digest(provided_token.strip(), expected_token):
        logger.warning("internal_auth_invalid_token")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Invalid service token",
        )

    return True


__all__ = [
    "require_internal_service_token",
]

# Fin del archivo backend/app/shared/internal_auth.py
