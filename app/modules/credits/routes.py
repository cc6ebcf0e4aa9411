# -*- coding: utf-8 -*-
"""
backend/app/modules/credits/routes.py

Rutas internas del ledger de créditos.

- /credits/{user_id}/...: consultas y operaciones de soporte
- /_internal/credits/cron/...: barridos bajo demanda (cron externo)

PROTECTED: todas requieren Authorization: Bearer <APP_SERVICE_TOKEN>.

Autor: Equipo Backend
Fecha: 2026-10-19
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.shared.config import settings
from app.shared.database.database import get_session_factory
from app.shared.database.serializable import TransactionConflictError
from app.shared.internal_auth import require_internal_service_token
from .enums import CreditTxType
from .errors import CreditsError
from .schemas import (
    BalanceResponse,
    CapturedRefundRequest,
    CapturedRefundResponse,
    CreditStatsResponse,
    ExpiringCreditOut,
    ExpiringCreditsResponse,
    ExpiryRunResponse,
    GrantRequest,
    GrantResponse,
    HistoryResponse,
    StaleHoldsResponse,
    TransactionOut,
)
from .services import BalanceService, ExpiryService, GrantService, RefundService

logger = logging.getLogger(__name__)

SessionFactory = async_sessionmaker[AsyncSession]

_STATUS_BY_CODE = {
    "INVALID_AMOUNT": status.HTTP_400_BAD_REQUEST,
    "INVALID_GRANT_TYPE": status.HTTP_400_BAD_REQUEST,
    "INVALID_REFERRAL": status.HTTP_400_BAD_REQUEST,
    "CAPTURE_EXCEEDS_HOLD": status.HTTP_400_BAD_REQUEST,
    "INSUFFICIENT_CREDITS": status.HTTP_402_PAYMENT_REQUIRED,
    "HOLD_NOT_FOUND": status.HTTP_404_NOT_FOUND,
    "ALREADY_PROCESSED": status.HTTP_409_CONFLICT,
    "SLOT_LIMIT_REACHED": status.HTTP_429_TOO_MANY_REQUESTS,
}


def to_http_exception(exc: CreditsError | TransactionConflictError) -> HTTPException:
    """Traduce errores del ledger a HTTPException con código estable."""
    if isinstance(exc, TransactionConflictError):
        return HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail={"code": exc.code, "message": "Temporary conflict, retry later"},
            headers={"Retry-After": "1"},
        )
    return HTTPException(
        status_code=_STATUS_BY_CODE.get(exc.code, status.HTTP_400_BAD_REQUEST),
        detail={"code": exc.code, "message": str(exc)},
    )


# ── Dependencias (inyectables en tests)

def get_balance_service(
    session_factory: SessionFactory = Depends(get_session_factory),
) -> BalanceService:
    return BalanceService(session_factory)


def get_expiry_service(
    session_factory: SessionFactory = Depends(get_session_factory),
) -> ExpiryService:
    return ExpiryService(session_factory)


def get_grant_service(
    session_factory: SessionFactory = Depends(get_session_factory),
) -> GrantService:
    return GrantService(session_factory)


def get_refund_service(
    session_factory: SessionFactory = Depends(get_session_factory),
) -> RefundService:
    return RefundService(session_factory)


router = APIRouter(
    prefix="/credits",
    tags=["credits"],
    dependencies=[Depends(require_internal_service_token)],
)

cron_router = APIRouter(
    prefix="/_internal/credits/cron",
    tags=["credits-cron"],
    dependencies=[Depends(require_internal_service_token)],
)


@router.get("/{user_id}/balance", response_model=BalanceResponse)
async def get_balance(
    user_id: str,
    service: BalanceService = Depends(get_balance_service),
) -> BalanceResponse:
    snap = await service.get_balance(user_id)
    return BalanceResponse(
        user_id=user_id,
        balance=snap.balance,
        pending_holds=snap.pending_holds,
        available_balance=snap.available_balance,
    )


@router.get("/{user_id}/history", response_model=HistoryResponse)
async def get_history(
    user_id: str,
    limit: Optional[int] = Query(default=None, ge=1),
    offset: int = Query(default=0, ge=0),
    tx_type: Optional[CreditTxType] = Query(default=None, alias="type"),
    service: BalanceService = Depends(get_balance_service),
) -> HistoryResponse:
    page = await service.get_history(user_id, limit=limit, offset=offset, tx_type=tx_type)
    return HistoryResponse(
        items=[TransactionOut.model_validate(tx) for tx in page.items],
        total=page.total,
        limit=page.limit,
        offset=page.offset,
        has_more=page.has_more,
    )


@router.get("/{user_id}/stats", response_model=CreditStatsResponse)
async def get_credit_stats(
    user_id: str,
    service: BalanceService = Depends(get_balance_service),
) -> CreditStatsResponse:
    stats = await service.get_stats(user_id)
    return CreditStatsResponse(
        user_id=stats.user_id,
        balance=stats.balance,
        available_balance=stats.available_balance,
        total_added=stats.total_added,
        total_used=stats.total_used,
        total_expired=stats.total_expired,
        total_purchased=stats.total_purchased,
        total_bonus=stats.total_bonus,
        total_referral=stats.total_referral,
        total_refunded=stats.total_refunded,
    )


@router.get("/{user_id}/expiring", response_model=ExpiringCreditsResponse)
async def get_expiring_credits(
    user_id: str,
    within_days: int = Query(default=7, ge=1, le=365),
    service: ExpiryService = Depends(get_expiry_service),
) -> ExpiringCreditsResponse:
    forecast = await service.get_expiring_credits(user_id, within_days=within_days)
    return ExpiringCreditsResponse(
        user_id=user_id,
        within_days=forecast.within_days,
        total=forecast.total,
        items=[
            ExpiringCreditOut(
                transaction_id=item.transaction_id,
                tx_type=item.tx_type,
                amount=item.amount,
                expires_at=item.expires_at,
                days_until_expiry=item.days_until_expiry,
            )
            for item in forecast.items
        ],
    )


@router.post("/{user_id}/grants", response_model=GrantResponse, status_code=status.HTTP_201_CREATED)
async def grant_credits(
    user_id: str,
    body: GrantRequest,
    service: GrantService = Depends(get_grant_service),
) -> GrantResponse:
    try:
        result = await service.add_credits(
            user_id,
            body.amount,
            CreditTxType(body.tx_type),
            body.description,
            metadata=body.metadata,
            expires_at=body.expires_at,
            idempotency_key=body.idempotency_key,
        )
    except (CreditsError, TransactionConflictError) as e:
        raise to_http_exception(e) from e

    return GrantResponse(
        transaction_id=result.transaction_id,
        user_id=result.user_id,
        tx_type=result.tx_type,
        amount=result.amount,
        expires_at=result.expires_at,
        created=result.created,
    )


@router.post("/{user_id}/refunds", response_model=CapturedRefundResponse)
async def refund_captured_credits(
    user_id: str,
    body: CapturedRefundRequest,
    service: RefundService = Depends(get_refund_service),
) -> CapturedRefundResponse:
    try:
        result = await service.refund_captured(user_id, body.amount, body.reason)
    except (CreditsError, TransactionConflictError) as e:
        raise to_http_exception(e) from e

    return CapturedRefundResponse(
        user_id=result.user_id,
        amount=result.amount,
        balance_after=result.balance_after,
        transaction_id=result.transaction_id,
    )


@cron_router.post("/expire-credits", response_model=ExpiryRunResponse)
async def run_expire_credits(
    service: ExpiryService = Depends(get_expiry_service),
) -> ExpiryRunResponse:
    result = await service.process_expired_credits()
    return ExpiryRunResponse(
        processed_users=result.processed_users,
        expired_credits=result.expired_credits,
        errors=result.errors,
    )


@cron_router.post("/cancel-stale-holds", response_model=StaleHoldsResponse)
async def run_cancel_stale_holds(
    max_age_hours: Optional[int] = Query(default=None, ge=0),
    service: ExpiryService = Depends(get_expiry_service),
) -> StaleHoldsResponse:
    hours = settings.stale_hold_max_age_hours if max_age_hours is None else max_age_hours
    try:
        cancelled = await service.cancel_stale_holds(max_age_hours=hours)
    except TransactionConflictError as e:
        raise to_http_exception(e) from e
    return StaleHoldsResponse(cancelled=cancelled, max_age_hours=hours)


__all__ = ["router", "cron_router", "to_http_exception"]

# Fin del archivo backend/app/modules/credits/routes.py
