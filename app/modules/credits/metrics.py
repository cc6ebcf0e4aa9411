# -*- coding: utf-8 -*-
"""
backend/app/modules/credits/metrics.py

Coleccionistas Prometheus del ledger de créditos.

Define contadores para:
- Holds creados/rechazados
- Liquidaciones (captura, captura parcial, reembolso)
- Abonos (compra, bono, referido)
- Barridos programados (caducidad, holds obsoletos)

Autor: Equipo Backend
Fecha: 2026-10-19
"""
from prometheus_client import Counter

NAMESPACE = "creditledger"
SUBSYSTEM = "credits"

# Holds por resultado
holds_total = Counter(
    f"{NAMESPACE}_{SUBSYSTEM}_holds_total",
    "Credit holds by outcome",
    labelnames=("outcome",),  # created|insufficient|conflict
)

# Liquidación de holds y reembolsos de soporte
settlements_total = Counter(
    f"{NAMESPACE}_{SUBSYSTEM}_settlements_total",
    "Hold settlements by operation and outcome",
    labelnames=("operation", "outcome"),  # capture|partial_capture|refund|refund_captured
)

# Créditos efectivamente cobrados
captured_credits_total = Counter(
    f"{NAMESPACE}_{SUBSYSTEM}_captured_credits_total",
    "Credits debited through captures",
)

# Abonos
grants_total = Counter(
    f"{NAMESPACE}_{SUBSYSTEM}_grants_total",
    "Credit grants by type and outcome",
    labelnames=("tx_type", "outcome"),  # created|duplicate
)

# Barridos
sweep_items_total = Counter(
    f"{NAMESPACE}_{SUBSYSTEM}_sweep_items_total",
    "Items processed by scheduled sweeps",
    labelnames=("sweep", "outcome"),  # expire_credits|cancel_stale_holds ; ok|error
)

expired_credits_total = Counter(
    f"{NAMESPACE}_{SUBSYSTEM}_expired_credits_total",
    "Credits deducted by expiry",
)

__all__ = [
    "holds_total",
    "settlements_total",
    "captured_credits_total",
    "grants_total",
    "sweep_items_total",
    "expired_credits_total",
]

# Fin del archivo
