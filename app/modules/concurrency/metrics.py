# -*- coding: utf-8 -*-
"""
backend/app/modules/concurrency/metrics.py

Coleccionistas Prometheus del limitador de concurrencia.

Autor: Equipo Backend
Fecha: 2026-10-19
"""
from prometheus_client import Counter

NAMESPACE = "creditledger"
SUBSYSTEM = "concurrency"

# Adquisiciones por resultado
slot_acquisitions_total = Counter(
    f"{NAMESPACE}_{SUBSYSTEM}_slot_acquisitions_total",
    "Concurrency slot acquisitions by outcome",
    labelnames=("outcome",),  # acquired|limit_reached|conflict
)

slot_releases_total = Counter(
    f"{NAMESPACE}_{SUBSYSTEM}_slot_releases_total",
    "Concurrency slot releases",
    labelnames=("outcome",),  # released|missing
)

# Slots vencidos barridos (perezosa o programada)
expired_slots_swept_total = Counter(
    f"{NAMESPACE}_{SUBSYSTEM}_expired_slots_swept_total",
    "Expired concurrency slots deleted",
    labelnames=("source",),  # acquire|cleanup
)

__all__ = [
    "slot_acquisitions_total",
    "slot_releases_total",
    "expired_slots_swept_total",
]

# Fin del archivo
