# -*- coding: utf-8 -*-
"""
backend/app/__init__.py

Paquete principal del servicio de créditos.

Autor: Equipo Backend
Fecha: 2026-10-19
"""

# Fin del archivo backend/app/__init__.py
