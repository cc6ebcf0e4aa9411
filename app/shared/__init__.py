# -*- coding: utf-8 -*-
"""
backend/app/shared/__init__.py

Infraestructura compartida: configuración, base de datos (SERIALIZABLE),
scheduler, autenticación interna y utilidades de tiempo.

Autor: Equipo Backend
Fecha: 2026-10-19
"""

# Fin del archivo backend/app/shared/__init__.py
