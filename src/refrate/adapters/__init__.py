# src/refrate/adapters/__init__.py
"""
Adapters Layer - External Interfaces

This package contains all adapters for external systems:
- Sources (remote reference-rate services)
- Persistence (JSON files and the relational store)
"""

__all__ = []
