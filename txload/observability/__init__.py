"""
Observability module for txload.

This module provides:
- Live metrics with Prometheus
"""

__all__ = ["metrics"]
