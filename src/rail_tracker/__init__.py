"""Commuter-rail trip resolution with realtime reconciliation."""

__version__ = "0.1.0"
