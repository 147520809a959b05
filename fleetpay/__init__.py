"""Earnings-to-settlement reconciliation for fleet drivers."""

__version__ = "1.0.0"
