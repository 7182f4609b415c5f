"""Pricing, order lifecycle and webhook reconciliation services."""
