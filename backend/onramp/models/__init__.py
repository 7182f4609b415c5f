"""Pydantic models for assets, prices, orders and payments."""
