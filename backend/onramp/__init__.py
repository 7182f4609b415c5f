"""Fiat-to-crypto onramp backend."""
