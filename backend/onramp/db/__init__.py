"""
Database package for the onramp.

Exports engine setup, table creation and ORM models.
"""
from .init_db import create_engine_and_sessionmaker, initialize_database
from .models import Base, OrderModel

__all__ = [
    "create_engine_and_sessionmaker",
    "initialize_database",
    "Base",
    "OrderModel",
]
