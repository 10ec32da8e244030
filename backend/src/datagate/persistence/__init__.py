"""Persistence layer - store adapters and predicate compilation."""

from datagate.persistence.adapter import StoreAdapter
from datagate.persistence.config import DatabaseConfig, create_adapter

__all__ = ["StoreAdapter", "DatabaseConfig", "create_adapter"]
