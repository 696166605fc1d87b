"""SQLAlchemy adapter package for marketsync."""

from __future__ import annotations

from .mappings import create_all_tables, mapper_registry, start_mappers
from .repositories import SqlAlchemyCanonicalProductRepository

__all__ = [
    "SqlAlchemyCanonicalProductRepository",
    "create_all_tables",
    "mapper_registry",
    "start_mappers",
]
