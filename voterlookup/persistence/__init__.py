"""
Data access layer.

Provides pooled, read-only access to the PostgreSQL electoral roll.
"""

from .postgres import PostgresDatastore, PostgresSession

__all__ = [
    "PostgresDatastore",
    "PostgresSession",
]
