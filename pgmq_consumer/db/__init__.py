"""
Database module.
Contains the async engine used by the Postgres queue driver.
"""

from pgmq_consumer.db.connection import close_engine, create_engine, get_engine

__all__ = [
    "create_engine",
    "get_engine",
    "close_engine",
]
