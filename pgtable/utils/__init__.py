"""
Utilities package for pgtable.

Exports shared helpers for logging and other cross-cutting concerns.
Keep this package lightweight and free of table-specific logic.
"""

from pgtable.utils.logging import JsonFormatter, configure_logging, get_logger

__all__ = [
    "JsonFormatter",
    "configure_logging",
    "get_logger",
]
