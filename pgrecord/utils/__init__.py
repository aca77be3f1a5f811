"""
Utilities package for pgrecord.

Exports shared helpers for logging and other cross-cutting concerns.
Keep this package lightweight and free of record/table logic.
"""

from pgrecord.utils.logging import configure_logging, get_logger

__all__ = [
    "configure_logging",
    "get_logger",
]
