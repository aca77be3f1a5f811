"""
Domain package for pgrecord.

Exports the value types shared by tables, records, and the CRUD layer.
Keep this package focused on data definitions.
"""

from pgrecord.domain.models import Column, Op

__all__ = [
    "Column",
    "Op",
]
