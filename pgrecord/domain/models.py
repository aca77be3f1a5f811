"""
Domain models for pgrecord.

`Column` describes one catalog-discovered column. Instances are frozen so a
finalized `Table` can hand them out to any number of threads.
"""
from __future__ import annotations

import enum

from pydantic import BaseModel, Field


class Column(BaseModel):
    """
    One column of a table, as reported by `pg_attribute`.
    """

    name: str = Field(..., description="Column name, unique within its table.")
    oid: int = Field(..., description="Native type OID; passed through to the driver.")
    not_null: bool = Field(False, description="Whether the column is declared NOT NULL.")
    primary_key: bool = Field(False, description="Whether the column is part of the primary key.")

    model_config = {
        "frozen": True,
        "populate_by_name": True,
        "arbitrary_types_allowed": False,
    }


class Op(enum.Enum):
    """Write operation passed to `before_save` hooks."""

    INSERT = "insert"
    UPDATE = "update"


__all__ = ["Column", "Op"]
