"""
Exception types raised by nzcrash.

There is deliberately no exception for the "severe injury" boundary: it is
undefined upstream and is injected as a policy instead (see
:mod:`nzcrash.core.severity`).
"""

from __future__ import annotations


class NzcrashError(Exception):
    """Base class for all nzcrash errors."""


class LoadError(NzcrashError):
    """A source table is absent, empty, or structurally invalid."""

    def __init__(self, table: str, message: str):
        self.table = table
        super().__init__(f"{table}: {message}")


class SchemaError(NzcrashError):
    """A join or aggregate referenced a column the table does not have."""

    def __init__(self, column: str, table: str = "table"):
        self.column = column
        self.table = table
        super().__init__(f"column {column!r} not found in {table}")
