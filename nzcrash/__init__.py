"""
nzcrash — New Zealand road-crash statistics as four related tables.

The dataset is redistributed as four flat tables:
    - crashes         — one row per crash
    - causes          — contributing causes, many per crash
    - vehicles        — vehicles involved, many per crash
    - objects_struck  — roadside objects struck, many per crash

Load them with :func:`nzcrash.io.readers.load` and query them with the join
and aggregate helpers in :mod:`nzcrash.core.relational`.
"""

from nzcrash.errors import LoadError, NzcrashError, SchemaError

__version__ = "1.0.0"

__all__ = ["LoadError", "NzcrashError", "SchemaError", "__version__"]
