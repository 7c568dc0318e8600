"""
The in-memory crash dataset: four tables loaded once and never mutated.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator

import pandas as pd

from nzcrash.config.constants import (
    TABLE_CAUSES,
    TABLE_CRASHES,
    TABLE_NAMES,
    TABLE_OBJECTS_STRUCK,
    TABLE_VEHICLES,
)


@dataclass(frozen=True)
class CrashTables:
    """The four related crash tables.

    Tables can be read as attributes or by name (``tables["causes"]``).
    """

    crashes: pd.DataFrame
    causes: pd.DataFrame
    vehicles: pd.DataFrame
    objects_struck: pd.DataFrame

    def __getitem__(self, name: str) -> pd.DataFrame:
        if name not in TABLE_NAMES:
            raise KeyError(name)
        return getattr(self, name)

    def items(self) -> Iterator[tuple[str, pd.DataFrame]]:
        for name in TABLE_NAMES:
            yield name, getattr(self, name)

    def row_counts(self) -> dict[str, int]:
        return {name: len(df) for name, df in self.items()}

    @classmethod
    def from_mapping(cls, tables: dict[str, pd.DataFrame]) -> "CrashTables":
        return cls(
            crashes=tables[TABLE_CRASHES],
            causes=tables[TABLE_CAUSES],
            vehicles=tables[TABLE_VEHICLES],
            objects_struck=tables[TABLE_OBJECTS_STRUCK],
        )
