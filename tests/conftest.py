"""Pytest fixtures for nzcrash tests."""

from pathlib import Path

import pytest

from nzcrash.core.tables import CrashTables
from nzcrash.io.readers import load

CRASHES_CSV = """\
id,date,time,datetime,severity,fatalities,easting,northing,region
c1,2020-01-01,,,fatal,3,174.76,-36.85,Auckland
c2,2020-06-01,08:00:00,2020-06-01 08:00:00,fatal,1,174.77,-36.86,Auckland
c3,2021-03-15,17:30,2021-03-15 17:30:00,serious,0,,,Wellington
c4,2021-12-31,23:15:00,2021-12-31 23:15:00,non-injury,0,172.63,-43.53,Canterbury
"""

VEHICLES_CSV = """\
id,vehicle_id,vehicle
c1,1,Car
c1,2,Bicycle
c2,1,Car
c3,1,Bicycle
c4,1,Truck
c4,2,Car
"""

CAUSES_CSV = """\
id,vehicle_id,cause_category,cause_subcategory,cause
c1,1,Driver,Alcohol or drugs,Alcohol test above limit
c1,1,Driver,Too fast for conditions,Cornering
c1,2,Cyclist,Inattentive,Failed to look
c2,,Road,Slippery,Ice
c3,1,Cyclist,Inattentive,Failed to look
c4,2,Driver,Alcohol or drugs,Alcohol suspected
"""

OBJECTS_STRUCK_CSV = """\
id,object
c1,"Trees, shrubbery of a substantial nature"
c3,Kerb
c4,"Trees, shrubbery of a substantial nature"
c4,Fence
"""

TABLE_CSVS = {
    "crashes": CRASHES_CSV,
    "vehicles": VEHICLES_CSV,
    "causes": CAUSES_CSV,
    "objects_struck": OBJECTS_STRUCK_CSV,
}


def write_tables(directory: Path, **overrides: str) -> Path:
    """Write the sample tables to *directory*, replacing any given by name."""
    directory.mkdir(parents=True, exist_ok=True)
    for name, text in {**TABLE_CSVS, **overrides}.items():
        if text is None:
            continue
        (directory / f"{name}.csv").write_text(text, encoding="utf-8")
    return directory


@pytest.fixture
def data_dir(tmp_path) -> Path:
    """Directory holding a small, valid set of the four tables."""
    return write_tables(tmp_path / "data")


@pytest.fixture
def tables(data_dir) -> CrashTables:
    """The sample tables, loaded strictly."""
    return load(data_dir)
