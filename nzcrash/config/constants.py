"""
Configuration constants for nzcrash.

All table names, column names, category levels and magic strings used across
the package are centralised here so that upstream schema changes need only
one edit.
"""

# ═══════════════════════════════════════════════════════════════════════════════
# Table names and on-disk layout
# ═══════════════════════════════════════════════════════════════════════════════

TABLE_CRASHES = "crashes"
TABLE_CAUSES = "causes"
TABLE_VEHICLES = "vehicles"
TABLE_OBJECTS_STRUCK = "objects_struck"

TABLE_NAMES: list[str] = [
    TABLE_CRASHES,
    TABLE_CAUSES,
    TABLE_VEHICLES,
    TABLE_OBJECTS_STRUCK,
]

TABLE_FILES: dict[str, str] = {name: f"{name}.csv" for name in TABLE_NAMES}

# ═══════════════════════════════════════════════════════════════════════════════
# Column names — shared key columns
# ═══════════════════════════════════════════════════════════════════════════════

COL_ID = "id"
COL_VEHICLE_ID = "vehicle_id"

# ═══════════════════════════════════════════════════════════════════════════════
# Column names — crashes
# ═══════════════════════════════════════════════════════════════════════════════

COL_DATE = "date"
COL_TIME = "time"
COL_DATETIME = "datetime"
COL_SEVERITY = "severity"
COL_FATALITIES = "fatalities"
COL_EASTING = "easting"
COL_NORTHING = "northing"

# ═══════════════════════════════════════════════════════════════════════════════
# Column names — child tables
# ═══════════════════════════════════════════════════════════════════════════════

COL_VEHICLE = "vehicle"
COL_OBJECT = "object"
COL_CAUSE_CATEGORY = "cause_category"
COL_CAUSE_SUBCATEGORY = "cause_subcategory"
COL_CAUSE = "cause"

# Column used for row counts produced by ``aggregate(..., "count")``
COL_COUNT = "n"
COL_YEAR = "year"
COL_HOUR = "hour"

# ═══════════════════════════════════════════════════════════════════════════════
# Required columns per table (other descriptive columns pass through)
# ═══════════════════════════════════════════════════════════════════════════════

REQUIRED_COLUMNS: dict[str, list[str]] = {
    TABLE_CRASHES: [
        COL_ID,
        COL_DATE,
        COL_TIME,
        COL_DATETIME,
        COL_SEVERITY,
        COL_FATALITIES,
        COL_EASTING,
        COL_NORTHING,
    ],
    TABLE_CAUSES: [
        COL_ID,
        COL_VEHICLE_ID,
        COL_CAUSE_CATEGORY,
        COL_CAUSE_SUBCATEGORY,
        COL_CAUSE,
    ],
    TABLE_VEHICLES: [COL_ID, COL_VEHICLE_ID, COL_VEHICLE],
    TABLE_OBJECTS_STRUCK: [COL_ID, COL_OBJECT],
}

# ═══════════════════════════════════════════════════════════════════════════════
# Severity levels, most to least severe
# ═══════════════════════════════════════════════════════════════════════════════

SEVERITY_FATAL = "fatal"
SEVERITY_SERIOUS = "serious"
SEVERITY_MINOR = "minor"
SEVERITY_NON_INJURY = "non-injury"

SEVERITY_LEVELS: list[str] = [
    SEVERITY_FATAL,
    SEVERITY_SERIOUS,
    SEVERITY_MINOR,
    SEVERITY_NON_INJURY,
]

# ═══════════════════════════════════════════════════════════════════════════════
# Time handling
# ═══════════════════════════════════════════════════════════════════════════════

# Naive datetimes in the data are NZ local wall-clock time
NZ_TIMEZONE = "Pacific/Auckland"

TIME_FORMATS: list[str] = ["%H:%M:%S", "%H:%M"]

# ═══════════════════════════════════════════════════════════════════════════════
# Default encoding used for the CSV tables
# ═══════════════════════════════════════════════════════════════════════════════

CSV_ENCODING = "utf-8-sig"
