"""Agency-scoped trimming of a populated GTFS store."""

from gtfs_store.services.trim.engine import (
    AgencyNotFoundError,
    SchemaError,
    TrimError,
    TrimResult,
    TrimStepResult,
    trim,
)

__all__ = [
    "AgencyNotFoundError",
    "SchemaError",
    "TrimError",
    "TrimResult",
    "TrimStepResult",
    "trim",
]
