"""
Lifecycle management for GKE persistent disks
"""

__version__ = "0.1.0"

# Decision engine
from .decision import Decision, TimestampParseError, decide, parse_timestamp

# Label vocabulary
from .labels import (
    LABEL_MARKED_FOR_DELETION,
    FILTER_GKE_VOLUME,
    FILTER_MARKED_FOR_DELETION,
    LabelInvariantError,
    is_marked,
    require_marked,
)

# Outcomes
from .models import Action, CleanupAction, Diagnostic, Outcome, OutcomeKind

# Pipelines
from .pipeline import InventoryError
from .mark import run_mark, mark_volume
from .cleanup import run_cleanup, cleanup_volume, snapshot_spec_for

__all__ = [
    "Decision",
    "TimestampParseError",
    "decide",
    "parse_timestamp",
    "LABEL_MARKED_FOR_DELETION",
    "FILTER_GKE_VOLUME",
    "FILTER_MARKED_FOR_DELETION",
    "LabelInvariantError",
    "is_marked",
    "require_marked",
    "Action",
    "CleanupAction",
    "Diagnostic",
    "Outcome",
    "OutcomeKind",
    "InventoryError",
    "run_mark",
    "mark_volume",
    "run_cleanup",
    "cleanup_volume",
    "snapshot_spec_for",
]
