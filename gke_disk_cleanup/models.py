"""
Outcome types streamed by the mark and cleanup pipelines.

Every volume a pipeline touches produces one or more Outcome values. The
kind field is the discriminant; callers branch on it instead of comparing
error values.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any

from .providers.base import VolumeRecord


class Action(str, Enum):
    """Decision engine verdict for one volume."""
    SKIP = "skip"
    MARK = "mark"
    UNMARK = "unmark"


class CleanupAction(str, Enum):
    """Destructive steps of the cleanup pipeline."""
    SNAPSHOT = "snapshot"
    DELETE = "delete"


class Diagnostic(str, Enum):
    """Non-fatal reason why nothing was mutated."""
    WITHIN_CUTOFF = "within_cutoff"
    ALREADY_MARKED = "already_marked"
    EXPLICITLY_UNMARKED = "explicitly_unmarked"
    DRY_RUN_SUPPRESSED = "dry_run_suppressed"


class OutcomeKind(str, Enum):
    APPLIED = "applied"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass(frozen=True)
class Outcome:
    """Result of processing one step for one volume."""
    pipeline: str
    kind: OutcomeKind
    volume: VolumeRecord
    action: Action | CleanupAction | None = None
    diagnostic: Diagnostic | None = None
    error: Exception | None = None
    detail: str | None = None

    @classmethod
    def applied(
        cls,
        pipeline: str,
        volume: VolumeRecord,
        action: Action | CleanupAction,
        detail: str | None = None,
    ) -> "Outcome":
        return cls(pipeline, OutcomeKind.APPLIED, volume, action=action, detail=detail)

    @classmethod
    def skipped(
        cls,
        pipeline: str,
        volume: VolumeRecord,
        action: Action | CleanupAction,
        diagnostic: Diagnostic,
        detail: str | None = None,
    ) -> "Outcome":
        return cls(pipeline, OutcomeKind.SKIPPED, volume, action=action, diagnostic=diagnostic, detail=detail)

    @classmethod
    def failed(
        cls,
        pipeline: str,
        volume: VolumeRecord,
        error: Exception,
        action: Action | CleanupAction | None = None,
    ) -> "Outcome":
        return cls(pipeline, OutcomeKind.FAILED, volume, action=action, error=error)

    @property
    def ok(self) -> bool:
        return self.kind is not OutcomeKind.FAILED

    def to_dict(self) -> dict[str, Any]:
        """Flat structured fields for logging."""
        fields = {
            "pipeline": self.pipeline,
            "outcome": self.kind.value,
            "disk_name": self.volume.name,
            "disk_id": self.volume.volume_id,
            "size_gb": self.volume.size_gb,
            "last_attach_time": self.volume.last_attached_at or "",
            "labels": self.volume.label_map,
        }
        if self.action is not None:
            fields["action"] = self.action.value
        if self.diagnostic is not None:
            fields["diagnostic"] = self.diagnostic.value
        if self.error is not None:
            fields["error"] = str(self.error)
        if self.detail:
            fields["detail"] = self.detail
        return fields
