"""
Label vocabulary shared by the mark and cleanup pipelines.

A volume is marked for deletion if and only if its labels contain
LABEL_MARKED_FOR_DELETION with the exact value "true". Any other value
means the volume was explicitly opted out; a missing key means no decision
has been recorded yet.
"""

LABEL_MARKED_FOR_DELETION = "marked-for-deletion"
VALUE_MARKED = "true"
VALUE_UNMARKED = "false"

# Default selection for the mark pass: disks provisioned for GKE persistent volumes
FILTER_GKE_VOLUME = "labels.goog-gke-volume:*"
FILTER_MARKED_FOR_DELETION = f"labels.{LABEL_MARKED_FOR_DELETION}:{VALUE_MARKED}"


class LabelInvariantError(ValueError):
    """Cleanup candidate whose labels do not literally mark it for deletion."""

    def __init__(self, volume_name: str, reason: str):
        self.volume_name = volume_name
        self.reason = reason
        super().__init__(f"skipping disk {volume_name}: {reason}")


def mark_value(labels: dict[str, str] | None) -> str | None:
    """Current value of the mark label, or None if it is not set."""
    if not labels:
        return None
    return labels.get(LABEL_MARKED_FOR_DELETION)


def is_marked(labels: dict[str, str] | None) -> bool:
    return mark_value(labels) == VALUE_MARKED


def with_mark(labels: dict[str, str] | None, value: str) -> dict[str, str]:
    """Copy of labels with the mark label set to value; other labels are kept."""
    updated = dict(labels or {})
    updated[LABEL_MARKED_FOR_DELETION] = value
    return updated


def require_marked(labels: dict[str, str] | None, volume_name: str) -> None:
    """
    Verify a volume is marked for deletion before anything destructive happens.

    Raises:
        LabelInvariantError: If the label map or key is missing, or the value
            is anything other than "true"
    """
    if labels is None:
        raise LabelInvariantError(volume_name, "missing required label")
    if LABEL_MARKED_FOR_DELETION not in labels:
        raise LabelInvariantError(volume_name, "missing required label")

    value = labels[LABEL_MARKED_FOR_DELETION]
    if value != VALUE_MARKED:
        raise LabelInvariantError(volume_name, f"expected label value true but got {value!r}")
