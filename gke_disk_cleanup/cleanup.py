"""
Cleanup pipeline.

Deletes volumes that a previous mark pass labeled for deletion, optionally
taking a safety snapshot first. The label is re-checked locally before
anything destructive happens, and a volume is only deleted once its
snapshot has completed.
"""

import logging
import threading
from collections.abc import Iterator

from .labels import FILTER_MARKED_FOR_DELETION, LabelInvariantError, require_marked
from .models import CleanupAction, Diagnostic, Outcome
from .pipeline import drive, inventory
from .providers.base import (
    DEFAULT_POLL_INTERVAL_SECONDS,
    DiskService,
    OperationCancelledError,
    ProviderError,
    SnapshotSpec,
    VolumeRecord,
)

logger = logging.getLogger(__name__)

PIPELINE = "cleanup"
SNAPSHOT_SUFFIX = "-snapshot"
SNAPSHOT_CREATED_BY = "gke-disk-cleanup"
MAX_RESOURCE_NAME_LENGTH = 63


def snapshot_name_for(volume_name: str) -> str:
    """<disk>-snapshot, with the disk part shortened to fit a resource name."""
    base = volume_name[:MAX_RESOURCE_NAME_LENGTH - len(SNAPSHOT_SUFFIX)]
    return f"{base}{SNAPSHOT_SUFFIX}"


def snapshot_spec_for(volume: VolumeRecord) -> SnapshotSpec:
    return SnapshotSpec(
        name=snapshot_name_for(volume.name),
        labels={"created-by": SNAPSHOT_CREATED_BY, "source-disk": volume.name},
        storage_locations=[volume.location],
    )


def cleanup_volume(
    service: DiskService,
    volume: VolumeRecord,
    do_snapshot: bool,
    dry_run: bool,
    *,
    cancel: threading.Event | None = None,
    poll_interval: float = DEFAULT_POLL_INTERVAL_SECONDS,
    snapshot_timeout: float | None = None,
) -> list[Outcome]:
    """
    Snapshot (optionally) and delete one marked volume.

    Returns the outcomes for this volume in the order the steps ran. A
    failed snapshot ends processing of the volume without deleting it.
    """
    try:
        require_marked(volume.labels, volume.name)
    except LabelInvariantError as e:
        return [Outcome.failed(PIPELINE, volume, e)]

    outcomes = []

    if do_snapshot:
        spec = snapshot_spec_for(volume)
        if dry_run:
            outcomes.append(Outcome.skipped(
                PIPELINE, volume, CleanupAction.SNAPSHOT, Diagnostic.DRY_RUN_SUPPRESSED, detail=spec.name
            ))
        else:
            try:
                operation = service.create_snapshot(volume.name, spec)
                operation.wait(cancel=cancel, poll_interval=poll_interval, timeout=snapshot_timeout)
            except ProviderError as e:
                outcomes.append(Outcome.failed(PIPELINE, volume, e, action=CleanupAction.SNAPSHOT))
                return outcomes
            outcomes.append(Outcome.applied(PIPELINE, volume, CleanupAction.SNAPSHOT, detail=spec.name))

    if dry_run:
        outcomes.append(Outcome.skipped(PIPELINE, volume, CleanupAction.DELETE, Diagnostic.DRY_RUN_SUPPRESSED))
        return outcomes

    if cancel is not None and cancel.is_set():
        error = OperationCancelledError(
            f"not deleting {volume.name} after cancellation", provider=service.name, operation="delete_volume"
        )
        outcomes.append(Outcome.failed(PIPELINE, volume, error, action=CleanupAction.DELETE))
        return outcomes

    try:
        service.delete_volume(volume.name)
    except ProviderError as e:
        outcomes.append(Outcome.failed(PIPELINE, volume, e, action=CleanupAction.DELETE))
        return outcomes

    outcomes.append(Outcome.applied(PIPELINE, volume, CleanupAction.DELETE))
    return outcomes


def run_cleanup(
    service: DiskService,
    do_snapshot: bool = True,
    dry_run: bool = True,
    *,
    cancel: threading.Event | None = None,
    workers: int = 1,
    poll_interval: float = DEFAULT_POLL_INTERVAL_SECONDS,
    snapshot_timeout: float | None = None,
) -> Iterator[Outcome]:
    """
    Run one cleanup pass over the volumes labeled for deletion.

    Args:
        service: Disk service bound to the target project and zone
        do_snapshot: Snapshot each volume before deleting it
        dry_run: Report what would happen without snapshotting or deleting
        cancel: Stops fetching further volumes and aborts snapshot waits when set
        workers: Volumes processed concurrently
        poll_interval: Seconds between snapshot status checks
        snapshot_timeout: Give up on a snapshot after this many seconds

    Yields:
        Outcome values; a volume yields one per step it reached

    Raises:
        InventoryError: If the volume listing fails
    """
    logger.info(f"Cleanup pass: do_snapshot={do_snapshot} dry_run={dry_run}")

    def process(volume: VolumeRecord) -> list[Outcome]:
        return cleanup_volume(
            service,
            volume,
            do_snapshot,
            dry_run,
            cancel=cancel,
            poll_interval=poll_interval,
            snapshot_timeout=snapshot_timeout,
        )

    yield from drive(
        inventory(service, FILTER_MARKED_FOR_DELETION), process, PIPELINE, workers=workers, cancel=cancel
    )
