"""
Mark pipeline.

Walks the volumes matching a filter and records the deletion decision for
each one in its marked-for-deletion label. Nothing is deleted here.
"""

import logging
import threading
from collections.abc import Callable, Iterator
from datetime import datetime, timedelta

from .decision import TimestampParseError, decide, utcnow
from .labels import FILTER_GKE_VOLUME, VALUE_MARKED, VALUE_UNMARKED, mark_value, with_mark
from .models import Action, Diagnostic, Outcome
from .pipeline import drive, inventory
from .providers.base import DiskService, ProviderError, VolumeRecord

logger = logging.getLogger(__name__)

PIPELINE = "mark"
DEFAULT_CUTOFF = timedelta(days=30)


def mark_volume(
    service: DiskService,
    volume: VolumeRecord,
    cutoff: timedelta,
    dry_run: bool,
    now: datetime,
) -> list[Outcome]:
    """Decide and, unless dry_run, apply the label change for one volume."""
    try:
        decision = decide(volume.last_attached_at, mark_value(volume.labels), cutoff, now)
    except TimestampParseError as e:
        return [Outcome.failed(PIPELINE, volume, e)]

    if decision.action is Action.SKIP:
        return [Outcome.skipped(PIPELINE, volume, Action.SKIP, decision.diagnostic)]

    value = VALUE_MARKED if decision.action is Action.MARK else VALUE_UNMARKED

    # Never-attached volumes decide Mark on every pass; only write a change
    if mark_value(volume.labels) == value:
        return [Outcome.skipped(PIPELINE, volume, Action.SKIP, Diagnostic.ALREADY_MARKED)]

    if dry_run:
        return [Outcome.skipped(PIPELINE, volume, decision.action, Diagnostic.DRY_RUN_SUPPRESSED)]

    try:
        service.set_labels(volume.volume_id, with_mark(volume.labels, value), volume.label_fingerprint)
    except ProviderError as e:
        return [Outcome.failed(PIPELINE, volume, e, action=decision.action)]

    return [Outcome.applied(PIPELINE, volume, decision.action)]


def run_mark(
    service: DiskService,
    filter_expr: str = FILTER_GKE_VOLUME,
    cutoff: timedelta = DEFAULT_CUTOFF,
    dry_run: bool = True,
    *,
    cancel: threading.Event | None = None,
    workers: int = 1,
    clock: Callable[[], datetime] = utcnow,
) -> Iterator[Outcome]:
    """
    Run one mark pass.

    Args:
        service: Disk service bound to the target project and zone
        filter_expr: Server-side selection filter
        cutoff: Time since last attach after which a volume is marked
        dry_run: Report decisions without changing any labels
        cancel: Stops fetching further volumes when set
        workers: Volumes processed concurrently
        clock: Source of the current time, read once per volume

    Yields:
        One Outcome per volume

    Raises:
        InventoryError: If the volume listing fails
    """
    logger.info(f"Mark pass: filter={filter_expr!r} cutoff={cutoff} dry_run={dry_run}")

    def process(volume: VolumeRecord) -> list[Outcome]:
        return mark_volume(service, volume, cutoff, dry_run, clock())

    yield from drive(inventory(service, filter_expr), process, PIPELINE, workers=workers, cancel=cancel)
