"""
Inventory driver shared by the mark and cleanup pipelines.

Pulls volumes from the disk service one at a time, hands each to a
per-volume processor and streams back the outcomes. A fault while fetching
the inventory ends the pass with InventoryError; a fault while processing a
single volume becomes a FAILED outcome and the pass continues.

With workers > 1 volumes are processed on a bounded thread pool. Fetching
stays on the calling thread and the same volume is never in flight twice.
"""

import logging
import threading
from collections.abc import Callable, Iterable, Iterator
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait

from .models import Outcome
from .providers.base import DiskService, VolumeRecord

logger = logging.getLogger(__name__)

Processor = Callable[[VolumeRecord], list[Outcome]]


class InventoryError(Exception):
    """The volume inventory could not be fetched; the pass cannot continue."""

    def __init__(self, message: str, filter_expr: str = ""):
        self.filter_expr = filter_expr
        super().__init__(message)


def inventory(service: DiskService, filter_expr: str) -> Iterator[VolumeRecord]:
    """
    Lazily list volumes, converting any listing fault into InventoryError.

    Raises:
        InventoryError: If the listing or a page fetch fails
    """
    try:
        yield from service.list_volumes(filter_expr)
    except InventoryError:
        raise
    except Exception as e:
        raise InventoryError(f"failed to list volumes with filter {filter_expr!r}: {e}", filter_expr) from e


def _cancelled(cancel: threading.Event | None) -> bool:
    return cancel is not None and cancel.is_set()


def _next_volume(volumes: Iterator[VolumeRecord]) -> VolumeRecord | None:
    """Next volume, or None at the end of the inventory."""
    try:
        return next(volumes)
    except StopIteration:
        return None
    except InventoryError:
        raise
    except Exception as e:
        raise InventoryError(f"failed to fetch next volume: {e}") from e


def _process_safely(process: Processor, pipeline: str, volume: VolumeRecord) -> list[Outcome]:
    try:
        return list(process(volume))
    except Exception as e:
        logger.error(f"Unexpected error processing disk {volume.name}: {e}", exc_info=True)
        return [Outcome.failed(pipeline, volume, e)]


def drive(
    volumes: Iterable[VolumeRecord],
    process: Processor,
    pipeline: str,
    *,
    workers: int = 1,
    cancel: threading.Event | None = None,
) -> Iterator[Outcome]:
    """
    Run process over every volume and yield the outcomes.

    Args:
        volumes: Lazy volume inventory
        process: Per-volume processor returning that volume's outcomes
        pipeline: Pipeline name used for outcomes of unexpected errors
        workers: Volumes processed concurrently (1 processes in the calling thread)
        cancel: When set, no further volumes are fetched

    Yields:
        Outcome values, grouped per volume

    Raises:
        InventoryError: After all earlier outcomes were yielded, if fetching fails
        ValueError: If workers is less than 1
    """
    if workers < 1:
        raise ValueError(f"workers must be at least 1, got {workers}")

    volumes = iter(volumes)
    if workers == 1:
        yield from _drive_sequential(volumes, process, pipeline, cancel)
    else:
        yield from _drive_pool(volumes, process, pipeline, workers, cancel)


def _drive_sequential(
    volumes: Iterator[VolumeRecord],
    process: Processor,
    pipeline: str,
    cancel: threading.Event | None,
) -> Iterator[Outcome]:
    while True:
        if _cancelled(cancel):
            logger.info(f"{pipeline}: cancelled, not fetching further disks")
            return

        volume = _next_volume(volumes)
        if volume is None:
            return

        yield from _process_safely(process, pipeline, volume)


def _drive_pool(
    volumes: Iterator[VolumeRecord],
    process: Processor,
    pipeline: str,
    workers: int,
    cancel: threading.Event | None,
) -> Iterator[Outcome]:
    in_flight: dict[Future, VolumeRecord] = {}
    held: VolumeRecord | None = None
    exhausted = False
    fault: InventoryError | None = None

    with ThreadPoolExecutor(max_workers=workers, thread_name_prefix=f"{pipeline}-worker") as executor:
        while True:
            while not exhausted and fault is None and len(in_flight) < workers:
                if _cancelled(cancel):
                    logger.info(f"{pipeline}: cancelled, not fetching further disks")
                    exhausted = True
                    held = None
                    break

                if held is None:
                    try:
                        held = _next_volume(volumes)
                    except InventoryError as e:
                        fault = e
                        break
                    if held is None:
                        exhausted = True
                        break

                # Same disk listed twice: wait for the first one to finish
                if any(v.volume_id == held.volume_id for v in in_flight.values()):
                    break

                future = executor.submit(_process_safely, process, pipeline, held)
                in_flight[future] = held
                held = None

            if not in_flight:
                break

            done, _ = wait(in_flight, return_when=FIRST_COMPLETED)
            for future in done:
                in_flight.pop(future)
                yield from future.result()

    if fault is not None:
        raise fault
