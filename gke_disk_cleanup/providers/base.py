"""
Abstract base classes for the compute disk service.

This module defines the interface the mark and cleanup pipelines consume.
The pipelines only ever see VolumeRecord snapshots and the four operations
below, so a provider can be swapped without touching the decision logic.

Operations:
- list_volumes: lazy inventory of volumes matching a server-side filter
- set_labels: fingerprint-guarded label update
- create_snapshot: asynchronous snapshot with a waitable handle
- delete_volume: destroy a volume
"""

import logging
import threading
import time
from abc import ABC, abstractmethod
from collections.abc import Iterator
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL_SECONDS = 5.0


@dataclass(frozen=True)
class VolumeRecord:
    """Point-in-time view of a volume as returned by the disk service."""
    volume_id: str
    name: str
    size_gb: int
    last_attached_at: str | None  # RFC 3339 string; None or '' means never attached
    labels: dict[str, str] | None
    label_fingerprint: str
    zone: str
    region: str | None = None

    @property
    def label_map(self) -> dict[str, str]:
        """Labels as a plain dict, empty when the volume has none."""
        return dict(self.labels or {})

    @property
    def location(self) -> str:
        """Region used to co-locate snapshots (us-east1-a -> us-east1)."""
        if self.region:
            return self.region
        return self.zone.rsplit("-", 1)[0]


@dataclass(frozen=True)
class SnapshotSpec:
    """Parameters for a pre-deletion safety snapshot."""
    name: str
    labels: dict[str, str] = field(default_factory=dict)
    storage_locations: list[str] = field(default_factory=list)


class SnapshotOperation(ABC):
    """
    Handle for an in-flight snapshot.

    Implementations only need to report whether the operation finished and
    raise if it finished badly; the blocking wait loop lives here so every
    provider honours cancellation the same way.
    """

    provider: str = "unknown"

    @property
    @abstractmethod
    def name(self) -> str:
        """Provider-side operation name."""
        pass

    @abstractmethod
    def done(self) -> bool:
        """
        Refresh the operation and report whether it reached a terminal state.

        Raises:
            ProviderError: If the operation status cannot be fetched
        """
        pass

    @abstractmethod
    def check_result(self) -> None:
        """
        Raise if a finished operation ended in error.

        Raises:
            OperationFailedError: If the operation finished with an error
        """
        pass

    def wait(
        self,
        cancel: threading.Event | None = None,
        poll_interval: float = DEFAULT_POLL_INTERVAL_SECONDS,
        timeout: float | None = None,
    ) -> None:
        """
        Block until the operation reaches a terminal state.

        Args:
            cancel: Event that aborts the wait when set. The operation itself
                keeps running on the provider side.
            poll_interval: Seconds between status refreshes
            timeout: Give up after this many seconds (None waits forever)

        Raises:
            OperationCancelledError: If cancel was set before completion
            OperationTimeoutError: If timeout elapsed before completion
            OperationFailedError: If the operation finished with an error
        """
        deadline = time.monotonic() + timeout if timeout is not None else None

        while True:
            if cancel is not None and cancel.is_set():
                raise OperationCancelledError(
                    f"stopped waiting for operation {self.name}",
                    provider=self.provider,
                    operation="wait",
                )
            if self.done():
                break
            if deadline is not None and time.monotonic() >= deadline:
                raise OperationTimeoutError(
                    f"operation {self.name} not done after {timeout}s",
                    provider=self.provider,
                    operation="wait",
                )
            logger.debug(f"Operation {self.name} still running, polling again in {poll_interval}s")
            if cancel is not None:
                cancel.wait(poll_interval)
            else:
                time.sleep(poll_interval)

        self.check_result()


class DiskService(ABC):
    """
    Abstract interface for the zonal disk operations the pipelines need.

    An instance is bound to one project and zone.

    Implementations:
    - GCP: Compute Engine persistent disks (providers.gcp)
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Provider name (gcp)."""
        pass

    @abstractmethod
    def list_volumes(self, filter_expr: str = "") -> Iterator[VolumeRecord]:
        """
        Lazily list volumes matching a server-side filter.

        The sequence is finite and cannot be restarted mid-pass.

        Args:
            filter_expr: Provider filter expression (empty for all volumes)

        Yields:
            VolumeRecord for each matching volume

        Raises:
            ProviderError: If a page cannot be fetched
        """
        pass

    @abstractmethod
    def set_labels(
        self,
        volume_id: str,
        labels: dict[str, str],
        fingerprint: str,
    ) -> None:
        """
        Replace the label map of a volume.

        Args:
            volume_id: Provider volume identifier
            labels: Complete new label map
            fingerprint: Label fingerprint captured when the volume was read

        Raises:
            FingerprintConflictError: If labels changed since the fingerprint was read
            ProviderError: For any other failure
        """
        pass

    @abstractmethod
    def create_snapshot(self, volume_name: str, spec: SnapshotSpec) -> SnapshotOperation:
        """
        Start a snapshot of a volume.

        Args:
            volume_name: Source volume name
            spec: Snapshot name, labels and storage location

        Returns:
            Handle to wait on

        Raises:
            ProviderError: If the snapshot request is rejected
        """
        pass

    @abstractmethod
    def delete_volume(self, volume_name: str) -> None:
        """
        Delete a volume.

        Raises:
            VolumeNotFoundError: If the volume no longer exists
            ProviderError: For any other failure
        """
        pass


class ProviderError(Exception):
    """Base exception for provider errors."""

    def __init__(self, message: str, provider: str, operation: str, details: dict | None = None):
        self.provider = provider
        self.operation = operation
        self.details = details or {}
        super().__init__(f"[{provider}] {operation}: {message}")


class FingerprintConflictError(ProviderError):
    """Labels were modified since the fingerprint was read."""
    pass


class VolumeNotFoundError(ProviderError):
    """Volume does not exist."""
    pass


class OperationFailedError(ProviderError):
    """Asynchronous operation finished with an error."""
    pass


class OperationCancelledError(ProviderError):
    """Caller stopped waiting for an operation."""
    pass


class OperationTimeoutError(ProviderError):
    """Operation did not finish within the allowed time."""
    pass
