"""
GCP disk service implementation.

Wraps google.cloud.compute_v1.DisksClient to provide the DiskService
interface for zonal persistent disks.
"""

import logging
import uuid
from collections.abc import Iterator

from google.api_core import exceptions as gapi_exceptions
from google.cloud import compute_v1

from .base import (
    DiskService,
    FingerprintConflictError,
    OperationFailedError,
    ProviderError,
    SnapshotOperation,
    SnapshotSpec,
    VolumeNotFoundError,
    VolumeRecord,
)

logger = logging.getLogger(__name__)

PROVIDER_NAME = "gcp"


def _basename(url: str) -> str:
    """Last path segment of a resource URL (.../zones/us-east1-a -> us-east1-a)."""
    return url.rsplit("/", 1)[-1] if url else ""


def _translate_error(error: gapi_exceptions.GoogleAPICallError, operation: str, resource: str) -> ProviderError:
    """Map a google-api-core error onto the provider exception hierarchy."""
    details = {"resource": resource, "code": error.code}
    message = str(error.message or error)

    if isinstance(error, gapi_exceptions.PreconditionFailed):
        return FingerprintConflictError(message, PROVIDER_NAME, operation, details)
    if isinstance(error, gapi_exceptions.BadRequest) and "fingerprint" in message.lower():
        return FingerprintConflictError(message, PROVIDER_NAME, operation, details)
    if isinstance(error, gapi_exceptions.NotFound):
        return VolumeNotFoundError(message, PROVIDER_NAME, operation, details)
    return ProviderError(message, PROVIDER_NAME, operation, details)


def disk_to_record(disk: compute_v1.Disk) -> VolumeRecord:
    """Convert a compute_v1.Disk into a VolumeRecord."""
    return VolumeRecord(
        volume_id=str(disk.id),
        name=disk.name,
        size_gb=int(disk.size_gb),
        last_attached_at=disk.last_attach_timestamp or None,
        labels=dict(disk.labels),
        label_fingerprint=disk.label_fingerprint,
        zone=_basename(disk.zone),
        region=_basename(disk.region) or None,
    )


class GCPSnapshotOperation(SnapshotOperation):
    """SnapshotOperation backed by a google-api-core ExtendedOperation."""

    provider = PROVIDER_NAME

    def __init__(self, operation, volume_name: str):
        self._operation = operation
        self._volume_name = volume_name

    @property
    def name(self) -> str:
        return self._operation.name

    def done(self) -> bool:
        try:
            return self._operation.done()
        except gapi_exceptions.GoogleAPICallError as e:
            raise _translate_error(e, "wait_snapshot", self._volume_name) from e

    def check_result(self) -> None:
        if self._operation.error_code:
            raise OperationFailedError(
                f"snapshot of {self._volume_name} failed: "
                f"{self._operation.error_code} - {self._operation.error_message}",
                PROVIDER_NAME,
                "wait_snapshot",
                {"resource": self._volume_name, "operation": self.name},
            )

        for warning in self._operation.warnings or []:
            logger.warning(
                f"Snapshot operation {self.name} for {self._volume_name} "
                f"finished with warning: {warning.code} - {warning.message}"
            )


class GCPDiskService(DiskService):
    """Compute Engine persistent disks in a single project and zone."""

    def __init__(self, project: str, zone: str, disks_client: compute_v1.DisksClient | None = None):
        self.project = project
        self.zone = zone
        self._disks_client = disks_client

    @property
    def disks_client(self) -> compute_v1.DisksClient:
        if self._disks_client is None:
            self._disks_client = compute_v1.DisksClient()
        return self._disks_client

    @property
    def name(self) -> str:
        return PROVIDER_NAME

    def list_volumes(self, filter_expr: str = "") -> Iterator[VolumeRecord]:
        """List disks in the zone; the client pager fetches further pages on demand."""
        request = compute_v1.ListDisksRequest(project=self.project, zone=self.zone)
        if filter_expr:
            request.filter = filter_expr

        logger.debug(f"Listing disks in {self.project}/{self.zone} with filter {filter_expr!r}")
        try:
            for disk in self.disks_client.list(request=request):
                yield disk_to_record(disk)
        except gapi_exceptions.GoogleAPICallError as e:
            raise _translate_error(e, "list_volumes", f"{self.project}/{self.zone}") from e

    def set_labels(self, volume_id: str, labels: dict[str, str], fingerprint: str) -> None:
        request = compute_v1.SetLabelsDiskRequest(
            project=self.project,
            zone=self.zone,
            resource=volume_id,
            request_id=str(uuid.uuid4()),
            zone_set_labels_request_resource=compute_v1.ZoneSetLabelsRequest(
                labels=labels,
                label_fingerprint=fingerprint,
            ),
        )
        try:
            self.disks_client.set_labels(request=request)
        except gapi_exceptions.GoogleAPICallError as e:
            raise _translate_error(e, "set_labels", volume_id) from e

    def create_snapshot(self, volume_name: str, spec: SnapshotSpec) -> GCPSnapshotOperation:
        request = compute_v1.CreateSnapshotDiskRequest(
            project=self.project,
            zone=self.zone,
            disk=volume_name,
            request_id=str(uuid.uuid4()),
            snapshot_resource=compute_v1.Snapshot(
                name=spec.name,
                labels=spec.labels,
                storage_locations=spec.storage_locations,
            ),
        )
        try:
            operation = self.disks_client.create_snapshot(request=request)
        except gapi_exceptions.GoogleAPICallError as e:
            raise _translate_error(e, "create_snapshot", volume_name) from e

        logger.debug(f"Started snapshot {spec.name} of {volume_name} (operation {operation.name})")
        return GCPSnapshotOperation(operation, volume_name)

    def delete_volume(self, volume_name: str) -> None:
        request = compute_v1.DeleteDiskRequest(
            project=self.project,
            zone=self.zone,
            disk=volume_name,
            request_id=str(uuid.uuid4()),
        )
        try:
            self.disks_client.delete(request=request)
        except gapi_exceptions.GoogleAPICallError as e:
            raise _translate_error(e, "delete_volume", volume_name) from e
