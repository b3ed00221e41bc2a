"""
Disk Service Factory

This module provides a factory function to get the disk service for the
configured cloud provider. The pipelines only depend on the DiskService
interface, so the provider can be swapped without touching them.

Usage:
    from gke_disk_cleanup.providers import get_disk_service

    service = get_disk_service(project="my-project", zone="us-east1-a")
    for volume in service.list_volumes("labels.goog-gke-volume:*"):
        ...

Configuration:
    Set CLOUD_PROVIDER environment variable:
    - 'gcp' (default): Compute Engine persistent disks

    Provider-specific configuration via environment variables:
    - GCP: GCP_PROJECT, GCP_ZONE, GOOGLE_APPLICATION_CREDENTIALS
"""

import logging
import os

from .base import (
    DiskService,
    FingerprintConflictError,
    OperationCancelledError,
    OperationFailedError,
    OperationTimeoutError,
    ProviderError,
    SnapshotOperation,
    SnapshotSpec,
    VolumeNotFoundError,
    VolumeRecord,
)

logger = logging.getLogger(__name__)


def get_disk_service(
    provider_name: str | None = None,
    project: str | None = None,
    zone: str | None = None,
    **kwargs
) -> DiskService:
    """
    Get a disk service for the configured provider.

    Args:
        provider_name: Override the provider (defaults to CLOUD_PROVIDER env var)
        project: Project ID (defaults to GCP_PROJECT env var)
        zone: Zone (defaults to GCP_ZONE env var)
        **kwargs: Provider-specific options (e.g. disks_client for tests)

    Returns:
        DiskService instance

    Raises:
        ValueError: If the provider name is not recognized or required
            configuration is missing
    """
    name = provider_name or os.environ.get("CLOUD_PROVIDER", "gcp")
    name = name.lower()

    logger.debug(f"Initializing disk service for provider: {name}")

    if name == "gcp":
        from .gcp import GCPDiskService
        project = project or os.environ.get("GCP_PROJECT", "")
        zone = zone or os.environ.get("GCP_ZONE", "us-east1-a")
        if not project:
            raise ValueError(
                "GCP_PROJECT environment variable or --project-id must be set for GCP provider"
            )
        return GCPDiskService(project=project, zone=zone, disks_client=kwargs.get("disks_client"))

    raise ValueError(
        f"Unknown cloud provider: {name}. "
        f"Valid options: gcp"
    )


__all__ = [
    # Factory
    "get_disk_service",
    # Interfaces
    "DiskService",
    "SnapshotOperation",
    # Data classes
    "VolumeRecord",
    "SnapshotSpec",
    # Exceptions
    "ProviderError",
    "FingerprintConflictError",
    "VolumeNotFoundError",
    "OperationFailedError",
    "OperationCancelledError",
    "OperationTimeoutError",
]
