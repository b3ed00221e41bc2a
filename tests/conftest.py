"""
Shared pytest fixtures for the gke-disk-cleanup test suite

Provides:
- VolumeRecord factory
- Mock disk service and snapshot operations
- Fixed clock
"""

from datetime import UTC, datetime, timedelta
from unittest.mock import MagicMock

import pytest

from gke_disk_cleanup.providers.base import DiskService, SnapshotOperation, VolumeRecord


FIXED_NOW = datetime(2024, 6, 1, 12, 0, 0, tzinfo=UTC)


def rfc3339(dt: datetime) -> str:
    return dt.astimezone(UTC).strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3] + "-00:00"


# ============================================================================
# Clock Fixtures
# ============================================================================

@pytest.fixture
def fixed_now():
    """A fixed 'now' used by decision and mark tests."""
    return FIXED_NOW


@pytest.fixture
def attached_days_ago(fixed_now):
    """Factory returning an RFC 3339 last-attach time N days before fixed_now."""
    def _attached(days: float) -> str:
        return rfc3339(fixed_now - timedelta(days=days))
    return _attached


# ============================================================================
# Volume Fixtures
# ============================================================================

@pytest.fixture
def volume_factory():
    """Factory for VolumeRecord values with sensible defaults."""
    counter = {"n": 0}

    def _create(
        name: str | None = None,
        last_attached_at: str | None = None,
        labels: dict | None = None,
        **overrides,
    ) -> VolumeRecord:
        counter["n"] += 1
        fields = {
            "volume_id": str(1000 + counter["n"]),
            "name": name or f"pvc-{counter['n']:04d}",
            "size_gb": 100,
            "last_attached_at": last_attached_at,
            "labels": labels,
            "label_fingerprint": f"fp-{counter['n']}",
            "zone": "us-east1-a",
        }
        fields.update(overrides)
        return VolumeRecord(**fields)

    return _create


@pytest.fixture
def marked_labels():
    return {"goog-gke-volume": "", "marked-for-deletion": "true"}


# ============================================================================
# Disk Service Fixtures
# ============================================================================

@pytest.fixture
def mock_snapshot_operation():
    """Snapshot operation whose wait() succeeds immediately."""
    operation = MagicMock(spec=SnapshotOperation)
    operation.name = "operation-123"
    return operation


@pytest.fixture
def mock_disk_service(mock_snapshot_operation):
    """
    Mock DiskService.

    Set `mock_disk_service.volumes` to the list returned by list_volumes.
    Every mutating call is also recorded in `mock_disk_service.calls` in order.
    """
    service = MagicMock(spec=DiskService)
    service.name = "mock"
    service.volumes = []
    service.calls = []

    service.list_volumes.side_effect = lambda filter_expr="": iter(service.volumes)

    def _record(call_name):
        def _side_effect(*args, **kwargs):
            service.calls.append((call_name, args))
            if call_name == "create_snapshot":
                return mock_snapshot_operation
            return None
        return _side_effect

    service.set_labels.side_effect = _record("set_labels")
    service.create_snapshot.side_effect = _record("create_snapshot")
    service.delete_volume.side_effect = _record("delete_volume")

    mock_snapshot_operation.wait.side_effect = (
        lambda *args, **kwargs: service.calls.append(("wait_snapshot", ()))
    )
    return service
