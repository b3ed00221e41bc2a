"""
Unit tests for the cleanup pipeline.
"""
import threading

import pytest

from gke_disk_cleanup.cleanup import cleanup_volume, run_cleanup, snapshot_name_for, snapshot_spec_for
from gke_disk_cleanup.labels import FILTER_MARKED_FOR_DELETION, LabelInvariantError
from gke_disk_cleanup.models import CleanupAction, Diagnostic, OutcomeKind
from gke_disk_cleanup.providers.base import (
    OperationCancelledError,
    OperationFailedError,
    ProviderError,
    VolumeNotFoundError,
)


def _steps(outcomes):
    return [(o.action, o.kind) for o in outcomes]


# ============================================================================
# Snapshot Spec
# ============================================================================

class TestSnapshotSpec:
    """Safety snapshot naming and placement."""

    def test_name_and_labels(self, volume_factory):
        volume = volume_factory(name="pvc-abc")

        spec = snapshot_spec_for(volume)

        assert spec.name == "pvc-abc-snapshot"
        assert spec.labels == {"created-by": "gke-disk-cleanup", "source-disk": "pvc-abc"}
        assert spec.storage_locations == ["us-east1"]

    def test_regional_disk_uses_region(self, volume_factory):
        volume = volume_factory(zone="europe-west4-b", region="europe-west4")

        assert snapshot_spec_for(volume).storage_locations == ["europe-west4"]

    def test_long_names_fit_resource_limit(self):
        """Names are truncated to 63 characters keeping the suffix."""
        name = snapshot_name_for("pvc-" + "a" * 70)

        assert len(name) == 63
        assert name.endswith("-snapshot")


# ============================================================================
# Ordering
# ============================================================================

class TestCleanupOrdering:
    """Snapshot completes before delete."""

    def test_snapshot_then_delete(self, mock_disk_service, mock_snapshot_operation, volume_factory, marked_labels):
        volume = volume_factory(name="pvc-1", labels=marked_labels)
        mock_disk_service.volumes = [volume]

        outcomes = list(run_cleanup(mock_disk_service, do_snapshot=True, dry_run=False, poll_interval=0.5))

        assert [name for name, _ in mock_disk_service.calls] == ["create_snapshot", "wait_snapshot", "delete_volume"]
        assert _steps(outcomes) == [
            (CleanupAction.SNAPSHOT, OutcomeKind.APPLIED),
            (CleanupAction.DELETE, OutcomeKind.APPLIED),
        ]
        assert outcomes[0].detail == "pvc-1-snapshot"
        mock_snapshot_operation.wait.assert_called_once_with(cancel=None, poll_interval=0.5, timeout=None)
        mock_disk_service.delete_volume.assert_called_once_with("pvc-1")

    def test_lists_marked_volumes(self, mock_disk_service):
        list(run_cleanup(mock_disk_service, True, True))

        mock_disk_service.list_volumes.assert_called_once_with(FILTER_MARKED_FOR_DELETION)

    def test_without_snapshot(self, mock_disk_service, volume_factory, marked_labels):
        mock_disk_service.volumes = [volume_factory(labels=marked_labels)]

        outcomes = list(run_cleanup(mock_disk_service, do_snapshot=False, dry_run=False))

        assert _steps(outcomes) == [(CleanupAction.DELETE, OutcomeKind.APPLIED)]
        mock_disk_service.create_snapshot.assert_not_called()

    def test_failed_snapshot_prevents_delete(self, mock_disk_service, mock_snapshot_operation,
                                             volume_factory, marked_labels):
        """A snapshot that finishes in error leaves the volume in place."""
        mock_disk_service.volumes = [volume_factory(labels=marked_labels), volume_factory(labels=marked_labels)]
        failure = OperationFailedError("quota exceeded", "mock", "wait_snapshot")
        mock_snapshot_operation.wait.side_effect = [failure, None]

        outcomes = list(run_cleanup(mock_disk_service, do_snapshot=True, dry_run=False))

        assert _steps(outcomes) == [
            (CleanupAction.SNAPSHOT, OutcomeKind.FAILED),
            (CleanupAction.SNAPSHOT, OutcomeKind.APPLIED),
            (CleanupAction.DELETE, OutcomeKind.APPLIED),
        ]
        assert outcomes[0].error is failure
        assert mock_disk_service.delete_volume.call_count == 1

    def test_rejected_snapshot_request_prevents_delete(self, mock_disk_service, volume_factory, marked_labels):
        mock_disk_service.volumes = [volume_factory(labels=marked_labels)]
        mock_disk_service.create_snapshot.side_effect = ProviderError("already exists", "mock", "create_snapshot")

        outcomes = list(run_cleanup(mock_disk_service, do_snapshot=True, dry_run=False))

        assert _steps(outcomes) == [(CleanupAction.SNAPSHOT, OutcomeKind.FAILED)]
        mock_disk_service.delete_volume.assert_not_called()

    def test_delete_failure_continues(self, mock_disk_service, volume_factory, marked_labels):
        mock_disk_service.volumes = [volume_factory(labels=marked_labels), volume_factory(labels=marked_labels)]
        mock_disk_service.delete_volume.side_effect = [VolumeNotFoundError("gone", "mock", "delete_volume"), None]

        outcomes = list(run_cleanup(mock_disk_service, do_snapshot=False, dry_run=False))

        assert _steps(outcomes) == [
            (CleanupAction.DELETE, OutcomeKind.FAILED),
            (CleanupAction.DELETE, OutcomeKind.APPLIED),
        ]


# ============================================================================
# Label Invariant
# ============================================================================

class TestCleanupInvariant:
    """Only volumes labeled exactly true are ever deleted."""

    @pytest.mark.parametrize("labels", [
        None,
        {},
        {"marked-for-deletion": "false"},
        {"marked-for-deletion": ""},
        {"marked-for-deletion": "2024-01-01T00:00:00Z"},
    ])
    def test_invariant_violation_never_deletes(self, mock_disk_service, volume_factory, labels):
        """Even if the server filter returns it, a volume not labeled true is untouched."""
        mock_disk_service.volumes = [volume_factory(labels=labels)]

        outcomes = list(run_cleanup(mock_disk_service, do_snapshot=True, dry_run=False))

        assert len(outcomes) == 1
        assert outcomes[0].kind is OutcomeKind.FAILED
        assert isinstance(outcomes[0].error, LabelInvariantError)
        assert mock_disk_service.calls == []


# ============================================================================
# Dry Run
# ============================================================================

class TestCleanupDryRun:
    """Dry-run passes issue no snapshot or delete calls."""

    def test_dry_run_reports_both_steps(self, mock_disk_service, volume_factory, marked_labels):
        mock_disk_service.volumes = [volume_factory(name="pvc-1", labels=marked_labels)]

        outcomes = list(run_cleanup(mock_disk_service, do_snapshot=True, dry_run=True))

        assert [(o.action, o.diagnostic) for o in outcomes] == [
            (CleanupAction.SNAPSHOT, Diagnostic.DRY_RUN_SUPPRESSED),
            (CleanupAction.DELETE, Diagnostic.DRY_RUN_SUPPRESSED),
        ]
        assert outcomes[0].detail == "pvc-1-snapshot"
        assert mock_disk_service.calls == []


# ============================================================================
# Cancellation
# ============================================================================

class TestCleanupCancellation:
    """Cancel event stops the pass promptly."""

    def test_cancel_before_start_processes_nothing(self, mock_disk_service, volume_factory, marked_labels):
        mock_disk_service.volumes = [volume_factory(labels=marked_labels)]
        cancel = threading.Event()
        cancel.set()

        outcomes = list(run_cleanup(mock_disk_service, True, False, cancel=cancel))

        assert outcomes == []
        assert mock_disk_service.calls == []

    def test_cancelled_snapshot_wait_prevents_delete(self, mock_disk_service, mock_snapshot_operation,
                                                      volume_factory, marked_labels):
        """Cancellation during the wait fails the snapshot and stops fetching."""
        mock_disk_service.volumes = [volume_factory(labels=marked_labels), volume_factory(labels=marked_labels)]
        cancel = threading.Event()

        def _cancelled_wait(cancel=None, **kwargs):
            cancel.set()
            raise OperationCancelledError("stopped waiting", "mock", "wait")

        mock_snapshot_operation.wait.side_effect = _cancelled_wait

        outcomes = list(run_cleanup(mock_disk_service, True, False, cancel=cancel))

        assert _steps(outcomes) == [(CleanupAction.SNAPSHOT, OutcomeKind.FAILED)]
        mock_disk_service.delete_volume.assert_not_called()
        assert mock_disk_service.create_snapshot.call_count == 1

    def test_cancel_before_delete(self, mock_disk_service, volume_factory, marked_labels):
        """A cancel observed after the snapshot skips the delete call."""
        volume = volume_factory(labels=marked_labels)
        cancel = threading.Event()
        cancel.set()

        outcomes = cleanup_volume(mock_disk_service, volume, do_snapshot=False, dry_run=False, cancel=cancel)

        assert _steps(outcomes) == [(CleanupAction.DELETE, OutcomeKind.FAILED)]
        assert isinstance(outcomes[0].error, OperationCancelledError)
        mock_disk_service.delete_volume.assert_not_called()
