"""
Runtime settings.

Defaults come from environment variables; command-line flags override them.

Environment variables:
    CLOUD_PROVIDER: Disk service backend (default: gcp)
    GCP_PROJECT: Project ID (default: default)
    GCP_ZONE: Zone (default: us-east1-a)
    DISK_CLEANUP_DRY_RUN: Report without mutating anything (default: true)
    DISK_CLEANUP_VERBOSE: Debug logging (default: false)
    DISK_CLEANUP_WORKERS: Volumes processed concurrently (default: 1)
    DISK_CLEANUP_SNAPSHOT_POLL_SECONDS: Snapshot status poll interval (default: 5)
    DISK_CLEANUP_SNAPSHOT_TIMEOUT_SECONDS: Snapshot wait limit (default: unset, wait forever)
"""

import os
from collections.abc import Mapping
from dataclasses import dataclass

from .providers.base import DEFAULT_POLL_INTERVAL_SECONDS

TRUE_VALUES = {"1", "true", "yes", "on"}
FALSE_VALUES = {"0", "false", "no", "off"}


def parse_bool(name: str, value: str) -> bool:
    normalized = value.strip().lower()
    if normalized in TRUE_VALUES:
        return True
    if normalized in FALSE_VALUES:
        return False
    raise ValueError(f"{name} must be a boolean (true/false), got {value!r}")


def _parse_int(name: str, value: str, minimum: int) -> int:
    try:
        parsed = int(value)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {value!r}") from None
    if parsed < minimum:
        raise ValueError(f"{name} must be at least {minimum}, got {parsed}")
    return parsed


def _parse_seconds(name: str, value: str) -> float:
    try:
        parsed = float(value)
    except ValueError:
        raise ValueError(f"{name} must be a number of seconds, got {value!r}") from None
    if parsed <= 0:
        raise ValueError(f"{name} must be positive, got {parsed}")
    return parsed


@dataclass
class Settings:
    """Settings shared by both sub-commands."""
    provider: str = "gcp"
    project_id: str = "default"
    zone: str = "us-east1-a"
    dry_run: bool = True
    verbose: bool = False
    workers: int = 1
    poll_interval: float = DEFAULT_POLL_INTERVAL_SECONDS
    snapshot_timeout: float | None = None

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "Settings":
        """
        Build settings from environment variables.

        Raises:
            ValueError: If a variable is set to an invalid value
        """
        env = os.environ if environ is None else environ

        timeout = env.get("DISK_CLEANUP_SNAPSHOT_TIMEOUT_SECONDS", "")
        return cls(
            provider=env.get("CLOUD_PROVIDER", "gcp"),
            project_id=env.get("GCP_PROJECT", "default"),
            zone=env.get("GCP_ZONE", "us-east1-a"),
            dry_run=parse_bool("DISK_CLEANUP_DRY_RUN", env.get("DISK_CLEANUP_DRY_RUN", "true")),
            verbose=parse_bool("DISK_CLEANUP_VERBOSE", env.get("DISK_CLEANUP_VERBOSE", "false")),
            workers=_parse_int("DISK_CLEANUP_WORKERS", env.get("DISK_CLEANUP_WORKERS", "1"), minimum=1),
            poll_interval=_parse_seconds(
                "DISK_CLEANUP_SNAPSHOT_POLL_SECONDS",
                env.get("DISK_CLEANUP_SNAPSHOT_POLL_SECONDS", str(DEFAULT_POLL_INTERVAL_SECONDS)),
            ),
            snapshot_timeout=(
                _parse_seconds("DISK_CLEANUP_SNAPSHOT_TIMEOUT_SECONDS", timeout) if timeout else None
            ),
        )
