"""Worker settings."""
import os


def get_worker_count() -> int:
    """Number of worker threads in the pool."""
    return int(os.environ.get("WORKER_COUNT", "2"))


def get_lease_seconds() -> float:
    """How long a claim stays valid without renewal."""
    return float(os.environ.get("LEASE_SECONDS", "60"))


def get_poll_interval() -> float:
    """Idle sleep between claim attempts."""
    return float(os.environ.get("POLL_INTERVAL_SECONDS", "1.0"))


def get_lease_check_interval() -> float:
    """How often expired leases are reaped."""
    return float(os.environ.get("LEASE_CHECK_INTERVAL_SECONDS", "10"))


def get_retention_days() -> int:
    """Terminal jobs older than this are deleted."""
    return int(os.environ.get("RETENTION_DAYS", "30"))
