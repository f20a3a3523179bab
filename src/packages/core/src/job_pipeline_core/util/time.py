"""Time utilities."""
from datetime import datetime, timedelta, timezone

# Fixed width so stored timestamps compare correctly as strings.
ISO_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"


def utc_now() -> datetime:
    """Get the current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def to_iso(dt: datetime) -> str:
    """Format a datetime as a fixed-width UTC ISO string."""
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc)
    return dt.strftime(ISO_FORMAT)


def utc_now_iso() -> str:
    """Get current UTC time in ISO format."""
    return to_iso(utc_now())


def iso_after(dt: datetime, seconds: float) -> str:
    """ISO timestamp `seconds` after `dt`."""
    return to_iso(dt + timedelta(seconds=seconds))
