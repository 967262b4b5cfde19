import logging
import secrets
import uuid
from datetime import datetime, timedelta, UTC

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def make_id(prefix: str) -> str:
    """Generate a unique ID with a given prefix."""
    return f"{prefix}_{uuid.uuid4()}"


def make_token(prefix: str = "sess") -> str:
    """Generate an unguessable session token."""
    return f"{prefix}_{secrets.token_urlsafe(32)}"


def time_now() -> str:
    """Return the current time in ISO format (UTC, fixed microsecond precision).

    The fixed width keeps lexical order equal to chronological order, which the
    memo listing relies on when sorting by updated time.
    """
    return datetime.now(UTC).isoformat(timespec="microseconds")


def time_after(hours: float, start: str | None = None) -> str:
    """Return the ISO timestamp `hours` after `start` (default: now)."""
    base = datetime.fromisoformat(start) if start else datetime.now(UTC)
    return (base + timedelta(hours=hours)).isoformat(timespec="microseconds")


def next_tick(previous: str, candidate: str) -> str:
    """Return `candidate`, or one microsecond past `previous` if the clock did not advance."""
    if candidate > previous:
        return candidate
    bumped = datetime.fromisoformat(previous) + timedelta(microseconds=1)
    return bumped.isoformat(timespec="microseconds")


def setup_logging(level: str = "INFO") -> None:
    """Configure root logging once for the API process."""
    root = logging.getLogger()
    if root.handlers:
        root.setLevel(level.upper())
        return
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT)
