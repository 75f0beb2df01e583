"""Timestamp helpers shared by the persistence layer and the services."""
from datetime import datetime, timezone


def utc_now() -> datetime:
    """
    Current UTC time as a naive datetime.

    SQLite drops tzinfo on the way back, so every timestamp the pipeline
    writes is naive UTC to keep arithmetic on stored values consistent.
    """
    return datetime.now(timezone.utc).replace(tzinfo=None)
