"""Clock helpers shared by the record models."""

import time
from datetime import datetime, timezone


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def epoch_now() -> float:
    return time.time()


def from_epoch(timestamp: float) -> datetime:
    return datetime.fromtimestamp(timestamp, tz=timezone.utc)
