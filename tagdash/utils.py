"""Utility functions."""

from __future__ import annotations

import random
import re
import time
import uuid
from datetime import datetime, timezone
from typing import Optional, Union

from dateutil import parser as dtparser


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def normalize_ws(s: str) -> str:
    return re.sub(r"\s+", " ", s).strip()


def new_row_id() -> str:
    return uuid.uuid4().hex


def new_tweet_id(rng: Optional[random.Random] = None) -> str:
    # tweet_<epoch ms>_<9 chars>, same shape the submit form produces
    rng = rng or random.Random()
    suffix = "".join(rng.choice("abcdefghijklmnopqrstuvwxyz0123456789") for _ in range(9))
    return f"tweet_{int(time.time() * 1000)}_{suffix}"


def parse_timestamp(value: Union[str, datetime]) -> datetime:
    """Parse an ISO-ish timestamp or datetime into an aware UTC datetime.

    Naive values are taken to be UTC already.
    """
    dt = value if isinstance(value, datetime) else dtparser.parse(value)
    return dt.astimezone(timezone.utc) if dt.tzinfo else dt.replace(tzinfo=timezone.utc)


def hour_window(value: Union[str, datetime]) -> str:
    """Resolve a timestamp to the canonical key of its containing hour.

    Every timestamp inside the same UTC hour maps to the identical string,
    e.g. ``2026-10-19T14:00:00+00:00``, so counter lookups can match on it
    exactly.
    """
    dt = parse_timestamp(value)
    return dt.replace(minute=0, second=0, microsecond=0).isoformat()
