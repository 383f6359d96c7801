"""Merge a run's local hashtag counts into the per-window counters."""

from __future__ import annotations

import logging
import os
from typing import Callable, Mapping, Optional

from . import db, signals
from .errors import Conflict

logger = logging.getLogger(__name__)

ATOMIC_MERGE = os.environ.get("TAGDASH_ATOMIC_MERGE", "1") not in ("0", "false", "no")


class WindowMerger:
    """Adds local counts onto stored (hashtag, hour window) totals.

    With ``atomic`` set, each tag is a single insert-or-add statement, so
    two overlapping jobs can never lose each other's increments. Without
    it the older create / read / update sequence is used, which is racy
    under concurrent writers.
    """

    def __init__(self, store: db.CounterStore, atomic: Optional[bool] = None) -> None:
        self.store = store
        self.atomic = ATOMIC_MERGE if atomic is None else atomic

    def merge(self, local_counts: Mapping[str, int], window_key: str,
              on_merged: Optional[Callable[[str], None]] = None) -> None:
        for tag in sorted(local_counts):
            amount = local_counts[tag]
            if not isinstance(amount, int) or amount <= 0:
                raise ValueError(f"count for {tag!r} must be a positive int, got {amount!r}")
            if self.atomic:
                self.store.add_to_counter(tag, window_key, amount)
            else:
                self._create_or_add(tag, window_key, amount)
            if on_merged is not None:
                on_merged(tag)

        logger.info("Merged %d hashtags into window %s", len(local_counts), window_key)
        if local_counts:
            signals.publish(signals.counts_merged, self, window=window_key, counts=dict(local_counts))

    def _create_or_add(self, tag: str, window_key: str, amount: int) -> None:
        try:
            self.store.create_counter(tag, window_key, amount)
        except Conflict:
            current = self.store.read_counter(tag, window_key)
            self.store.update_counter(tag, window_key, current + amount)
