"""Signals sent after aggregation results are committed.

Receivers are optional; nothing in the job depends on anyone listening.
"""

from __future__ import annotations

import logging
from typing import Any

from blinker import Namespace, Signal

logger = logging.getLogger(__name__)

_signals = Namespace()

# sender: the WindowMerger; kwargs: window, counts
counts_merged = _signals.signal("counts-merged")

# sender: the JobTracker; kwargs: job_id, status
job_finished = _signals.signal("job-finished")


def publish(signal: Signal, sender: Any, **kwargs: Any) -> None:
    """Send ``signal``, logging receiver errors instead of raising them.

    The work being announced is already committed by the time this runs.
    """
    try:
        signal.send(sender, **kwargs)
    except Exception:
        logger.exception("Receiver of %s signal failed", signal.name)
