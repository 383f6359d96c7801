"""Batch hashtag aggregation job."""

from __future__ import annotations

import logging
import os
import sqlite3
import threading
import time
from collections import Counter
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, Optional, Tuple

from . import db, rules, utils
from .errors import JobFailed, JobTimeout, JobTrackerFailure, PartialBatchFailure, describe
from .merger import WindowMerger
from .tracker import JobTracker

logger = logging.getLogger(__name__)

JOB_KIND = "hashtag_processing"

BATCH_SIZE = int(os.environ.get("TAGDASH_BATCH_SIZE", "100"))
JOB_DEADLINE_SECONDS = float(os.environ.get("TAGDASH_JOB_DEADLINE", "60"))
AGGREGATE_INTERVAL_SECONDS = int(os.environ.get("TAGDASH_AGGREGATE_INTERVAL", str(5 * 60)))

_last_run_status: Dict[str, Any] = {
    "last_run_utc": None,
    "last_error": None,
    "last_job_id": None,
    "tweets_processed": 0,
}


@dataclass
class JobOutcome:
    job_id: str
    records_processed: int
    tags_extracted: int
    unique_tags: int
    window: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "job_id": self.job_id,
            "tweets_processed": self.records_processed,
            "hashtags_extracted": self.tags_extracted,
            "unique_hashtags": self.unique_tags,
            "hour_window": self.window,
        }


class Aggregator:
    """Runs one aggregation job over a bounded batch of unprocessed tweets.

    Writes are committed as they happen and are never rolled back: a tweet
    marked processed stays processed, and merged counts stay merged. A
    failed run is recorded on its job and reported to the caller; running
    again later picks up whatever is still unprocessed.
    """

    def __init__(self, tweets: db.TweetStore, merger: WindowMerger, tracker: JobTracker,
                 batch_size: int = BATCH_SIZE, deadline_seconds: Optional[float] = JOB_DEADLINE_SECONDS,
                 clock: Callable[[], datetime] = utils.utcnow) -> None:
        self.tweets = tweets
        self.merger = merger
        self.tracker = tracker
        self.batch_size = batch_size
        self.deadline_seconds = deadline_seconds
        self.clock = clock

    def run_job(self) -> JobOutcome:
        try:
            job_id = self.tracker.start(JOB_KIND)
        except Exception as ex:
            raise JobTrackerFailure(f"could not open job record: {describe(ex)}") from ex

        started = time.monotonic()
        processed = 0
        # tags of tweets already marked processed and not yet merged
        pending: Counter = Counter()
        totals: Counter = Counter()
        window: Optional[str] = None

        try:
            batch = self.tweets.fetch_unprocessed(self.batch_size)
            logger.info("Job %s: %d unprocessed tweets", job_id, len(batch))

            if not batch:
                self.tracker.complete(job_id, 0, 0)
                return JobOutcome(job_id=job_id, records_processed=0, tags_extracted=0, unique_tags=0)

            for tweet in batch:
                self._check_deadline(started)
                tags, write_back = rules.tags_for_tweet(tweet["hashtags"], tweet["content"])
                if write_back:
                    self.tweets.update_tags(tweet["id"], tags)
                self.tweets.mark_processed(tweet["id"])
                processed += 1
                pending.update(tags)
                totals.update(tags)

            tags_extracted = sum(totals.values())
            logger.info("Job %s: extracted %d hashtags, %d unique",
                        job_id, tags_extracted, len(totals))

            self._check_deadline(started)
            window = utils.hour_window(self.clock())
            self.merger.merge(dict(pending), window, on_merged=pending.pop)

            self.tracker.complete(job_id, processed, tags_extracted)
            return JobOutcome(
                job_id=job_id,
                records_processed=processed,
                tags_extracted=tags_extracted,
                unique_tags=len(totals),
                window=window,
            )
        except Exception as ex:
            message = describe(ex)
            logger.exception("Job %s failed after %d tweets", job_id, processed)
            self._flush_pending(job_id, pending, window)
            tags_extracted = sum(totals.values())
            try:
                self.tracker.fail(job_id, message, processed, tags_extracted)
            except Exception:
                logger.exception("Could not record failure of job %s", job_id)
            exc_type = PartialBatchFailure if processed else JobFailed
            raise exc_type(job_id, message, processed, tags_extracted) from ex

    def _check_deadline(self, started: float) -> None:
        if self.deadline_seconds is None:
            return
        elapsed = time.monotonic() - started
        if elapsed > self.deadline_seconds:
            raise JobTimeout(f"run exceeded {self.deadline_seconds:g}s deadline ({elapsed:.1f}s)")

    def _flush_pending(self, job_id: str, pending: Counter, window: Optional[str]) -> None:
        # Processed tweets are never fetched again, so their tags go in now or never.
        # One run writes to one window, even if the hour has turned since it was picked.
        if not pending:
            return
        try:
            if window is None:
                window = utils.hour_window(self.clock())
            self.merger.merge(dict(pending), window, on_merged=pending.pop)
        except Exception:
            logger.exception("Job %s: could not merge counts for %d hashtags of processed tweets",
                             job_id, len(pending))


def build_aggregator(conn: sqlite3.Connection, **kwargs: Any) -> Aggregator:
    merger_kwargs = {}
    if "atomic" in kwargs:
        merger_kwargs["atomic"] = kwargs.pop("atomic")
    return Aggregator(
        db.TweetStore(conn),
        WindowMerger(db.CounterStore(conn), **merger_kwargs),
        JobTracker(db.JobStore(conn)),
        **kwargs,
    )


def run_once() -> Dict[str, Any]:
    """Run one aggregation job on a fresh connection and record its status."""
    global _last_run_status
    started = utils.utcnow()
    conn = db.connect()
    try:
        outcome = build_aggregator(conn).run_job()
    except JobFailed as ex:
        _last_run_status = {
            "last_run_utc": started.isoformat(),
            "last_error": ex.message,
            "last_job_id": ex.job_id,
            "tweets_processed": ex.records_processed,
        }
        raise
    except Exception as ex:
        _last_run_status = {
            "last_run_utc": started.isoformat(),
            "last_error": describe(ex),
            "last_job_id": None,
            "tweets_processed": 0,
        }
        raise
    finally:
        conn.close()

    _last_run_status = {
        "last_run_utc": started.isoformat(),
        "last_error": None,
        "last_job_id": outcome.job_id,
        "tweets_processed": outcome.records_processed,
    }
    return outcome.to_dict()


def aggregate_loop(stop_event: threading.Event, interval_seconds: int) -> None:
    while not stop_event.is_set():
        try:
            summary = run_once()
            logger.info("Scheduled aggregation finished: %s", summary)
        except Exception:
            logger.exception("Scheduled aggregation failed")
        stop_event.wait(interval_seconds)


def get_run_status() -> Dict[str, Any]:
    """Get the last run status."""
    return _last_run_status.copy()


def health_check(interval_seconds: int, now: Optional[datetime] = None) -> Tuple[bool, str]:
    """Judge the scheduler from its last run.

    Healthy only when the last run succeeded less than two intervals ago.
    """
    status = get_run_status()
    if status["last_error"]:
        return False, f"Unhealthy: {status['last_error']}"
    if not status["last_run_utc"]:
        return False, "Unhealthy: No aggregation run has completed yet"

    threshold = interval_seconds * 2
    age = ((now or utils.utcnow()) - utils.parse_timestamp(status["last_run_utc"])).total_seconds()
    if age > threshold:
        return False, f"Unhealthy: Last run was {age:.0f}s ago (threshold: {threshold}s)"
    return True, "OK"
