"""Job lifecycle tracking: running -> completed | failed."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from . import db, signals

logger = logging.getLogger(__name__)


class JobTracker:
    """Opens and closes aggregation job records.

    Each job gets exactly one terminal update. Completing or failing a job
    that is no longer running raises ``JobStateError``; a retry is always a
    new job.
    """

    def __init__(self, store: db.JobStore) -> None:
        self.store = store

    def start(self, kind: str) -> str:
        job_id = self.store.create_job(kind)
        logger.info("Started %s job %s", kind, job_id)
        return job_id

    def complete(self, job_id: str, tweets_processed: int, hashtags_extracted: int) -> None:
        self.store.complete_job(job_id, tweets_processed, hashtags_extracted)
        logger.info("Job %s completed: %d tweets, %d hashtags",
                    job_id, tweets_processed, hashtags_extracted)
        signals.publish(signals.job_finished, self, job_id=job_id, status=db.JOB_COMPLETED)

    def fail(self, job_id: str, message: str, tweets_processed: Optional[int] = None,
             hashtags_extracted: Optional[int] = None) -> None:
        self.store.fail_job(job_id, message, tweets_processed or 0, hashtags_extracted or 0)
        logger.warning("Job %s failed: %s", job_id, message)
        signals.publish(signals.job_finished, self, job_id=job_id, status=db.JOB_FAILED)

    def get(self, job_id: str) -> Dict[str, Any]:
        return self.store.get_job(job_id)

    def recent(self, limit: int = 10) -> List[Dict[str, Any]]:
        return self.store.recent_jobs(limit)
