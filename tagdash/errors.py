"""Exception types shared by the stores and the aggregation job."""

from __future__ import annotations

from typing import Optional


class TagDashError(Exception):
    pass


class StoreUnavailable(TagDashError):
    """A store call failed; retrying the whole job later is safe."""


class Conflict(TagDashError):
    """A row with the same unique key already exists."""


class NotFound(TagDashError):
    pass


class JobStateError(TagDashError):
    """A terminal update was attempted on a job that is not running."""


class JobTrackerFailure(TagDashError):
    """The job record could not be opened, so no work was attempted."""


class JobTimeout(TagDashError):
    pass


class JobFailed(TagDashError):
    """An aggregation run failed after its job record was created."""

    def __init__(self, job_id: str, message: str, records_processed: int = 0,
                 tags_extracted: int = 0) -> None:
        super().__init__(message)
        self.job_id = job_id
        self.message = message
        self.records_processed = records_processed
        self.tags_extracted = tags_extracted

    def to_dict(self) -> dict:
        return {
            "error": self.message,
            "job_id": self.job_id,
            "tweets_processed": self.records_processed,
            "hashtags_extracted": self.tags_extracted,
        }


class PartialBatchFailure(JobFailed):
    """Failure after at least one tweet was already marked processed.

    Those writes stay committed; the tweets will not be fetched again.
    """


def describe(exc: Optional[BaseException]) -> str:
    if exc is None:
        return ""
    return f"{type(exc).__name__}: {exc}"
