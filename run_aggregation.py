#!/usr/bin/env python3
"""
Run one hashtag aggregation job and print its summary as JSON.

Exits non-zero when the job fails; the failed job record keeps the error.
"""

import json
import logging
import os
import sys

from tagdash import aggregate, db
from tagdash.errors import JobFailed, JobTrackerFailure


def main() -> int:
    logging.basicConfig(
        level=os.environ.get("TAGDASH_LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    db.init_db()
    try:
        summary = aggregate.run_once()
    except JobFailed as ex:
        print(json.dumps(ex.to_dict(), indent=2))
        return 1
    except JobTrackerFailure as ex:
        print(json.dumps({"error": str(ex), "job_id": None}, indent=2))
        return 2

    print(json.dumps(summary, indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
