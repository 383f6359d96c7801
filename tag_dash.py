#!/usr/bin/env python3
"""
tag_dash.py: hashtag analytics dashboard backend
- Flask JSON API for tweets, hashtag counts and aggregation jobs
- SQLite persistence
- background hashtag aggregation job on a fixed interval
"""

from __future__ import annotations

import logging
import os

from tagdash import aggregate, db, web

# -----------------------------
# Configuration (environment)
# -----------------------------

APP_TITLE = "Hashtag Analytics Dashboard"
HOST = os.environ.get("TAGDASH_HOST", "127.0.0.1")
PORT = int(os.environ.get("TAGDASH_PORT", "5000"))
LOG_LEVEL = os.environ.get("TAGDASH_LOG_LEVEL", "INFO").upper()


def main() -> None:
    logging.basicConfig(
        level=LOG_LEVEL,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    db.init_db()
    app = web.create_app(APP_TITLE, aggregate.AGGREGATE_INTERVAL_SECONDS)
    app.run(host=HOST, port=PORT, debug=False)


if __name__ == "__main__":
    main()
