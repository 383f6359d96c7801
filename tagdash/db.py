"""Database schema, connections and the row stores used by the aggregation job."""

from __future__ import annotations

import json
import os
import sqlite3
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional

from flask import g

from . import utils
from .errors import Conflict, JobStateError, NotFound, StoreUnavailable

DB_PATH = os.environ.get("TAGDASH_DB", "tag_dash.sqlite3")

JOB_RUNNING = "running"
JOB_COMPLETED = "completed"
JOB_FAILED = "failed"

SCHEMA_SQL = """
PRAGMA journal_mode=WAL;
PRAGMA synchronous=NORMAL;

CREATE TABLE IF NOT EXISTS tweets (
  id TEXT PRIMARY KEY,
  tweet_id TEXT NOT NULL UNIQUE,
  user_name TEXT NOT NULL,
  content TEXT NOT NULL,
  hashtags TEXT NOT NULL DEFAULT '[]',
  created_at TEXT NOT NULL,
  processed INTEGER NOT NULL DEFAULT 0
);

CREATE INDEX IF NOT EXISTS idx_tweets_unprocessed ON tweets(processed, created_at);

CREATE TABLE IF NOT EXISTS hashtag_counts (
  id TEXT PRIMARY KEY,
  hashtag TEXT NOT NULL,
  hour_window TEXT NOT NULL,
  count INTEGER NOT NULL CHECK (count >= 0),
  created_at TEXT NOT NULL,
  UNIQUE (hashtag, hour_window)
);

CREATE INDEX IF NOT EXISTS idx_hashtag_counts_count ON hashtag_counts(count);

CREATE TABLE IF NOT EXISTS aggregation_jobs (
  id TEXT PRIMARY KEY,
  job_type TEXT NOT NULL,
  status TEXT NOT NULL CHECK (status IN ('running', 'completed', 'failed')),
  tweets_processed INTEGER NOT NULL DEFAULT 0,
  hashtags_extracted INTEGER NOT NULL DEFAULT 0,
  error_message TEXT,
  started_at TEXT NOT NULL,
  completed_at TEXT
);

CREATE INDEX IF NOT EXISTS idx_jobs_started ON aggregation_jobs(started_at);
"""


def connect(path: Optional[str] = None) -> sqlite3.Connection:
    conn = sqlite3.connect(path or DB_PATH, check_same_thread=False, timeout=30.0)
    conn.row_factory = sqlite3.Row
    # Ensure WAL mode is enabled for better concurrency
    conn.execute("PRAGMA journal_mode=WAL")
    return conn


def get_db() -> sqlite3.Connection:
    if "db" not in g:
        g.db = connect()
    return g.db


def init_db() -> None:
    conn = connect()
    try:
        conn.executescript(SCHEMA_SQL)
        conn.commit()
    finally:
        conn.close()


@contextmanager
def _store_call(what: str) -> Iterator[None]:
    """Translate sqlite failures into StoreUnavailable."""
    try:
        yield
    except (Conflict, NotFound, JobStateError):
        raise
    except sqlite3.Error as e:
        raise StoreUnavailable(f"{what}: {type(e).__name__}: {e}") from e


def _tweet_from_row(row: sqlite3.Row) -> Dict[str, Any]:
    tweet = dict(row)
    tweet["hashtags"] = json.loads(tweet["hashtags"] or "[]")
    tweet["processed"] = bool(tweet["processed"])
    return tweet


class TweetStore:
    """Raw tweet rows. Every write commits immediately."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        self.conn = conn

    def insert(self, tweet_id: str, user_name: str, content: str,
               hashtags: Optional[List[str]] = None, created_at: Optional[str] = None,
               processed: bool = False) -> tuple[str, bool]:
        """Insert a tweet unless its external ``tweet_id`` already exists.

        Returns ``(row_id, created)``.
        """
        row_id = utils.new_row_id()
        with _store_call("insert tweet"):
            cur = self.conn.execute(
                """INSERT OR IGNORE INTO tweets(id,tweet_id,user_name,content,hashtags,created_at,processed)
                   VALUES(?,?,?,?,?,?,?)""",
                (
                    row_id,
                    tweet_id,
                    user_name,
                    content,
                    json.dumps(list(hashtags or [])),
                    created_at or utils.utcnow().isoformat(),
                    1 if processed else 0,
                ),
            )
            self.conn.commit()
            if cur.rowcount:
                return row_id, True
            existing = self.conn.execute(
                "SELECT id FROM tweets WHERE tweet_id = ?", (tweet_id,)
            ).fetchone()
        return existing["id"], False

    def get(self, record_id: str) -> Dict[str, Any]:
        with _store_call("get tweet"):
            row = self.conn.execute("SELECT * FROM tweets WHERE id = ?", (record_id,)).fetchone()
        if row is None:
            raise NotFound(f"tweet {record_id}")
        return _tweet_from_row(row)

    def fetch_unprocessed(self, limit: int) -> List[Dict[str, Any]]:
        """Oldest unprocessed tweets first, at most ``limit`` of them."""
        with _store_call("fetch unprocessed tweets"):
            rows = self.conn.execute(
                """SELECT * FROM tweets WHERE processed = 0
                   ORDER BY created_at ASC, rowid ASC
                   LIMIT ?""",
                (limit,),
            ).fetchall()
        return [_tweet_from_row(r) for r in rows]

    def update_tags(self, record_id: str, tags: List[str]) -> None:
        with _store_call("update tweet hashtags"):
            self.conn.execute(
                "UPDATE tweets SET hashtags = ? WHERE id = ?",
                (json.dumps(list(tags)), record_id),
            )
            self.conn.commit()

    def mark_processed(self, record_id: str) -> None:
        with _store_call("mark tweet processed"):
            self.conn.execute("UPDATE tweets SET processed = 1 WHERE id = ?", (record_id,))
            self.conn.commit()

    def backlog(self) -> Dict[str, int]:
        with _store_call("count tweets"):
            row = self.conn.execute(
                """SELECT COUNT(*) AS total,
                          COALESCE(SUM(CASE WHEN processed = 0 THEN 1 ELSE 0 END), 0) AS unprocessed
                   FROM tweets"""
            ).fetchone()
        return {"total": row["total"], "unprocessed": row["unprocessed"]}

    def recent(self, limit: int = 20) -> List[Dict[str, Any]]:
        with _store_call("list tweets"):
            rows = self.conn.execute(
                "SELECT * FROM tweets ORDER BY created_at DESC, rowid DESC LIMIT ?", (limit,)
            ).fetchall()
        return [_tweet_from_row(r) for r in rows]


class CounterStore:
    """Per (hashtag, hour window) running totals."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        self.conn = conn

    def create_counter(self, tag: str, window_key: str, count: int) -> None:
        with _store_call("create counter"):
            try:
                self.conn.execute(
                    """INSERT INTO hashtag_counts(id,hashtag,hour_window,count,created_at)
                       VALUES(?,?,?,?,?)""",
                    (utils.new_row_id(), tag, window_key, count, utils.utcnow().isoformat()),
                )
            except sqlite3.IntegrityError as e:
                self.conn.rollback()
                if "UNIQUE" not in str(e):
                    raise
                raise Conflict(f"counter ({tag}, {window_key}) exists") from e
            self.conn.commit()

    def read_counter(self, tag: str, window_key: str) -> int:
        with _store_call("read counter"):
            row = self.conn.execute(
                "SELECT count FROM hashtag_counts WHERE hashtag = ? AND hour_window = ?",
                (tag, window_key),
            ).fetchone()
        if row is None:
            raise NotFound(f"counter ({tag}, {window_key})")
        return row["count"]

    def update_counter(self, tag: str, window_key: str, new_count: int) -> None:
        with _store_call("update counter"):
            self.conn.execute(
                "UPDATE hashtag_counts SET count = ? WHERE hashtag = ? AND hour_window = ?",
                (new_count, tag, window_key),
            )
            self.conn.commit()

    def add_to_counter(self, tag: str, window_key: str, amount: int) -> None:
        """Insert the counter or add to the stored count in one statement."""
        with _store_call("add to counter"):
            self.conn.execute(
                """INSERT INTO hashtag_counts(id,hashtag,hour_window,count,created_at)
                   VALUES(?,?,?,?,?)
                   ON CONFLICT(hashtag, hour_window) DO UPDATE SET count = count + excluded.count""",
                (utils.new_row_id(), tag, window_key, amount, utils.utcnow().isoformat()),
            )
            self.conn.commit()

    def top(self, limit: int = 20, window_key: Optional[str] = None) -> List[Dict[str, Any]]:
        sql = "SELECT hashtag, hour_window, count, created_at FROM hashtag_counts"
        params: List[Any] = []
        if window_key:
            sql += " WHERE hour_window = ?"
            params.append(window_key)
        sql += " ORDER BY count DESC, hashtag ASC LIMIT ?"
        params.append(limit)
        with _store_call("list counters"):
            rows = self.conn.execute(sql, params).fetchall()
        return [dict(r) for r in rows]


class JobStore:
    """Aggregation job records."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        self.conn = conn

    def create_job(self, kind: str) -> str:
        job_id = utils.new_row_id()
        with _store_call("create job"):
            self.conn.execute(
                """INSERT INTO aggregation_jobs(id,job_type,status,started_at)
                   VALUES(?,?,?,?)""",
                (job_id, kind, JOB_RUNNING, utils.utcnow().isoformat()),
            )
            self.conn.commit()
        return job_id

    def _finish(self, job_id: str, status: str, tweets_processed: int,
                hashtags_extracted: int, error_message: Optional[str]) -> None:
        with _store_call(f"mark job {status}"):
            cur = self.conn.execute(
                """UPDATE aggregation_jobs
                   SET status = ?, tweets_processed = ?, hashtags_extracted = ?,
                       error_message = ?, completed_at = ?
                   WHERE id = ? AND status = ?""",
                (status, tweets_processed, hashtags_extracted, error_message,
                 utils.utcnow().isoformat(), job_id, JOB_RUNNING),
            )
            self.conn.commit()
            if cur.rowcount == 0:
                row = self.conn.execute(
                    "SELECT status FROM aggregation_jobs WHERE id = ?", (job_id,)
                ).fetchone()
                if row is None:
                    raise NotFound(f"job {job_id}")
                raise JobStateError(f"job {job_id} is already {row['status']}")

    def complete_job(self, job_id: str, tweets_processed: int, hashtags_extracted: int) -> None:
        self._finish(job_id, JOB_COMPLETED, tweets_processed, hashtags_extracted, None)

    def fail_job(self, job_id: str, message: str, tweets_processed: int = 0,
                 hashtags_extracted: int = 0) -> None:
        self._finish(job_id, JOB_FAILED, tweets_processed, hashtags_extracted,
                     message or "unknown error")

    def get_job(self, job_id: str) -> Dict[str, Any]:
        with _store_call("get job"):
            row = self.conn.execute(
                "SELECT * FROM aggregation_jobs WHERE id = ?", (job_id,)
            ).fetchone()
        if row is None:
            raise NotFound(f"job {job_id}")
        return dict(row)

    def recent_jobs(self, limit: int = 10) -> List[Dict[str, Any]]:
        with _store_call("list jobs"):
            rows = self.conn.execute(
                "SELECT * FROM aggregation_jobs ORDER BY started_at DESC, rowid DESC LIMIT ?",
                (limit,),
            ).fetchall()
        return [dict(r) for r in rows]
