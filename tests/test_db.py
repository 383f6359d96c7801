"""Tests for database schema and stores."""

import os
import sqlite3
import tempfile
import unittest

from tagdash import db
from tagdash.errors import Conflict, JobStateError, NotFound, StoreUnavailable

WINDOW = "2026-10-19T14:00:00+00:00"


class StoreTestCase(unittest.TestCase):
    """Temp database per test."""

    def setUp(self):
        """Set up test database."""
        self.temp_db = tempfile.NamedTemporaryFile(delete=False, suffix='.db')
        self.temp_db.close()

        # Override DB_PATH for testing
        self.original_db_path = db.DB_PATH
        db.DB_PATH = self.temp_db.name
        db.init_db()
        self.conn = db.connect()

    def tearDown(self):
        """Clean up test database."""
        self.conn.close()
        db.DB_PATH = self.original_db_path
        try:
            os.unlink(self.temp_db.name)
        except OSError:
            pass


class TestTweetStore(StoreTestCase):
    """Test tweet rows."""

    def test_insert_is_duplicate_safe(self):
        store = db.TweetStore(self.conn)
        row_id, created = store.insert("tweet_1", "alice", "hello #world")
        self.assertTrue(created)

        again_id, created_again = store.insert("tweet_1", "mallory", "different body")
        self.assertFalse(created_again)
        self.assertEqual(again_id, row_id)
        self.assertEqual(store.get(row_id)["user_name"], "alice")

    def test_fetch_unprocessed_oldest_first_and_bounded(self):
        store = db.TweetStore(self.conn)
        store.insert("t3", "u", "third", created_at="2026-10-19T12:00:03+00:00")
        store.insert("t1", "u", "first", created_at="2026-10-19T12:00:01+00:00")
        store.insert("t2", "u", "second", created_at="2026-10-19T12:00:02+00:00")
        store.insert("t0", "u", "done", created_at="2026-10-19T12:00:00+00:00", processed=True)

        batch = store.fetch_unprocessed(2)
        self.assertEqual([t["tweet_id"] for t in batch], ["t1", "t2"])
        self.assertFalse(batch[0]["processed"])
        self.assertEqual(batch[0]["hashtags"], [])

    def test_marked_tweets_never_fetched_again(self):
        store = db.TweetStore(self.conn)
        row_id, _ = store.insert("t1", "u", "first")
        store.mark_processed(row_id)
        store.mark_processed(row_id)

        self.assertEqual(store.fetch_unprocessed(100), [])
        self.assertTrue(store.get(row_id)["processed"])

    def test_update_tags_round_trips_json(self):
        store = db.TweetStore(self.conn)
        row_id, _ = store.insert("t1", "u", "Go #rust #rust")
        store.update_tags(row_id, ["rust", "rust"])
        self.assertEqual(store.get(row_id)["hashtags"], ["rust", "rust"])

    def test_backlog_counts(self):
        store = db.TweetStore(self.conn)
        self.assertEqual(store.backlog(), {"total": 0, "unprocessed": 0})
        row_id, _ = store.insert("t1", "u", "a")
        store.insert("t2", "u", "b")
        store.mark_processed(row_id)
        self.assertEqual(store.backlog(), {"total": 2, "unprocessed": 1})

    def test_get_missing_raises_not_found(self):
        with self.assertRaises(NotFound):
            db.TweetStore(self.conn).get("nope")

    def test_closed_connection_is_store_unavailable(self):
        store = db.TweetStore(self.conn)
        self.conn.close()
        with self.assertRaises(StoreUnavailable) as cm:
            store.fetch_unprocessed(10)
        self.assertIsInstance(cm.exception.__cause__, sqlite3.Error)
        # reopen so tearDown can close it again
        self.conn = db.connect()


class TestCounterStore(StoreTestCase):
    """Test per-window counters."""

    def test_create_conflict_on_duplicate_key(self):
        store = db.CounterStore(self.conn)
        store.create_counter("ai", WINDOW, 3)
        with self.assertRaises(Conflict):
            store.create_counter("ai", WINDOW, 1)
        self.assertEqual(store.read_counter("ai", WINDOW), 3)

        # same tag in another window is a different counter
        store.create_counter("ai", "2026-10-19T15:00:00+00:00", 1)

    def test_read_missing_counter(self):
        with self.assertRaises(NotFound):
            db.CounterStore(self.conn).read_counter("ai", WINDOW)

    def test_update_counter(self):
        store = db.CounterStore(self.conn)
        store.create_counter("ai", WINDOW, 3)
        store.update_counter("ai", WINDOW, 5)
        self.assertEqual(store.read_counter("ai", WINDOW), 5)

    def test_add_to_counter_inserts_then_adds(self):
        store = db.CounterStore(self.conn)
        store.add_to_counter("ai", WINDOW, 3)
        store.add_to_counter("ai", WINDOW, 3)
        self.assertEqual(store.read_counter("ai", WINDOW), 6)
        rows = self.conn.execute("SELECT COUNT(*) FROM hashtag_counts").fetchone()[0]
        self.assertEqual(rows, 1)

    def test_top_orders_by_count_and_filters_window(self):
        store = db.CounterStore(self.conn)
        store.add_to_counter("go", WINDOW, 1)
        store.add_to_counter("rust", WINDOW, 4)
        store.add_to_counter("ai", "2026-10-19T15:00:00+00:00", 9)

        self.assertEqual([c["hashtag"] for c in store.top(10)], ["ai", "rust", "go"])
        self.assertEqual([c["hashtag"] for c in store.top(10, WINDOW)], ["rust", "go"])
        self.assertEqual(len(store.top(1)), 1)


class TestJobStore(StoreTestCase):
    """Test job records and their terminal transitions."""

    def test_create_starts_running(self):
        store = db.JobStore(self.conn)
        job_id = store.create_job("hashtag_processing")
        job = store.get_job(job_id)
        self.assertEqual(job["status"], db.JOB_RUNNING)
        self.assertEqual(job["tweets_processed"], 0)
        self.assertEqual(job["hashtags_extracted"], 0)
        self.assertIsNone(job["error_message"])
        self.assertIsNotNone(job["started_at"])
        self.assertIsNone(job["completed_at"])

    def test_complete_sets_counters_once(self):
        store = db.JobStore(self.conn)
        job_id = store.create_job("hashtag_processing")
        store.complete_job(job_id, 2, 5)

        job = store.get_job(job_id)
        self.assertEqual(job["status"], db.JOB_COMPLETED)
        self.assertEqual((job["tweets_processed"], job["hashtags_extracted"]), (2, 5))
        self.assertIsNotNone(job["completed_at"])

        with self.assertRaises(JobStateError):
            store.complete_job(job_id, 3, 3)
        with self.assertRaises(JobStateError):
            store.fail_job(job_id, "late failure")
        self.assertEqual(store.get_job(job_id)["tweets_processed"], 2)

    def test_fail_records_message(self):
        store = db.JobStore(self.conn)
        job_id = store.create_job("hashtag_processing")
        store.fail_job(job_id, "StoreUnavailable: gone", 1, 2)

        job = store.get_job(job_id)
        self.assertEqual(job["status"], db.JOB_FAILED)
        self.assertEqual(job["error_message"], "StoreUnavailable: gone")
        with self.assertRaises(JobStateError):
            store.complete_job(job_id, 1, 2)

    def test_unknown_job(self):
        with self.assertRaises(NotFound):
            db.JobStore(self.conn).complete_job("missing", 0, 0)

    def test_recent_jobs_newest_first(self):
        store = db.JobStore(self.conn)
        first = store.create_job("hashtag_processing")
        second = store.create_job("hashtag_processing")
        self.assertEqual([j["id"] for j in store.recent_jobs(10)], [second, first])
        self.assertEqual(len(store.recent_jobs(1)), 1)


if __name__ == "__main__":
    unittest.main()
