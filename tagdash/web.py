"""Flask application exposing the dashboard's JSON API."""

from __future__ import annotations

import threading
from typing import Optional

from flask import Flask, Response, g, jsonify, request

from . import aggregate, db, ingest, utils
from .errors import JobFailed, JobTrackerFailure, StoreUnavailable

MAX_LIST_LIMIT = 200
MAX_MOCK_BATCH = 100


def _limit_arg(default: int) -> int:
    try:
        value = int(request.args.get("limit", default))
    except ValueError:
        return default
    return max(1, min(value, MAX_LIST_LIMIT))


def create_app(app_title: str, aggregate_interval_seconds: int, start_worker: bool = True) -> Flask:
    """Create and configure the Flask application."""
    app = Flask(__name__)
    _stop_event = threading.Event()
    _worker_thread: Optional[threading.Thread] = None

    @app.teardown_appcontext
    def _teardown(exc: Optional[BaseException]) -> None:
        db_conn = g.pop("db", None)
        if db_conn is not None:
            db_conn.close()

    @app.errorhandler(StoreUnavailable)
    def _store_unavailable(exc: StoreUnavailable):
        return jsonify({"error": str(exc)}), 503

    @app.route("/api/status")
    def status():
        return jsonify({
            "title": app_title,
            "last_run": aggregate.get_run_status(),
            "tweets": db.TweetStore(db.get_db()).backlog(),
        })

    @app.route("/api/jobs/run", methods=["POST"])
    def run_job():
        try:
            summary = aggregate.run_once()
        except JobFailed as ex:
            return jsonify(ex.to_dict()), 500
        except JobTrackerFailure as ex:
            return jsonify({"error": str(ex), "job_id": None}), 500
        summary["message"] = (
            "Aggregation job completed successfully" if summary["tweets_processed"]
            else "No tweets to process"
        )
        return jsonify(summary)

    @app.route("/api/jobs")
    def list_jobs():
        return jsonify({"jobs": db.JobStore(db.get_db()).recent_jobs(_limit_arg(10))})

    @app.route("/api/hashtags")
    def list_hashtags():
        window = None
        raw_window = (request.args.get("window") or "").strip()
        if raw_window:
            try:
                window = utils.hour_window(raw_window)
            except (ValueError, OverflowError):
                return jsonify({"error": f"invalid window: {raw_window}"}), 400
        counts = db.CounterStore(db.get_db()).top(_limit_arg(20), window)
        total = sum(c["count"] for c in counts)
        for c in counts:
            c["percentage"] = round(100.0 * c["count"] / total, 1) if total else 0.0
        return jsonify({"window": window, "hashtags": counts})

    @app.route("/api/tweets")
    def list_tweets():
        return jsonify({"tweets": db.TweetStore(db.get_db()).recent(_limit_arg(20))})

    @app.route("/api/tweets", methods=["POST"])
    def submit_tweet():
        payload = request.get_json(silent=True)
        if payload is None:
            payload = {}
        if not isinstance(payload, dict):
            return jsonify({"error": "body must be a JSON object"}), 400
        for field in ("user_name", "content", "tweet_id"):
            if payload.get(field) is not None and not isinstance(payload[field], str):
                return jsonify({"error": f"{field} must be a string"}), 400
        hashtags = payload.get("hashtags")
        if hashtags is not None and not (
            isinstance(hashtags, list) and all(isinstance(h, str) for h in hashtags)
        ):
            return jsonify({"error": "hashtags must be a list of strings"}), 400
        try:
            row_id, created = ingest.add_tweet(
                db.get_db(),
                payload.get("user_name") or "",
                payload.get("content") or "",
                tweet_id=payload.get("tweet_id") or None,
                hashtags=hashtags,
            )
        except ValueError as ex:
            return jsonify({"error": str(ex)}), 400
        tweet = db.TweetStore(db.get_db()).get(row_id)
        if not created:
            return jsonify({"tweet": tweet, "duplicate": True}), 200
        return jsonify({"tweet": tweet, "duplicate": False}), 201

    @app.route("/api/tweets/mock", methods=["POST"])
    def mock_tweets():
        try:
            count = int(request.args.get("count", 1))
        except ValueError:
            return jsonify({"error": "count must be an integer"}), 400
        count = max(1, min(count, MAX_MOCK_BATCH))
        added = ingest.generate_mock_tweets(db.get_db(), count)
        return jsonify({"added": len(added), "ids": added}), 201

    @app.route("/healthz")
    def healthz() -> Response:
        """Plain-text scheduler health: 200 when the last run is recent and clean, else 503."""
        ok, message = aggregate.health_check(aggregate_interval_seconds)
        return Response(message, status=200 if ok else 503, mimetype="text/plain")

    def start_worker_if_needed() -> None:
        nonlocal _worker_thread
        if _worker_thread and _worker_thread.is_alive():
            return
        _worker_thread = threading.Thread(
            target=aggregate.aggregate_loop,
            args=(_stop_event, aggregate_interval_seconds),
            daemon=True,
        )
        _worker_thread.start()

    app.extensions["tagdash_stop_event"] = _stop_event
    if start_worker:
        start_worker_if_needed()
    return app
