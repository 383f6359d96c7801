"""Tweet ingestion: manual submissions and the mock stream."""

from __future__ import annotations

import logging
import random
import sqlite3
from typing import List, Optional, Tuple

from . import db, rules, stream_config, utils

logger = logging.getLogger(__name__)


def add_tweet(conn: sqlite3.Connection, user_name: str, content: str,
              tweet_id: Optional[str] = None, hashtags: Optional[List[str]] = None) -> Tuple[str, bool]:
    """Store a new unprocessed tweet.

    Hashtags are extracted up front unless the caller supplies them. A
    repeated ``tweet_id`` is ignored. Returns ``(row_id, created)``.
    """
    user_name = utils.normalize_ws(user_name or "")
    content = (content or "").strip()
    if not user_name:
        raise ValueError("user_name is required")
    if not content:
        raise ValueError("content is required")
    if len(content) > rules.MAX_CONTENT_LENGTH:
        raise ValueError(f"content exceeds {rules.MAX_CONTENT_LENGTH} characters")

    if hashtags is None:
        hashtags = rules.extract_hashtags(content)
    else:
        hashtags = rules.normalize_tags(hashtags)

    row_id, created = db.TweetStore(conn).insert(
        tweet_id or utils.new_tweet_id(), user_name, content, hashtags
    )
    if not created:
        logger.info("Tweet %s already stored, ignoring", tweet_id)
    return row_id, created


def generate_mock_tweets(conn: sqlite3.Connection, count: int,
                         rng: Optional[random.Random] = None) -> List[str]:
    """Insert ``count`` tweets drawn from the configured templates."""
    rng = rng or random.Random()
    templates = stream_config.load_mock_tweets()
    added = []
    for _ in range(count):
        template = rng.choice(templates)
        row_id, created = add_tweet(
            conn,
            template["user_name"],
            template["content"],
            tweet_id=utils.new_tweet_id(rng),
        )
        if created:
            added.append(row_id)
    logger.info("Generated %d mock tweets", len(added))
    return added
