"""Hashtag extraction rules."""

from __future__ import annotations

import re
from collections import Counter
from typing import Dict, Iterable, List, Optional

# ASCII only: "#" then letters, digits or underscore
HASHTAG_RE = re.compile(r"#([A-Za-z0-9_]+)")
# a single stored tag, already lower-cased
TAG_RE = re.compile(r"[a-z0-9_]+")

# Tweets are bounded like the real thing
MAX_CONTENT_LENGTH = 280


def extract_hashtags(text: Optional[str]) -> List[str]:
    """Return every hashtag in ``text``, lower-cased, in order of appearance.

    Duplicates are kept: a tag written twice counts twice.
    """
    if not text:
        return []
    return [m.group(1).lower() for m in HASHTAG_RE.finditer(text)]


def count_hashtags(tags: Iterable[str]) -> Dict[str, int]:
    return dict(Counter(tags))


def tags_for_tweet(stored_tags: List[str], content: str) -> tuple[List[str], bool]:
    """Pick the tags a tweet contributes.

    Previously stored tags are trusted as-is. Otherwise tags are extracted
    from the content; the flag says whether they should be written back.
    """
    if stored_tags:
        return list(stored_tags), False
    extracted = extract_hashtags(content)
    return extracted, bool(extracted)


def normalize_tags(tags: Iterable[str]) -> List[str]:
    """Lower-case caller-supplied tags and drop a leading ``#``.

    Empty entries are skipped. Anything the extractor could not have
    produced raises ``ValueError``.
    """
    normalized = []
    for tag in tags:
        tag = (tag or "").lstrip("#").lower()
        if not tag:
            continue
        if not TAG_RE.fullmatch(tag):
            raise ValueError(f"invalid hashtag: {tag!r}")
        normalized.append(tag)
    return normalized
