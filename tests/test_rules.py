"""Tests for hashtag extraction and window resolution."""

import random
import unittest
from datetime import datetime, timedelta, timezone

from tagdash import rules, utils


class TestExtractHashtags(unittest.TestCase):
    """Test hashtag extraction rules."""

    def test_case_folded_duplicates_and_order_kept(self):
        self.assertEqual(rules.extract_hashtags("Loving #BigData and #AI #AI"), ["bigdata", "ai", "ai"])

    def test_empty_and_missing_text(self):
        self.assertEqual(rules.extract_hashtags(""), [])
        self.assertEqual(rules.extract_hashtags(None), [])
        self.assertEqual(rules.extract_hashtags("no tags here"), [])

    def test_pattern_boundaries(self):
        test_cases = [
            ("#rust_lang rocks", ["rust_lang"]),
            ("#2024 was busy", ["2024"]),
            ("lone # sign", []),
            ("email me at a#b", ["b"]),
            ("#café time", ["caf"]),
            ("#one#two", ["one", "two"]),
            ("punctuation #end.", ["end"]),
        ]
        for text, expected in test_cases:
            with self.subTest(text=text):
                self.assertEqual(rules.extract_hashtags(text), expected)

    def test_count_hashtags(self):
        self.assertEqual(rules.count_hashtags(["rust", "go", "rust"]), {"rust": 2, "go": 1})
        self.assertEqual(rules.count_hashtags([]), {})

    def test_tags_for_tweet_trusts_stored_tags(self):
        tags, write_back = rules.tags_for_tweet(["legacy"], "now with #fresh tags")
        self.assertEqual(tags, ["legacy"])
        self.assertFalse(write_back)

    def test_tags_for_tweet_extracts_when_empty(self):
        tags, write_back = rules.tags_for_tweet([], "Go #rust #rust")
        self.assertEqual(tags, ["rust", "rust"])
        self.assertTrue(write_back)

        tags, write_back = rules.tags_for_tweet([], "no tags here")
        self.assertEqual(tags, [])
        self.assertFalse(write_back)


class TestHourWindow(unittest.TestCase):
    """Test window key resolution."""

    def test_same_hour_same_key(self):
        start = datetime(2026, 10, 19, 14, 0, 0, tzinfo=timezone.utc)
        end = datetime(2026, 10, 19, 14, 59, 59, 999999, tzinfo=timezone.utc)
        self.assertEqual(utils.hour_window(start), utils.hour_window(end))
        self.assertEqual(utils.hour_window(start), "2026-10-19T14:00:00+00:00")

    def test_next_hour_differs(self):
        t1 = datetime(2026, 10, 19, 14, 59, 59, tzinfo=timezone.utc)
        t2 = t1 + timedelta(seconds=1)
        self.assertNotEqual(utils.hour_window(t1), utils.hour_window(t2))
        self.assertEqual(utils.hour_window(t2), "2026-10-19T15:00:00+00:00")

    def test_offsets_and_strings_normalize_to_utc(self):
        eastern = timezone(timedelta(hours=-5))
        local = datetime(2026, 10, 19, 9, 30, tzinfo=eastern)
        self.assertEqual(utils.hour_window(local), "2026-10-19T14:00:00+00:00")
        self.assertEqual(utils.hour_window("2026-10-19T14:45:12.345Z"), "2026-10-19T14:00:00+00:00")
        # naive values are treated as UTC
        self.assertEqual(utils.hour_window(datetime(2026, 10, 19, 14, 5)), "2026-10-19T14:00:00+00:00")

    def test_invalid_string_raises(self):
        with self.assertRaises(ValueError):
            utils.hour_window("not a timestamp")


class TestUtils(unittest.TestCase):
    def test_new_tweet_id_shape(self):
        tweet_id = utils.new_tweet_id(random.Random(7))
        prefix, millis, suffix = tweet_id.split("_")
        self.assertEqual(prefix, "tweet")
        self.assertTrue(millis.isdigit())
        self.assertEqual(len(suffix), 9)

    def test_new_row_id_unique(self):
        self.assertNotEqual(utils.new_row_id(), utils.new_row_id())

    def test_normalize_ws(self):
        self.assertEqual(utils.normalize_ws("  Tech \n Guru  "), "Tech Guru")


if __name__ == "__main__":
    unittest.main()
