from __future__ import annotations

import sys
import unittest
from pathlib import Path
from types import SimpleNamespace

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from boxup.services.entry_filter import filter_entries, normalize_search


def _cat(cid: int, name: str = "c") -> SimpleNamespace:
    return SimpleNamespace(id=cid, name=name)


def _entry(eid: int, title: str = "", body: str | None = "", category: SimpleNamespace | None = None):
    return SimpleNamespace(
        id=eid,
        title=title,
        body=body,
        category=category,
        category_id=category.id if category is not None else None,
    )


class EntryFilterTests(unittest.TestCase):
    def setUp(self):
        self.work = _cat(1, "Work")
        self.food = _cat(2, "Food")
        self.entries = [
            _entry(5, "Category kickoff", "planning", self.work),
            _entry(4, "Lunch", "I saw a CAT today", self.food),
            _entry(3, "Dinner", "noodles", self.food),
            _entry(2, "Loose note", None, None),
            _entry(1, "Standup", "sync", self.work),
        ]

    def test_no_filters_returns_everything_in_order(self):
        result = filter_entries(self.entries)
        self.assertEqual([e.id for e in result], [5, 4, 3, 2, 1])
        # 返回新列表，不修改入参
        self.assertIsNot(result, self.entries)

    def test_category_filter_keeps_only_matching_ids(self):
        result = filter_entries(self.entries, category_id=1)
        self.assertEqual([e.id for e in result], [5, 1])

        result = filter_entries(self.entries, category_id=2)
        self.assertEqual([e.id for e in result], [4, 3])

    def test_unknown_category_yields_empty(self):
        self.assertEqual(filter_entries(self.entries, category_id=999), [])

    def test_search_is_case_insensitive_over_title_and_body(self):
        result = filter_entries(self.entries, search="cat")
        self.assertEqual([e.id for e in result], [5, 4])

    def test_search_trims_whitespace(self):
        result = filter_entries(self.entries, search="  DINNER\n")
        self.assertEqual([e.id for e in result], [3])

    def test_blank_search_equals_no_search(self):
        for blank in ("", "   ", "\n\t"):
            with self.subTest(blank=blank):
                self.assertEqual(
                    [e.id for e in filter_entries(self.entries, 2, blank)],
                    [e.id for e in filter_entries(self.entries, 2, None)],
                )

    def test_category_and_search_combine(self):
        result = filter_entries(self.entries, category_id=2, search="cat")
        self.assertEqual([e.id for e in result], [4])

        result = filter_entries(self.entries, category_id=1, search="noodles")
        self.assertEqual(result, [])

    def test_none_body_is_treated_as_empty(self):
        result = filter_entries(self.entries, search="loose")
        self.assertEqual([e.id for e in result], [2])
        self.assertEqual(filter_entries([_entry(9, "x", None)], search="none"), [])

    def test_falls_back_to_category_id_column(self):
        detached = SimpleNamespace(id=7, title="t", body="", category=None, category_id=1)
        self.assertEqual(filter_entries([detached], category_id=1), [detached])

    def test_normalize_search(self):
        self.assertEqual(normalize_search(None), "")
        self.assertEqual(normalize_search("  Hello "), "hello")


if __name__ == "__main__":
    unittest.main()
