"""Tests for deduplication, tagging and the result store."""

import pytest

from suggest_harvest.aggregator import Aggregator, ResultStore
from suggest_harvest.models import KeywordRecord, QueueItem, Tag, keyword_id


def item(query: str, tag: str = Tag.GENERIC_SUFFIX.value) -> QueueItem:
    return QueueItem(query=query, tag=tag)


def records_by_keyword(agg: Aggregator) -> dict[str, KeywordRecord]:
    return {r.keyword: r for r in agg.store}


class TestKeywordId:
    """Test deterministic keyword ids."""

    def test_same_keyword_same_id(self):
        assert keyword_id("gift card") == keyword_id("gift card")

    def test_distinct_keywords_distinct_ids(self):
        assert keyword_id("gift card") != keyword_id("gift cards")

    def test_non_ascii(self):
        assert keyword_id("کارت هدیه") != keyword_id("کارت")


class TestIngest:
    """Test Aggregator.ingest."""

    def test_normalizes_and_accepts(self):
        agg = Aggregator("gift")
        accepted = agg.ingest(item("gift a"), {"google": ["  Gift Card  "]})
        assert len(accepted) == 1
        record = accepted[0]
        assert record.keyword == "gift card"
        assert record.id == keyword_id("gift card")
        assert record.parent_query == "gift a"
        assert record.tag == Tag.GENERIC_SUFFIX.value
        assert record.sources == ("google",)

    def test_rejects_short_strings(self):
        agg = Aggregator("gift")
        accepted = agg.ingest(item("gift a"), {"google": ["a", " b ", "", "ab"]})
        assert [r.keyword for r in accepted] == ["ab"]

    def test_duplicates_within_call_collapse(self):
        agg = Aggregator("gift")
        accepted = agg.ingest(item("gift a"), {"google": ["Gift Card", "gift card "]})
        assert len(accepted) == 1

    def test_duplicates_across_calls_skipped(self):
        agg = Aggregator("gift")
        agg.ingest(item("gift a"), {"google": ["gift card"]})
        accepted = agg.ingest(item("gift b"), {"google": ["GIFT CARD", "gift box"]})
        assert [r.keyword for r in accepted] == ["gift box"]
        assert len(agg.store) == 2

    def test_seed_tag_when_keyword_equals_seed(self):
        """A record equal to the seed is SEED whatever query produced it."""
        agg = Aggregator("Gift {}")
        accepted = agg.ingest(item("gift a"), {"google": ["GIFT", "gift card"]})
        tags = {r.keyword: r.tag for r in accepted}
        assert tags["gift"] == Tag.SEED.value
        assert tags["gift card"] == Tag.GENERIC_SUFFIX.value

    def test_inherits_seed_item_tag(self):
        agg = Aggregator("gift")
        accepted = agg.ingest(item("gift", Tag.SEED.value), {"google": ["gift card"]})
        assert accepted[0].tag == Tag.SEED.value

    def test_parent_query_fixed_at_first_insertion(self):
        agg = Aggregator("gift")
        agg.ingest(item("gift a"), {"google": ["gift card"]})
        agg.ingest(item("gift b"), {"google": ["gift card"]})
        assert records_by_keyword(agg)["gift card"].parent_query == "gift a"

    def test_sources_union_within_one_call(self):
        agg = Aggregator("gift")
        accepted = agg.ingest(
            item("gift a"),
            {"google": ["gift card"], "bing": ["Gift Card"], "amazon": ["gift box"]},
        )
        by_keyword = {r.keyword: r for r in accepted}
        assert by_keyword["gift card"].sources == ("google", "bing")
        assert by_keyword["gift box"].sources == ("amazon",)

    def test_sources_not_extended_by_later_calls(self):
        """Attribution is per settle call: a later provider hit is not merged."""
        agg = Aggregator("gift")
        agg.ingest(item("gift a"), {"google": ["gift card"]})
        agg.ingest(item("gift b"), {"bing": ["gift card"]})
        assert records_by_keyword(agg)["gift card"].sources == ("google",)

    def test_store_never_holds_duplicate_ids(self):
        agg = Aggregator("gift")
        words = ["gift card", "Gift Card", "gift box", "x", "gift", " gift box ", "gifts"]
        for i in range(20):
            rotated = words[i % len(words) :] + words[: i % len(words)]
            agg.ingest(item(f"q{i}"), {"google": rotated, "bing": rotated[::-1]})
        ids = [r.id for r in agg.store]
        assert len(ids) == len(set(ids))
        assert len(ids) == 4

    def test_empty_results(self):
        agg = Aggregator("gift")
        assert agg.ingest(item("gift a"), {}) == []
        assert agg.ingest(item("gift a"), {"google": []}) == []
        assert len(agg.store) == 0


class TestResultStore:
    """Test the append-only result store."""

    def make_record(self, keyword: str) -> KeywordRecord:
        return KeywordRecord(
            id=keyword_id(keyword),
            keyword=keyword,
            sources=("google",),
            parent_query="q",
            tag="A-Z",
        )

    def test_preserves_order(self):
        store = ResultStore()
        store.extend([self.make_record("b"), self.make_record("a")])
        store.extend([self.make_record("c")])
        assert [r.keyword for r in store] == ["b", "a", "c"]

    def test_rejects_duplicate_id(self):
        store = ResultStore()
        store.extend([self.make_record("gift")])
        with pytest.raises(ValueError):
            store.extend([self.make_record("gift")])
        assert len(store) == 1

    def test_rejects_duplicate_within_one_batch(self):
        store = ResultStore()
        with pytest.raises(ValueError):
            store.extend([self.make_record("gift"), self.make_record("gift")])
        assert len(store) == 0

    def test_records_is_a_copy(self):
        store = ResultStore()
        store.extend([self.make_record("gift card")])
        store.records().clear()
        assert len(store) == 1
