"""Tests for apiusage.analysis.accumulator."""

from __future__ import annotations

import json

import pytest

from apiusage.analysis.accumulator import ApiUsageAccumulator
from apiusage.models.aggregate import AggregateKey

KEY = AggregateKey("https://site.test/", "https://site.test/", "https://site.test/app.js", "https://site.test/app.js")
OTHER_KEY = AggregateKey("https://site.test/", None, None, None)


class TestRecord:
    """Tests for record() and count()."""

    def test_counts_add(self) -> None:
        acc = ApiUsageAccumulator()
        acc.record(KEY, "(DOM) Document.cookie getter")
        acc.record(KEY, "(DOM) Document.cookie getter", 4)
        assert acc.count(KEY, "(DOM) Document.cookie getter") == 5

    def test_unknown_pair_is_zero(self) -> None:
        assert ApiUsageAccumulator().count(KEY, "(DOM) x") == 0

    def test_negative_count_rejected(self) -> None:
        with pytest.raises(ValueError):
            ApiUsageAccumulator().record(KEY, "(DOM) x", -1)

    def test_none_components_are_one_key(self) -> None:
        acc = ApiUsageAccumulator()
        acc.record(AggregateKey(None, None, None, None), "(DOM) x")
        acc.record(AggregateKey(None, None, None, None), "(DOM) x")
        assert len(acc) == 1
        assert acc.total_calls == 2


class TestMerge:
    """Tests for merge()."""

    def test_merge_adds(self) -> None:
        a = ApiUsageAccumulator()
        a.record(KEY, "(DOM) a", 2)
        b = ApiUsageAccumulator()
        b.record(KEY, "(DOM) a", 3)
        b.record(OTHER_KEY, "(DOM) b")

        a.merge(b)

        assert a.count(KEY, "(DOM) a") == 5
        assert a.count(OTHER_KEY, "(DOM) b") == 1
        assert a.total_calls == 6
        assert len(a) == 2

    def test_merge_leaves_source(self) -> None:
        a = ApiUsageAccumulator()
        b = ApiUsageAccumulator()
        b.record(KEY, "(DOM) a")
        a.merge(b)
        assert b.count(KEY, "(DOM) a") == 1


class TestViews:
    """Tests for iteration, apis() and truthiness."""

    def test_iteration(self) -> None:
        acc = ApiUsageAccumulator()
        acc.record(KEY, "(DOM) a", 2)
        acc.record(OTHER_KEY, "(DOM) b")
        assert sorted(acc, key=lambda e: e[1]) == [(KEY, "(DOM) a", 2), (OTHER_KEY, "(DOM) b", 1)]

    def test_apis_is_a_copy(self) -> None:
        acc = ApiUsageAccumulator()
        acc.record(KEY, "(DOM) a")
        acc.apis(KEY)["(DOM) a"] = 100
        assert acc.count(KEY, "(DOM) a") == 1

    def test_empty_is_falsy(self) -> None:
        assert not ApiUsageAccumulator()


class TestToJson:
    """Tests for to_json()."""

    def test_export_format(self) -> None:
        acc = ApiUsageAccumulator()
        acc.record(OTHER_KEY, "(DOM) b", 3)
        exported = json.loads(acc.to_json())
        assert exported == {'["https://site.test/",null,null,null]': {"(DOM) b": 3}}
