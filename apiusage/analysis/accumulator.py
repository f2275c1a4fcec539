"""
Per-pass API usage counters.

An ``ApiUsageAccumulator`` is passed explicitly through the
attribution engine, so traces can be counted into independent
accumulators and merged later.
"""

from __future__ import annotations

import collections
from collections.abc import Iterator

from apiusage.models.aggregate import AggregateKey
from apiusage.utils import serialization


class ApiUsageAccumulator:
    """Counts API calls per aggregate key and API label."""

    def __init__(self) -> None:
        self._counts: dict[AggregateKey, collections.Counter[str]] = {}

    def record(self, key: AggregateKey, api: str, count: int = 1) -> None:
        """Add *count* calls of *api* under *key*."""
        if count < 0:
            raise ValueError(f"count must be non-negative, got {count}")
        self._counts.setdefault(key, collections.Counter())[api] += count

    def merge(self, other: ApiUsageAccumulator) -> None:
        """Add every count from *other* into this accumulator."""
        for key, api, count in other:
            self.record(key, api, count)

    def count(self, key: AggregateKey, api: str) -> int:
        """Return the number of calls recorded for *key* and *api*."""
        counter = self._counts.get(key)
        return counter[api] if counter else 0

    def apis(self, key: AggregateKey) -> dict[str, int]:
        """Return a copy of the per-API counts for *key*."""
        return dict(self._counts.get(key, {}))

    @property
    def total_calls(self) -> int:
        return sum(sum(counter.values()) for counter in self._counts.values())

    def __iter__(self) -> Iterator[tuple[AggregateKey, str, int]]:
        for key, counter in self._counts.items():
            for api, count in counter.items():
                yield key, api, count

    def __len__(self) -> int:
        return len(self._counts)

    def __bool__(self) -> bool:
        return bool(self._counts)

    def to_json(self) -> str:
        """Export as ``{"[first,third,script,valid]": {api: count}}``."""
        return serialization.counters_to_json(
            {serialization.key_to_json(key): counter for key, counter in self._counts.items()}
        )
