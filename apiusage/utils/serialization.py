"""Shared serialization helpers.

Provides the ``snake_to_camel`` alias generator used by the Pydantic
models that read camelCase JSON (trace documents, job files) and the
JSON encoder for exported counters.
"""

from __future__ import annotations

import json
from collections.abc import Iterable, Mapping

import pydantic


def snake_to_camel(name: str) -> str:
    """Convert a snake_case string to camelCase.

    Args:
        name: A snake_case identifier such as
            ``"my_field_name"``.

    Returns:
        The camelCase equivalent, e.g. ``"myFieldName"``.
    """
    parts = name.split("_")
    return parts[0] + "".join(w.capitalize() for w in parts[1:])


# Model config for camelCase JSON that is also constructible by field name.
CAMEL_CASE_CONFIG = pydantic.ConfigDict(
    alias_generator=snake_to_camel, populate_by_name=True
)


def key_to_json(key: Iterable[str | None]) -> str:
    """Serialise a composite key as a compact JSON array."""
    return json.dumps(list(key), separators=(",", ":"))


def counters_to_json(counters: Mapping[str, Mapping[str, int]]) -> str:
    """Serialise ``{key: {api: count}}`` to a JSON object string."""
    return json.dumps({k: dict(v) for k, v in counters.items()})
