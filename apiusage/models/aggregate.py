"""Aggregate key and durable row models."""

from __future__ import annotations

from typing import NamedTuple

import pydantic

from apiusage.utils import url as url_mod


class AggregateKey(NamedTuple):
    """Attribution identity of a group of API calls.

    Any component may be ``None``.  Equality and hashing are
    structural, so keys are safe to use directly as mapping keys.
    """

    first_party_url: str | None
    third_party_url: str | None
    script_url: str | None
    valid_script_url: str | None


class AggregateRow(pydantic.BaseModel):
    """A decomposed aggregate key plus API label and call count.

    Absent components are stored as empty strings so that the
    composite uniqueness constraint is a plain equality key.
    """

    first_party_origin: str = ""
    first_party_url: str = ""
    third_party_origin: str = ""
    third_party_url: str = ""
    script_origin: str = ""
    script_url_no_query: str = ""
    script_url: str = ""
    valid_script_origin: str = ""
    valid_script_url_no_query: str = ""
    valid_script_url: str = ""
    api_called: str
    num_calls: int = pydantic.Field(default=0, ge=0)

    @classmethod
    def from_key(cls, key: AggregateKey, api_called: str, num_calls: int) -> AggregateRow:
        """Decompose *key* into origin and query-stripped columns."""
        first_party_origin, _ = url_mod.decompose_url(key.first_party_url)
        third_party_origin, _ = url_mod.decompose_url(key.third_party_url)
        script_origin, script_no_query = url_mod.decompose_url(key.script_url)
        valid_origin, valid_no_query = url_mod.decompose_url(key.valid_script_url)
        return cls(
            first_party_origin=first_party_origin,
            first_party_url=key.first_party_url or "",
            third_party_origin=third_party_origin,
            third_party_url=key.third_party_url or "",
            script_origin=script_origin,
            script_url_no_query=script_no_query,
            script_url=key.script_url or "",
            valid_script_origin=valid_origin,
            valid_script_url_no_query=valid_no_query,
            valid_script_url=key.valid_script_url or "",
            api_called=api_called,
            num_calls=num_calls,
        )

    def identity(self) -> dict[str, str]:
        """Return the columns that make up the uniqueness constraint."""
        return self.model_dump(exclude={"num_calls"})
