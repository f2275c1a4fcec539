"""Pydantic models for Gecko profiler trace documents.

Only the parts of the format the attribution engine reads are
modelled; unknown keys are ignored.  Table rows stay as raw lists
and are resolved by column name through ``trace.reader``.
"""

from __future__ import annotations

from typing import Any

import pydantic

from apiusage.utils import serialization


class Table(pydantic.BaseModel):
    """A columnar table: a column-name → position schema plus rows."""

    model_config = pydantic.ConfigDict(populate_by_name=True)

    schema_: dict[str, int] = pydantic.Field(alias="schema")
    data: list[list[Any]] = pydantic.Field(default_factory=list)


class Category(pydantic.BaseModel):
    """A frame category (e.g. ``"JavaScript"``, ``"DOM"``)."""

    name: str
    color: str | None = None


class TraceMeta(pydantic.BaseModel):
    """Trace-wide metadata."""

    categories: list[Category] = pydantic.Field(default_factory=list)


class Page(pydantic.BaseModel):
    """A browsing context snapshot."""

    model_config = pydantic.ConfigDict(populate_by_name=True)

    tab_id: int | None = pydantic.Field(default=None, alias="tabID")
    inner_window_id: int = pydantic.Field(alias="innerWindowID")
    url: str
    embedder_inner_window_id: int | None = pydantic.Field(
        default=None, alias="embedderInnerWindowID"
    )
    is_private_browsing: bool = pydantic.Field(default=False, alias="isPrivateBrowsing")

    @property
    def embedder_id(self) -> int | None:
        """Window id of the embedding page; ``None`` for top-level pages.

        The profiler writes ``0`` for top-level pages.
        """
        return self.embedder_inner_window_id or None


class Thread(pydantic.BaseModel):
    """One execution timeline with its stack, frame and sample tables."""

    model_config = serialization.CAMEL_CASE_CONFIG

    name: str = ""
    stack_table: Table
    frame_table: Table
    samples: Table
    string_table: list[str] = pydantic.Field(default_factory=list)


class SubprocessProfile(pydantic.BaseModel):
    """A content or parent process record."""

    pages: list[Page] | None = None
    threads: list[Thread] = pydantic.Field(default_factory=list)


class TraceDocument(pydantic.BaseModel):
    """One capture session."""

    meta: TraceMeta = pydantic.Field(default_factory=TraceMeta)
    processes: list[SubprocessProfile] = pydantic.Field(default_factory=list)
