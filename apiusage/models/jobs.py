"""Pydantic models for page-load jobs and their completion conditions."""

from __future__ import annotations

from typing import Annotated, Literal

import pydantic

from apiusage.utils import serialization

StartProfiler = Literal["beforeload", "afterload"]


class DelayCondition(pydantic.BaseModel):
    """Wait a fixed number of milliseconds."""

    model_config = serialization.CAMEL_CASE_CONFIG

    kind: Literal["delay"] = "delay"
    wait_for: int = pydantic.Field(ge=0)


class SelectorCondition(pydantic.BaseModel):
    """Wait until a CSS selector matches an element."""

    model_config = serialization.CAMEL_CASE_CONFIG

    kind: Literal["selector"] = "selector"
    wait_for_selector: str = pydantic.Field(min_length=1)


class FunctionCondition(pydantic.BaseModel):
    """Wait until a JavaScript predicate evaluated in the page is truthy."""

    model_config = serialization.CAMEL_CASE_CONFIG

    kind: Literal["function"] = "function"
    wait_for_function: str = pydantic.Field(min_length=1)


CompletionCondition = Annotated[
    DelayCondition | SelectorCondition | FunctionCondition,
    pydantic.Field(discriminator="kind"),
]


class ProfileJob(pydantic.BaseModel):
    """A single page visit to capture a trace for."""

    model_config = serialization.CAMEL_CASE_CONFIG

    name: str
    url: str
    start_profiler: StartProfiler = "beforeload"
    condition: CompletionCondition = pydantic.Field(
        default_factory=lambda: DelayCondition(wait_for=10000)
    )


class JobFile(pydantic.BaseModel):
    """Contents of a job list file."""

    model_config = serialization.CAMEL_CASE_CONFIG

    jobs: list[ProfileJob] = pydantic.Field(default_factory=list)
    firefox_prefs: dict[str, str | int | float | bool] = pydantic.Field(
        default_factory=dict
    )
