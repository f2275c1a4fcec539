"""Tests for apiusage.models.jobs — jobs and completion conditions."""

from __future__ import annotations

import pydantic
import pytest

from apiusage.models import jobs


class TestCompletionCondition:
    """The condition is a union tagged by ``kind``."""

    def test_delay(self) -> None:
        job = jobs.ProfileJob.model_validate(
            {"name": "a", "url": "https://a.test/", "condition": {"kind": "delay", "waitFor": 500}}
        )
        assert isinstance(job.condition, jobs.DelayCondition)
        assert job.condition.wait_for == 500

    def test_selector(self) -> None:
        job = jobs.ProfileJob.model_validate(
            {
                "name": "a",
                "url": "https://a.test/",
                "condition": {"kind": "selector", "waitForSelector": "#main"},
            }
        )
        assert isinstance(job.condition, jobs.SelectorCondition)
        assert job.condition.wait_for_selector == "#main"

    def test_function(self) -> None:
        job = jobs.ProfileJob.model_validate(
            {
                "name": "a",
                "url": "https://a.test/",
                "condition": {"kind": "function", "waitForFunction": "window.ready === true"},
            }
        )
        assert isinstance(job.condition, jobs.FunctionCondition)

    def test_unknown_kind(self) -> None:
        with pytest.raises(pydantic.ValidationError):
            jobs.ProfileJob.model_validate(
                {"name": "a", "url": "https://a.test/", "condition": {"kind": "network", "waitFor": 1}}
            )

    def test_negative_delay(self) -> None:
        with pytest.raises(pydantic.ValidationError):
            jobs.DelayCondition(wait_for=-1)

    def test_empty_selector(self) -> None:
        with pytest.raises(pydantic.ValidationError):
            jobs.SelectorCondition(wait_for_selector="")


class TestProfileJob:
    """Tests for ProfileJob defaults and validation."""

    def test_defaults(self) -> None:
        job = jobs.ProfileJob(name="a", url="https://a.test/")
        assert job.start_profiler == "beforeload"
        assert job.condition == jobs.DelayCondition(wait_for=10000)

    def test_afterload(self) -> None:
        job = jobs.ProfileJob.model_validate({"name": "a", "url": "https://a.test/", "startProfiler": "afterload"})
        assert job.start_profiler == "afterload"

    def test_invalid_start(self) -> None:
        with pytest.raises(pydantic.ValidationError):
            jobs.ProfileJob.model_validate({"name": "a", "url": "https://a.test/", "startProfiler": "never"})

    def test_dump_uses_camel_case(self) -> None:
        dumped = jobs.ProfileJob(name="a", url="https://a.test/").model_dump(by_alias=True)
        assert dumped["startProfiler"] == "beforeload"
        assert dumped["condition"] == {"kind": "delay", "waitFor": 10000}
