"""Tests for the description pipeline."""

from __future__ import annotations

import random
import threading
import time
from pathlib import Path
from typing import Callable, Dict, List, Optional

import pytest

from codesummary.llm.base import DescriptionRequest, PermanentProviderError, TransientProviderError
from codesummary.llm.prompts import DEFAULT_TEMPLATE
from codesummary.models import FileModel, FunctionEntry, ProjectModel
from codesummary.pipeline import DescriptionPipeline, PipelineSettings
from codesummary.stores import DescriptionCache


class FakeProvider:
    """Records calls and answers from a scripted callable."""

    def __init__(
        self,
        answer: Callable[[DescriptionRequest, int], str] | None = None,
        identity: str = "fake:model",
        delay: Callable[[DescriptionRequest], float] | None = None,
    ) -> None:
        self.identity = identity
        self._answer = answer or (lambda request, call: f"Describes {request.name}.")
        self._delay = delay
        self._lock = threading.Lock()
        self.calls: List[str] = []
        self.in_flight = 0
        self.max_in_flight = 0

    def describe(self, request: DescriptionRequest) -> str:
        with self._lock:
            self.calls.append(request.name)
            call = len(self.calls)
            self.in_flight += 1
            self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self._delay is not None:
                time.sleep(self._delay(request))
            return self._answer(request, call)
        finally:
            with self._lock:
                self.in_flight -= 1


def _entry(name: str, body_hash: Optional[str] = None, lines: int = 3) -> FunctionEntry:
    return FunctionEntry(
        name=name,
        signature=f"fn {name}()",
        return_points=0,
        body_hash=body_hash or f"hash-{name}",
        lines_of_code=lines,
        body=f"fn {name}() {{}}",
    )


def _project(*files: FileModel) -> ProjectModel:
    return ProjectModel(files={model.path: model for model in files})


def _numbered_project(count: int) -> ProjectModel:
    return _project(
        FileModel(path="src/lib.rs", language="rust", functions=[_entry(f"f{index}") for index in range(count)])
    )


def _pipeline(provider: FakeProvider, sleeps: List[float] | None = None, **settings) -> DescriptionPipeline:
    recorded = sleeps if sleeps is not None else []
    return DescriptionPipeline(
        provider,  # type: ignore[arg-type]
        PipelineSettings(**settings),
        sleep=recorded.append,
    )


def test_pipeline_describes_every_function() -> None:
    project = _numbered_project(5)
    provider = FakeProvider()

    report = _pipeline(provider).run(project)

    descriptions = [entry.description for _, entry in project.functions()]
    assert descriptions == [f"Describes f{index}." for index in range(5)]
    assert report.requested == 5
    assert report.succeeded == 5
    assert report.failed == 0
    assert project.diagnostics == []


def test_pipeline_deduplicates_identical_bodies() -> None:
    project = _project(
        FileModel(path="a.py", language="python", functions=[_entry("one", "shared")]),
        FileModel(path="b.py", language="python", functions=[_entry("two", "shared"), _entry("three")]),
    )
    provider = FakeProvider()

    report = _pipeline(provider).run(project)

    assert sorted(provider.calls) == ["one", "three"]
    assert project["b.py"].functions[0].description == "Describes one."
    assert report.requested == 2
    assert report.succeeded == 3


def test_pipeline_retries_transient_errors_with_backoff() -> None:
    def answer(request: DescriptionRequest, call: int) -> str:
        raise TransientProviderError("busy")

    project = _numbered_project(1)
    provider = FakeProvider(answer)
    sleeps: List[float] = []

    report = _pipeline(provider, sleeps, max_attempts=3, backoff_seconds=1.0).run(project)

    assert len(provider.calls) == 3
    assert sleeps == [1.0, 2.0]
    assert report.failed == 1
    assert report.attempts == 3
    entry = project["src/lib.rs"].functions[0]
    assert entry.description is None
    diagnostic = project.diagnostics[0]
    assert diagnostic.stage == "describe"
    assert diagnostic.function == "f0"
    assert "3 attempt(s)" in diagnostic.message


def test_pipeline_recovers_after_transient_failure() -> None:
    def answer(request: DescriptionRequest, call: int) -> str:
        if call == 1:
            raise TransientProviderError("busy")
        return "Recovered."

    project = _numbered_project(1)
    sleeps: List[float] = []

    report = _pipeline(FakeProvider(answer), sleeps).run(project)

    assert project["src/lib.rs"].functions[0].description == "Recovered."
    assert sleeps == [1.0]
    assert report.succeeded == 1
    assert report.attempts == 2


def test_pipeline_honours_retry_after_within_cap() -> None:
    def answer(request: DescriptionRequest, call: int) -> str:
        if call == 1:
            raise TransientProviderError("slow down", retry_after=7.0)
        if call == 2:
            raise TransientProviderError("slow down", retry_after=120.0)
        return "Done."

    sleeps: List[float] = []

    _pipeline(FakeProvider(answer), sleeps, max_attempts=3, backoff_max_seconds=30.0).run(_numbered_project(1))

    assert sleeps == [7.0, 30.0]


def test_pipeline_treats_blank_descriptions_as_transient() -> None:
    def answer(request: DescriptionRequest, call: int) -> str:
        return "   " if call == 1 else "Filled in."

    project = _numbered_project(1)

    _pipeline(FakeProvider(answer), max_attempts=2).run(project)

    assert project["src/lib.rs"].functions[0].description == "Filled in."


def test_permanent_failure_stops_further_requests() -> None:
    def answer(request: DescriptionRequest, call: int) -> str:
        raise PermanentProviderError("invalid api key")

    project = _numbered_project(10)
    provider = FakeProvider(answer)

    report = _pipeline(provider, concurrency=1).run(project)

    assert len(provider.calls) == 1
    assert report.failed == 1
    assert report.skipped == 9
    assert report.requested == 1
    assert len(project.diagnostics) == 10
    assert {diag.function for diag in project.diagnostics} == {f"f{index}" for index in range(10)}
    assert all("invalid api key" in diag.message for diag in project.diagnostics)
    assert all(entry.description is None for _, entry in project.functions())


def test_permanent_failure_with_parallel_workers_still_reports_every_function() -> None:
    def answer(request: DescriptionRequest, call: int) -> str:
        raise PermanentProviderError("quota exhausted")

    project = _numbered_project(10)
    provider = FakeProvider(answer)

    report = _pipeline(provider, concurrency=4).run(project)

    assert 1 <= len(provider.calls) <= 4
    assert report.failed + report.skipped == 10
    assert len(project.diagnostics) == 10


def test_pipeline_never_exceeds_concurrency() -> None:
    provider = FakeProvider(delay=lambda request: 0.01)

    _pipeline(provider, concurrency=3).run(_numbered_project(12))

    assert len(provider.calls) == 12
    assert 1 <= provider.max_in_flight <= 3


def test_pipeline_result_is_independent_of_completion_order() -> None:
    rng = random.Random(7)
    delays: Dict[str, float] = {f"f{index}": rng.uniform(0, 0.02) for index in range(8)}

    def run(concurrency: int) -> List[Optional[str]]:
        project = _numbered_project(8)
        provider = FakeProvider(delay=lambda request: delays[request.name])
        _pipeline(provider, concurrency=concurrency).run(project)
        return [entry.description for _, entry in project.functions()]

    assert run(1) == run(4) == run(8)


def test_pipeline_skips_short_and_already_described_functions() -> None:
    described = _entry("done")
    described.description = "Existing."
    project = _project(
        FileModel(
            path="a.ts",
            language="typescript",
            functions=[described, _entry("tiny", lines=1), _entry("big", lines=5)],
        )
    )
    provider = FakeProvider()

    _pipeline(provider, min_lines=2).run(project)

    assert provider.calls == ["big"]
    assert described.description == "Existing."
    assert project["a.ts"].functions[1].description is None


def test_pipeline_reuses_and_prunes_cache(tmp_path: Path) -> None:
    cache_path = tmp_path / "descriptions.json"
    provider = FakeProvider()
    pipeline = DescriptionPipeline(provider, cache=DescriptionCache(cache_path))  # type: ignore[arg-type]
    seeded = DescriptionCache(cache_path)
    seeded.store(pipeline.cache_key(_entry("f0")), "Cached f0.")
    seeded.store("fake:model:stale", "Stale.")
    seeded.persist()
    pipeline.cache = DescriptionCache(cache_path)

    project = _numbered_project(2)
    report = pipeline.run(project)

    assert provider.calls == ["f1"]
    assert report.cached == 1
    assert [entry.description for _, entry in project.functions()] == ["Cached f0.", "Describes f1."]
    reloaded = DescriptionCache(cache_path)
    assert reloaded.get(pipeline.cache_key(_entry("f1"))) == "Describes f1."
    assert reloaded.get("fake:model:stale") is None


def test_cache_keys_include_provider_identity() -> None:
    entry = _entry("f", "abc")

    first = DescriptionPipeline(FakeProvider(identity="ollama:a"))  # type: ignore[arg-type]
    second = DescriptionPipeline(FakeProvider(identity="ollama:b"))  # type: ignore[arg-type]

    fingerprint = PipelineSettings().prompt_fingerprint()
    assert first.cache_key(entry) == f"ollama:a:{fingerprint}:abc"
    assert first.cache_key(entry) != second.cache_key(entry)


def test_cache_keys_change_with_prompt_settings() -> None:
    entry = _entry("f", "abc")
    provider = FakeProvider()

    default = DescriptionPipeline(provider, PipelineSettings())  # type: ignore[arg-type]
    explicit = DescriptionPipeline(provider, PipelineSettings(prompt_template=DEFAULT_TEMPLATE))  # type: ignore[arg-type]
    custom = DescriptionPipeline(provider, PipelineSettings(prompt_template="Describe {name}."))  # type: ignore[arg-type]
    shorter = DescriptionPipeline(provider, PipelineSettings(max_body_lines=20))  # type: ignore[arg-type]

    assert default.cache_key(entry) == explicit.cache_key(entry)
    assert len({default.cache_key(entry), custom.cache_key(entry), shorter.cache_key(entry)}) == 3
    assert PipelineSettings(concurrency=8).prompt_fingerprint() == PipelineSettings().prompt_fingerprint()


def test_unexpected_errors_fail_without_retry() -> None:
    def answer(request: DescriptionRequest, call: int) -> str:
        raise KeyError("boom")

    project = _numbered_project(1)
    provider = FakeProvider(answer)
    sleeps: List[float] = []

    report = _pipeline(provider, sleeps).run(project)

    assert len(provider.calls) == 1
    assert sleeps == []
    assert report.failed == 1
    assert "KeyError" in project.diagnostics[0].message


def test_settings_validate_bounds() -> None:
    with pytest.raises(ValueError):
        PipelineSettings(concurrency=0)
    with pytest.raises(ValueError):
        PipelineSettings(max_attempts=0)
    settings = PipelineSettings(backoff_seconds=2.0, backoff_max_seconds=5.0)
    assert [settings.backoff_for(attempt) for attempt in (1, 2, 3)] == [2.0, 4.0, 5.0]
