"""Attaches provider-generated descriptions to extracted functions."""

from __future__ import annotations

import hashlib
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Tuple

from .llm.base import (
    DescriptionRequest,
    PermanentProviderError,
    Provider,
    ProviderError,
    TransientProviderError,
)
from .llm.prompts import DEFAULT_TEMPLATE, build_request
from .logging import get_logger
from .models import Diagnostic, FileModel, FunctionEntry, ProjectModel
from .stores import DescriptionCache

_OK = "ok"
_FAILED = "failed"
_PERMANENT = "permanent"
_SKIPPED = "skipped"


@dataclass(frozen=True)
class PipelineSettings:
    """Immutable knobs for one pipeline run."""

    concurrency: int = 4
    max_attempts: int = 3
    backoff_seconds: float = 1.0
    backoff_max_seconds: float = 30.0
    min_lines: int = 0
    max_body_lines: int = 200
    prompt_template: Optional[str] = None

    def __post_init__(self) -> None:
        if self.concurrency < 1:
            raise ValueError("concurrency must be at least 1")
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.backoff_seconds < 0 or self.backoff_max_seconds < 0:
            raise ValueError("backoff values must not be negative")

    def backoff_for(self, attempt: int) -> float:
        """Delay before retrying after failed ``attempt`` (1-based)."""
        delay = self.backoff_seconds * (2 ** (attempt - 1))
        return min(delay, self.backoff_max_seconds)

    def prompt_fingerprint(self) -> str:
        """Short hash of the settings that shape the prompt text."""
        template = self.prompt_template or DEFAULT_TEMPLATE
        digest = hashlib.sha256(f"{self.max_body_lines}\n{template}".encode("utf-8"))
        return digest.hexdigest()[:12]


@dataclass
class PipelineReport:
    """Counters for one run; ``requested`` counts unique cache keys sent."""

    requested: int = 0
    succeeded: int = 0
    failed: int = 0
    cached: int = 0
    skipped: int = 0
    attempts: int = 0
    diagnostics: List[Diagnostic] = field(default_factory=list)


@dataclass
class _Outcome:
    key: str
    status: str
    attempts: int
    description: Optional[str] = None
    error: Optional[str] = None


@dataclass
class _Pending:
    request: DescriptionRequest
    entries: List[Tuple[FileModel, FunctionEntry]] = field(default_factory=list)


class DescriptionPipeline:
    """Requests one description per unique function body with bounded parallelism.

    Worker threads only call the provider; every write to the project model and
    the report happens on the calling thread, in submission order.
    """

    def __init__(
        self,
        provider: Provider,
        settings: PipelineSettings | None = None,
        *,
        cache: DescriptionCache | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.provider = provider
        self.settings = settings or PipelineSettings()
        self._fingerprint = self.settings.prompt_fingerprint()
        self.cache = cache
        self._sleep = sleep
        self.logger = get_logger("pipeline")
        self._disabled = threading.Event()
        self._disabled_reason: Optional[str] = None
        self._reason_lock = threading.Lock()

    def cache_key(self, entry: FunctionEntry) -> str:
        return f"{self.provider.identity}:{self._fingerprint}:{entry.body_hash}"

    def run(self, project: ProjectModel) -> PipelineReport:
        report = PipelineReport()
        self._disabled.clear()
        self._disabled_reason = None

        pending: Dict[str, _Pending] = {}
        seen_keys: List[str] = []
        for model, entry in project.functions():
            if entry.description is not None:
                continue
            if entry.lines_of_code < self.settings.min_lines:
                continue
            key = self.cache_key(entry)
            seen_keys.append(key)
            cached = self.cache.get(key) if self.cache is not None else None
            if cached is not None:
                entry.description = cached
                report.cached += 1
                continue
            if key not in pending:
                pending[key] = _Pending(
                    request=build_request(
                        entry,
                        model.language,
                        max_body_lines=self.settings.max_body_lines,
                        template=self.settings.prompt_template,
                    )
                )
            pending[key].entries.append((model, entry))

        if pending:
            self.logger.info(
                "Requesting %d description(s) from %s (%d cached)",
                len(pending),
                self.provider.identity,
                report.cached,
            )
        for outcome in self._execute(pending):
            self._merge(outcome, pending[outcome.key].entries, report)

        if self.cache is not None:
            self.cache.prune(seen_keys)
            self.cache.persist()
        project.diagnostics.extend(report.diagnostics)
        return report

    # ------------------------------------------------------------------
    # Internal helpers

    def _execute(self, pending: Dict[str, _Pending]) -> List[_Outcome]:
        if not pending:
            return []
        workers = min(self.settings.concurrency, len(pending))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="codesummary") as pool:
            futures: List[Future[_Outcome]] = [
                pool.submit(self._describe, key, item.request) for key, item in pending.items()
            ]
            return [future.result() for future in futures]

    def _describe(self, key: str, request: DescriptionRequest) -> _Outcome:
        attempts = 0
        last_error: Optional[str] = None
        for attempt in range(1, self.settings.max_attempts + 1):
            if self._disabled.is_set():
                return _Outcome(key, _SKIPPED, attempts, error=self._disabled_reason)
            attempts += 1
            try:
                description = self.provider.describe(request)
                if not description or not description.strip():
                    raise TransientProviderError(f"{self.provider.identity} returned an empty description")
            except PermanentProviderError as exc:
                self._disable(str(exc))
                return _Outcome(key, _PERMANENT, attempts, error=str(exc))
            except ProviderError as exc:
                last_error = str(exc)
                if attempt == self.settings.max_attempts:
                    break
                delay = self.settings.backoff_for(attempt)
                retry_after = getattr(exc, "retry_after", None)
                if retry_after:
                    delay = min(max(delay, retry_after), self.settings.backoff_max_seconds)
                self.logger.debug(
                    "Attempt %d for %s failed (%s); retrying in %.2fs",
                    attempt,
                    request.name,
                    exc,
                    delay,
                )
                self._sleep(delay)
                continue
            except Exception as exc:  # noqa: BLE001
                last_error = f"{type(exc).__name__}: {exc}"
                break
            return _Outcome(key, _OK, attempts, description=description.strip())
        return _Outcome(key, _FAILED, attempts, error=last_error)

    def _disable(self, reason: str) -> None:
        with self._reason_lock:
            if self._disabled.is_set():
                return
            self._disabled_reason = reason
            self._disabled.set()
        self.logger.warning(
            "Provider %s failed permanently; no further descriptions will be requested: %s",
            self.provider.identity,
            reason,
        )

    def _merge(
        self,
        outcome: _Outcome,
        entries: List[Tuple[FileModel, FunctionEntry]],
        report: PipelineReport,
    ) -> None:
        report.attempts += outcome.attempts
        if outcome.status != _SKIPPED:
            report.requested += 1
        if outcome.status == _OK:
            for _, entry in entries:
                entry.description = outcome.description
            report.succeeded += len(entries)
            if self.cache is not None and outcome.description:
                self.cache.store(outcome.key, outcome.description)
            return

        if outcome.status == _SKIPPED:
            report.skipped += len(entries)
            message = f"Description skipped; provider disabled: {outcome.error}"
        elif outcome.status == _PERMANENT:
            report.failed += len(entries)
            message = f"Description failed permanently: {outcome.error}"
        else:
            report.failed += len(entries)
            message = f"Description failed after {outcome.attempts} attempt(s): {outcome.error}"
            self.logger.warning("Giving up on %s: %s", entries[0][1].qualified_name, outcome.error)
        for model, entry in entries:
            report.diagnostics.append(
                Diagnostic(
                    stage="describe",
                    path=model.path,
                    message=message,
                    level="warning",
                    function=entry.qualified_name,
                )
            )


__all__ = ["DescriptionPipeline", "PipelineReport", "PipelineSettings"]
