"""End-to-end summary run: scan, extract, aggregate, describe, render."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional

from .aggregator import Aggregator
from .analyzers import Extractor, Language
from .config import CodeSummaryConfig
from .llm import Provider, create_provider
from .logging import get_logger
from .models import Diagnostic, ProjectModel, RepoManifest, SourceFile
from .pipeline import DescriptionPipeline, PipelineReport, PipelineSettings
from .project_info import load_project_info
from .render import ReportRenderer, resolve_output_path
from .repo_scanner import RepoScanner
from .stores import DescriptionCache


@dataclass
class SummaryOutcome:
    """Result of a summarize run."""

    path: Path
    project: ProjectModel
    report: Optional[PipelineReport] = None


class Orchestrator:
    """Coordinates one summary run over a directory tree."""

    def __init__(
        self,
        *,
        extractor: Extractor | None = None,
        renderer: ReportRenderer | None = None,
        provider: Provider | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.extractor = extractor or Extractor()
        self.renderer = renderer or ReportRenderer()
        self.logger = get_logger("orchestrator")
        self._provider = provider
        self._sleep = sleep

    def run_summary(
        self,
        config: CodeSummaryConfig,
        *,
        describe: bool = True,
        use_cache: bool = True,
        base_dir: Path | None = None,
    ) -> SummaryOutcome:
        """Summarise ``config.root`` and write the report.

        Only an unusable root directory raises; everything else is recorded as a
        diagnostic in the returned project model.
        """
        root = config.root
        self.logger.info("Summarising %s", root)
        scanner = RepoScanner(config.exclude_paths, config.languages)
        manifest = scanner.scan(root)
        self.logger.debug("Scanner selected %d source file(s)", len(manifest.files))

        project = self._build_project(manifest)

        report: Optional[PipelineReport] = None
        provider = self._resolve_provider(config) if describe else None
        if provider is not None:
            report = self._describe(project, provider, config, use_cache=use_cache)
        else:
            self.logger.info("Descriptions disabled; rendering structure only")

        output_path = resolve_output_path(config.output, folder=root.name, base_dir=base_dir)
        info = load_project_info(root)
        docs = [doc for doc in manifest.docs if (root / doc).resolve() != output_path.resolve()]
        content = self.renderer.render(project, info=info, docs=docs)
        self.renderer.write(content, output_path)

        skipped = len([diag for diag in project.diagnostics if diag.function is None])
        self.logger.info(
            "Wrote %s (%d file(s), %d skipped, %d diagnostic(s))",
            output_path,
            len(project),
            skipped,
            len(project.diagnostics),
        )
        return SummaryOutcome(path=output_path, project=project, report=report)

    def clear_cache(self, config: CodeSummaryConfig) -> Path:
        path = config.cache_path
        cache = DescriptionCache(path)
        cache.clear()
        cache.persist()
        self.logger.info("Cleared description cache at %s", path)
        return path

    # ------------------------------------------------------------------
    # Internal helpers

    def _build_project(self, manifest: RepoManifest) -> ProjectModel:
        aggregator = Aggregator()
        for diagnostic in manifest.diagnostics:
            aggregator.add_diagnostic(diagnostic)
        root = Path(manifest.root)
        for source in manifest.files:
            diagnostic = self._extract_into(aggregator, root, source)
            if diagnostic is not None:
                self.logger.warning("Skipping %s: %s", source.path, diagnostic.message)
                aggregator.add_diagnostic(diagnostic)
        return aggregator.build()

    def _extract_into(self, aggregator: Aggregator, root: Path, source: SourceFile) -> Diagnostic | None:
        try:
            text = (root / source.path).read_bytes().decode("utf-8")
        except UnicodeDecodeError as exc:
            return Diagnostic(stage="extract", path=source.path, message=f"File is not valid UTF-8: {exc.reason}")
        except OSError as exc:
            return Diagnostic(stage="extract", path=source.path, message=f"File could not be read: {exc.strerror or exc}")

        try:
            model = self.extractor.extract(source.path, text, Language(source.language))
        except Exception as exc:  # pragma: no cover
            self._log_exception(f"Extraction failed for {source.path}", exc)
            return Diagnostic(stage="extract", path=source.path, message=f"Extraction failed: {exc}")
        aggregator.add(model)
        return None

    def _resolve_provider(self, config: CodeSummaryConfig) -> Provider | None:
        if self._provider is not None:
            return self._provider
        if not config.llm.enabled:
            return None
        return create_provider(config.llm)

    def _describe(
        self,
        project: ProjectModel,
        provider: Provider,
        config: CodeSummaryConfig,
        *,
        use_cache: bool,
    ) -> PipelineReport:
        cache = None
        if use_cache and config.cache.enabled:
            cache = DescriptionCache(config.cache_path)
        settings = PipelineSettings(
            concurrency=config.pipeline.concurrency,
            max_attempts=config.pipeline.max_attempts,
            backoff_seconds=config.pipeline.backoff_seconds,
            backoff_max_seconds=config.pipeline.backoff_max_seconds,
            min_lines=config.pipeline.min_lines,
            max_body_lines=config.pipeline.max_body_lines,
            prompt_template=config.llm.prompt,
        )
        pipeline = DescriptionPipeline(provider, settings, cache=cache, sleep=self._sleep)
        report = pipeline.run(project)
        self.logger.info(
            "Descriptions: %d new, %d cached, %d failed, %d skipped (%d attempt(s))",
            report.succeeded,
            report.cached,
            report.failed,
            report.skipped,
            report.attempts,
        )
        return report

    def _log_exception(self, message: str, exc: Exception) -> None:
        if self.logger.isEnabledFor(logging.DEBUG):
            self.logger.exception("%s: %s", message, exc)
        else:
            self.logger.error("%s: %s", message, exc)


__all__ = ["Orchestrator", "SummaryOutcome"]
