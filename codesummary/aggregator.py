"""Collects per-file models into a single project model."""

from __future__ import annotations

from typing import Dict, List

from .logging import get_logger
from .models import Diagnostic, FileModel, ProjectModel


class Aggregator:
    """Accumulates file models keyed by path, rejecting duplicates."""

    def __init__(self) -> None:
        self.logger = get_logger("aggregator")
        self._files: Dict[str, FileModel] = {}
        self._diagnostics: List[Diagnostic] = []

    def add(self, model: FileModel) -> bool:
        """Insert ``model``; returns False when its path was already added."""
        if model.path in self._files:
            message = f"Duplicate file model for {model.path}; keeping the first one"
            self.logger.warning(message)
            self._diagnostics.append(
                Diagnostic(stage="aggregate", path=model.path, message=message, level="warning")
            )
            return False
        self._files[model.path] = model
        return True

    def add_diagnostic(self, diagnostic: Diagnostic) -> None:
        self._diagnostics.append(diagnostic)

    def build(self) -> ProjectModel:
        return ProjectModel(files=self._files, diagnostics=self._diagnostics)


__all__ = ["Aggregator"]
