"""Structural summaries of Rust, JavaScript/TypeScript and Python code."""

from .models import Diagnostic, FileModel, FunctionEntry, ImportDecl, ProjectModel, TypeDecl

__version__ = "0.1.0"

__all__ = [
    "Diagnostic",
    "FileModel",
    "FunctionEntry",
    "ImportDecl",
    "ProjectModel",
    "TypeDecl",
    "__version__",
]
