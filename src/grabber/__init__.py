"""Incremental MediaWiki mirror."""

from src.grabber.domain.models import (
    FileGrabSummary,
    IntegrityReport,
    LogGrabSummary,
    RevisionGrabSummary,
    TextGrabSummary,
)
from src.grabber.grab import (
    run_check,
    run_check_async,
    run_deleted_files,
    run_deleted_files_async,
    run_files,
    run_files_async,
    run_logs,
    run_logs_async,
    run_revisions,
    run_revisions_async,
    run_text,
    run_text_async,
)

__all__ = [
    "FileGrabSummary",
    "IntegrityReport",
    "LogGrabSummary",
    "RevisionGrabSummary",
    "run_check",
    "run_check_async",
    "run_deleted_files",
    "run_deleted_files_async",
    "run_files",
    "run_files_async",
    "run_logs",
    "run_logs_async",
    "run_revisions",
    "run_revisions_async",
    "run_text",
    "run_text_async",
    "TextGrabSummary",
]
