"""Grab entry points driven by the continuation cursor."""

from src.grabber.application.workflows.check_revisions import CheckRevisionsWorkflow, CheckWorkflowConfig
from src.grabber.application.workflows.grab_files import (
    DeletedFilesWorkflowConfig,
    FilesWorkflowConfig,
    GrabDeletedFilesWorkflow,
    GrabFilesWorkflow,
)
from src.grabber.application.workflows.grab_logs import GrabLogsWorkflow, LogsWorkflowConfig
from src.grabber.application.workflows.grab_revisions import GrabRevisionsWorkflow, RevisionsWorkflowConfig
from src.grabber.application.workflows.grab_text import GrabTextWorkflow, TextWorkflowConfig

__all__ = [
    "CheckRevisionsWorkflow",
    "CheckWorkflowConfig",
    "DeletedFilesWorkflowConfig",
    "FilesWorkflowConfig",
    "GrabDeletedFilesWorkflow",
    "GrabFilesWorkflow",
    "GrabLogsWorkflow",
    "GrabRevisionsWorkflow",
    "GrabTextWorkflow",
    "LogsWorkflowConfig",
    "RevisionsWorkflowConfig",
    "TextWorkflowConfig",
]
