import asyncio
from dataclasses import replace
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import aiohttp
from src.config.logger_config import logger
from src.config.settings import load_settings

from src.grabber.application.workflows import (
    CheckRevisionsWorkflow,
    CheckWorkflowConfig,
    DeletedFilesWorkflowConfig,
    FilesWorkflowConfig,
    GrabDeletedFilesWorkflow,
    GrabFilesWorkflow,
    GrabLogsWorkflow,
    GrabRevisionsWorkflow,
    GrabTextWorkflow,
    LogsWorkflowConfig,
    RevisionsWorkflowConfig,
    TextWorkflowConfig,
)
from src.grabber.domain.errors import InvalidOptionError
from src.grabber.domain.models import (
    FileGrabSummary,
    IntegrityReport,
    LogGrabSummary,
    RevisionGrabSummary,
    TextGrabSummary,
)
from src.grabber.infrastructure.mw_client import MediaWikiClient, RetryPolicy
from src.grabber.infrastructure.raw_sink import RawApiJsonlSink
from src.grabber.infrastructure.store_sqlite import SQLiteMirrorStore


async def _run_workflow(
    workflow_cls: Any,
    config: Any,
    *,
    base_url: str | None,
    username: str | None,
    password: str | None,
    db_path: str | Path | None,
    raw_dir: str | Path | None,
    show_progress: bool,
) -> Any:
    settings = load_settings()
    base_url = base_url or settings.api_url
    if not base_url:
        raise InvalidOptionError("The URL to the target wiki's api.php is required.")
    username = username or settings.username
    password = password or settings.password

    raw_path = Path(raw_dir or settings.raw_dir)
    raw_path.mkdir(parents=True, exist_ok=True)
    db_file_path = Path(db_path or settings.db_path)
    db_file_path.parent.mkdir(parents=True, exist_ok=True)
    run_id = _build_run_id()

    raw_sink = RawApiJsonlSink(raw_path, run_id=run_id)
    store: SQLiteMirrorStore | None = None
    try:
        store = SQLiteMirrorStore(db_file_path)
        mw_client = MediaWikiClient(
            base_url=base_url,
            raw_sink=raw_sink,
            run_id=run_id,
            retry_policy=RetryPolicy(delays=settings.retry_delays),
            user_agent=settings.user_agent,
        )
        workflow = workflow_cls(mw_client, store, replace(config, show_progress=show_progress))
        # One connection: requests are strictly sequential
        connector = aiohttp.TCPConnector(limit=1, ttl_dns_cache=300)
        async with aiohttp.ClientSession(connector=connector) as session:
            if username and password:
                await mw_client.login(session, username, password)
            logger.info("Run {} started against {}", run_id, base_url)
            return await workflow.run(session)
    finally:
        raw_sink.close()
        if store is not None:
            store.close()


async def run_text_async(
    *,
    base_url: str | None = None,
    username: str | None = None,
    password: str | None = None,
    db_path: str | Path | None = None,
    raw_dir: str | Path | None = None,
    workflow_config: TextWorkflowConfig | None = None,
    show_progress: bool = True,
) -> TextGrabSummary:
    return await _run_workflow(
        GrabTextWorkflow,
        workflow_config or TextWorkflowConfig(),
        base_url=base_url,
        username=username,
        password=password,
        db_path=db_path,
        raw_dir=raw_dir,
        show_progress=show_progress,
    )


def run_text(**kwargs: Any) -> TextGrabSummary:
    return asyncio.run(run_text_async(**kwargs))


async def run_revisions_async(
    *,
    base_url: str | None = None,
    username: str | None = None,
    password: str | None = None,
    db_path: str | Path | None = None,
    raw_dir: str | Path | None = None,
    workflow_config: RevisionsWorkflowConfig | None = None,
    show_progress: bool = True,
) -> RevisionGrabSummary:
    return await _run_workflow(
        GrabRevisionsWorkflow,
        workflow_config or RevisionsWorkflowConfig(),
        base_url=base_url,
        username=username,
        password=password,
        db_path=db_path,
        raw_dir=raw_dir,
        show_progress=show_progress,
    )


def run_revisions(**kwargs: Any) -> RevisionGrabSummary:
    return asyncio.run(run_revisions_async(**kwargs))


async def run_logs_async(
    *,
    base_url: str | None = None,
    username: str | None = None,
    password: str | None = None,
    db_path: str | Path | None = None,
    raw_dir: str | Path | None = None,
    workflow_config: LogsWorkflowConfig | None = None,
    show_progress: bool = True,
) -> LogGrabSummary:
    return await _run_workflow(
        GrabLogsWorkflow,
        workflow_config or LogsWorkflowConfig(),
        base_url=base_url,
        username=username,
        password=password,
        db_path=db_path,
        raw_dir=raw_dir,
        show_progress=show_progress,
    )


def run_logs(**kwargs: Any) -> LogGrabSummary:
    return asyncio.run(run_logs_async(**kwargs))


async def run_files_async(
    *,
    base_url: str | None = None,
    username: str | None = None,
    password: str | None = None,
    db_path: str | Path | None = None,
    raw_dir: str | Path | None = None,
    workflow_config: FilesWorkflowConfig | None = None,
    show_progress: bool = True,
) -> FileGrabSummary:
    return await _run_workflow(
        GrabFilesWorkflow,
        workflow_config or FilesWorkflowConfig(),
        base_url=base_url,
        username=username,
        password=password,
        db_path=db_path,
        raw_dir=raw_dir,
        show_progress=show_progress,
    )


def run_files(**kwargs: Any) -> FileGrabSummary:
    return asyncio.run(run_files_async(**kwargs))


async def run_deleted_files_async(
    *,
    base_url: str | None = None,
    username: str | None = None,
    password: str | None = None,
    db_path: str | Path | None = None,
    raw_dir: str | Path | None = None,
    workflow_config: DeletedFilesWorkflowConfig | None = None,
    show_progress: bool = True,
) -> FileGrabSummary:
    return await _run_workflow(
        GrabDeletedFilesWorkflow,
        workflow_config or DeletedFilesWorkflowConfig(),
        base_url=base_url,
        username=username,
        password=password,
        db_path=db_path,
        raw_dir=raw_dir,
        show_progress=show_progress,
    )


def run_deleted_files(**kwargs: Any) -> FileGrabSummary:
    return asyncio.run(run_deleted_files_async(**kwargs))


async def run_check_async(
    *,
    base_url: str | None = None,
    username: str | None = None,
    password: str | None = None,
    db_path: str | Path | None = None,
    raw_dir: str | Path | None = None,
    workflow_config: CheckWorkflowConfig | None = None,
    show_progress: bool = True,
) -> IntegrityReport:
    return await _run_workflow(
        CheckRevisionsWorkflow,
        workflow_config or CheckWorkflowConfig(),
        base_url=base_url,
        username=username,
        password=password,
        db_path=db_path,
        raw_dir=raw_dir,
        show_progress=show_progress,
    )


def run_check(**kwargs: Any) -> IntegrityReport:
    return asyncio.run(run_check_async(**kwargs))


def _build_run_id() -> str:
    return datetime.now(timezone.utc).strftime("grab_%Y%m%dT%H%M%S%fZ")
