from dataclasses import dataclass
from typing import Any

import aiohttp
from tqdm import tqdm
from src.config.logger_config import logger

from src.grabber.application.cursor import ContinuationCursor, list_extractor
from src.grabber.application.identity import IdentityReconciler
from src.grabber.application.namespaces import parse_namespace_names
from src.grabber.application.ports import MirrorStorePort, RemoteSourcePort
from src.grabber.domain.log_params import LogParamsTranscoder, TranscodeContext
from src.grabber.domain.models import LogDeleted, LogEntry, LogGrabSummary, api_flag
from src.grabber.domain.rules import one_second_before, sanitise_title, to_iso_timestamp, to_mw_timestamp

LOGEVENTS_PROPS = "ids|title|type|user|userid|timestamp|comment|details|tags"
# Wikia renamed some users to "Wikia-..." in 2006-2007, about ten log entries are affected
WIKIA_BUG_BEFORE = "20080000000000"


@dataclass(frozen=True)
class LogsWorkflowConfig:
    start: str | None = None
    end: str | None = None
    resume: bool = False
    log_types: tuple[str, ...] | None = None
    leaction: str | None = None
    show_progress: bool = True


class GrabLogsWorkflow:
    def __init__(
        self,
        remote: RemoteSourcePort,
        store: MirrorStorePort,
        config: LogsWorkflowConfig | None = None,
    ) -> None:
        self.remote = remote
        self.store = store
        self.config = config or LogsWorkflowConfig()

    async def run(self, session: aiohttp.ClientSession) -> LogGrabSummary:
        siteinfo = await self.remote.fetch_siteinfo(session, "namespaces")
        transcoder = LogParamsTranscoder(TranscodeContext(namespace_names=parse_namespace_names(siteinfo)))
        identities = IdentityReconciler(self.remote, session, self.store)

        params: dict[str, Any] = {
            "list": "logevents",
            "lelimit": "max",
            "ledir": "newer",
            "leprop": LOGEVENTS_PROPS,
        }
        log_types = self.config.log_types
        if log_types and len(log_types) == 1:
            params["letype"] = log_types[0]
        start = self._resolve_start()
        if start:
            params["lestart"] = to_iso_timestamp(start)
        if self.config.end:
            params["leend"] = to_iso_timestamp(self.config.end)
        if self.config.leaction:
            params["leaction"] = self.config.leaction

        # The API paginates by timestamp and entries sharing one can be returned
        # again at the start of the next batch; the previous batch ids guard that
        cursor = ContinuationCursor(
            self.remote,
            session,
            params,
            extract=list_extractor("logevents"),
            key=lambda entry: int(entry["logid"]),
            position=lambda entry: entry.get("timestamp"),
            legacy_module="logevents",
            operation="logevents",
        )

        logger.info("Fetching log events...")
        fetched_total = 0
        inserted_total = 0
        ignored_total = 0
        filtered_total = 0
        with tqdm(total=None, desc="Grab logs", unit=" log", leave=True, disable=not self.config.show_progress) as progress:
            async for batch in cursor:
                for raw in batch:
                    fetched_total += 1
                    if log_types and raw.get("type") not in log_types:
                        filtered_total += 1
                        continue
                    entry = await self._build_entry(raw, identities, transcoder)
                    if self.store.insert_log_entry(entry):
                        inserted_total += 1
                    else:
                        ignored_total += 1
                    if fetched_total % 500 == 0:
                        logger.info("{} logs fetched...", fetched_total)
                progress.update(len(batch))

        if cursor.batches == 0:
            logger.info("No log events found...")
        logger.info("Done. {} logs fetched.", fetched_total)
        return LogGrabSummary(
            fetched_total=fetched_total,
            inserted_total=inserted_total,
            ignored_total=ignored_total,
            filtered_total=filtered_total,
            duplicates_skipped=cursor.duplicates_skipped,
        )

    def _resolve_start(self) -> str | None:
        if not self.config.resume:
            return self.config.start
        latest = self.store.latest_log_timestamp()
        if not latest:
            logger.info("No log entries in the database, start from scratch.")
            return None
        start = one_second_before(latest)
        logger.info("Resume from start = {}", start)
        return start

    async def _build_entry(
        self,
        raw: dict[str, Any],
        identities: IdentityReconciler,
        transcoder: LogParamsTranscoder,
    ) -> LogEntry:
        deleted = LogDeleted(0)
        title = raw.get("title")
        ns = raw.get("ns")
        comment = raw.get("comment")
        user = raw.get("user")
        userid = raw.get("userid")
        if api_flag(raw, "actionhidden"):
            deleted |= LogDeleted.ACTION
            if title is None:
                title, ns = "", 0
        if api_flag(raw, "commenthidden"):
            deleted |= LogDeleted.COMMENT
        if api_flag(raw, "userhidden"):
            deleted |= LogDeleted.USER
            if user is None:
                user, userid = "", 0
        if api_flag(raw, "suppressed"):
            deleted |= LogDeleted.RESTRICTED

        ns = int(ns or 0)
        timestamp = to_mw_timestamp(raw["timestamp"])
        user = str(user or "")
        if timestamp < WIKIA_BUG_BEFORE and user.startswith("Wikia-"):
            user = user[:6]

        identity = await identities.resolve(int(userid or 0), user)
        logpage = raw.get("logpage")
        return LogEntry(
            log_id=int(raw["logid"]),
            type=str(raw["type"]),
            action=str(raw["action"]),
            timestamp=timestamp,
            namespace=ns,
            title=sanitise_title(ns, str(title or "")),
            actor_id=identity.actor_id or 0,
            params=transcoder.encode(raw),
            deleted=int(deleted),
            comment=str(comment or ""),
            # Page id at the time of the action, missing on old wikis
            page_id=int(logpage) if logpage else None,
            tags=tuple(str(t) for t in raw.get("tags") or ()),
        )
