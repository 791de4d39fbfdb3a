from dataclasses import dataclass
from typing import Any

import aiohttp
from tqdm import tqdm
from src.config.logger_config import logger

from src.grabber.application.cursor import ContinuationCursor, list_extractor
from src.grabber.application.identity import IdentityReconciler
from src.grabber.application.namespaces import select_namespaces
from src.grabber.application.pages import PageIdentityResolver, PageWriter, content_model_override
from src.grabber.application.ports import MirrorStorePort, RemoteSourcePort
from src.grabber.application.revisions import RevisionImporter
from src.grabber.domain.models import PageRecord, RemoteRevision, RevisionGrabSummary
from src.grabber.domain.rules import is_fandom_comment_title, one_second_before, sanitise_title, to_iso_timestamp

ALLREVISIONS_PROPS = "ids|flags|timestamp|user|userid|comment|content|tags|contentmodel|size"


@dataclass(frozen=True)
class RevisionsWorkflowConfig:
    namespaces: tuple[int, ...] | None = None
    start: str | None = None
    end: str | None = None
    new_revisions: bool = False
    skip_fandom_comments: bool = False
    show_progress: bool = True


def _last_timestamp(page: dict[str, Any]) -> str | None:
    revisions = page.get("revisions") or []
    return revisions[-1].get("timestamp") if revisions else None


class GrabRevisionsWorkflow:
    """Mirror revisions from ``list=allrevisions``, oldest first."""

    def __init__(
        self,
        remote: RemoteSourcePort,
        store: MirrorStorePort,
        config: RevisionsWorkflowConfig | None = None,
    ) -> None:
        self.remote = remote
        self.store = store
        self.config = config or RevisionsWorkflowConfig()

    async def run(self, session: aiohttp.ClientSession) -> RevisionGrabSummary:
        logger.info("Retrieving namespaces list...")
        siteinfo = await self.remote.fetch_siteinfo(session, "namespaces|statistics")
        namespaces = select_namespaces(
            siteinfo,
            self.config.namespaces,
            skip_fandom_comments=self.config.skip_fandom_comments,
        )
        all_namespaces = self.config.namespaces is None and not self.config.skip_fandom_comments
        if all_namespaces:
            expected = (siteinfo.get("statistics") or {}).get("edits", "?")
            logger.info("Generating revision list from all namespaces - {} expected...", expected)
        else:
            logger.info("Generating revision list from {} namespaces...", len(namespaces))

        params: dict[str, Any] = {
            "list": "allrevisions",
            "arvlimit": "max",
            "arvdir": "newer",
            "arvprop": ALLREVISIONS_PROPS,
            "arvslots": "main",
        }
        if not all_namespaces:
            params["arvnamespace"] = "|".join(str(ns) for ns in namespaces)
        start = self._resolve_start()
        if start:
            params["arvstart"] = start
        if self.config.end:
            params["arvend"] = to_iso_timestamp(self.config.end)

        identities = IdentityReconciler(self.remote, session, self.store)
        importer = RevisionImporter(self.store, identities)
        writer = PageWriter(self.store, PageIdentityResolver(self.store))

        cursor = ContinuationCursor(
            self.remote,
            session,
            params,
            extract=list_extractor("allrevisions"),
            position=_last_timestamp,
            operation="allrevisions",
        )
        revisions_processed = 0
        revisions_inserted = 0
        pages_written = 0
        pages_touched: set[int] = set()
        with tqdm(total=None, desc="Grab revisions", unit=" rev", leave=True, disable=not self.config.show_progress) as progress:
            async for batch in cursor:
                results_count = 0
                for page in batch:
                    if self.config.skip_fandom_comments and is_fandom_comment_title(page.get("title", "")):
                        logger.info('Skipped page "{}": Fandom comment page.', page.get("title"))
                        continue
                    page_id = int(page["pageid"])
                    revisions = page.get("revisions") or []
                    for raw in revisions:
                        if await importer.process_revision(RemoteRevision.from_api(raw), page_id):
                            revisions_inserted += 1
                        results_count += 1
                    if revisions and writer.insert_or_update(self._page_record(page), only_if_newer=True):
                        pages_written += 1
                    pages_touched.add(page_id)
                revisions_processed += results_count
                progress.update(results_count)
                logger.info("{}/{}, arvstart: {}", results_count, revisions_processed, cursor.last_position)

        logger.info("Done - updated {} total pages.", len(pages_touched))
        return RevisionGrabSummary(
            revisions_processed=revisions_processed,
            revisions_inserted=revisions_inserted,
            pages_touched=len(pages_touched),
            pages_written=pages_written,
        )

    def _resolve_start(self) -> str | None:
        start = self.config.start
        if self.config.new_revisions:
            start = self.store.latest_revision_timestamp()
            if start is None:
                logger.info("No revisions in the database, start from scratch.")
                return None
            logger.info("Latest revision's timestamp: {}", start)
        if not start:
            return None
        # One second back so revisions sharing the boundary timestamp are not lost
        return one_second_before(start)

    @staticmethod
    def _page_record(page: dict[str, Any]) -> PageRecord:
        ns = int(page.get("ns", 0))
        last = page["revisions"][-1]
        return PageRecord(
            page_id=int(page["pageid"]),
            namespace=ns,
            title=sanitise_title(ns, str(page.get("title", ""))),
            length=int(last.get("size") or 0),
            content_model=content_model_override(page.get("contentmodel")),
            latest=int(last["revid"]),
        )
