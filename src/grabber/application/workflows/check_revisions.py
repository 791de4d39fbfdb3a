from dataclasses import dataclass
from typing import Any

import aiohttp
from tqdm import tqdm
from src.config.logger_config import logger

from src.grabber.application.cursor import ContinuationCursor, list_extractor
from src.grabber.application.identity import IdentityReconciler
from src.grabber.application.integrity import RevisionIntegrityVerifier
from src.grabber.application.namespaces import select_namespaces
from src.grabber.application.ports import MirrorStorePort, RemoteSourcePort
from src.grabber.application.revisions import RevisionImporter
from src.grabber.domain.models import IntegrityReport
from src.grabber.domain.rules import is_fandom_comment_title, to_iso_timestamp


@dataclass(frozen=True)
class CheckWorkflowConfig:
    namespaces: tuple[int, ...] | None = None
    start: str | None = None
    end: str | None = None
    dry_run: bool = False
    report_interval: int = 5000
    skip_fandom_comments: bool = False
    show_progress: bool = True


class CheckRevisionsWorkflow:
    """Check that the mirror holds every remote revision with a matching checksum."""

    def __init__(
        self,
        remote: RemoteSourcePort,
        store: MirrorStorePort,
        config: CheckWorkflowConfig | None = None,
    ) -> None:
        self.remote = remote
        self.store = store
        self.config = config or CheckWorkflowConfig()

    async def run(self, session: aiohttp.ClientSession) -> IntegrityReport:
        params: dict[str, Any] = {
            "list": "allrevisions",
            "arvprop": "ids|timestamp|sha1",
            "arvlimit": "max",
            "arvdir": "newer",
        }
        if self.config.start:
            params["arvstart"] = to_iso_timestamp(self.config.start)
        if self.config.end:
            params["arvend"] = to_iso_timestamp(self.config.end)

        logger.info("Retrieving namespaces list...")
        siteinfo = await self.remote.fetch_siteinfo(session, "namespaces")
        namespaces = select_namespaces(
            siteinfo,
            self.config.namespaces,
            skip_fandom_comments=self.config.skip_fandom_comments,
        )
        params["arvnamespace"] = "|".join(str(ns) for ns in namespaces)

        identities = IdentityReconciler(self.remote, session, self.store, dry_run=self.config.dry_run)
        verifier = RevisionIntegrityVerifier(
            self.remote,
            session,
            self.store,
            RevisionImporter(self.store, identities),
            dry_run=self.config.dry_run,
            report_interval=self.config.report_interval,
        )
        cursor = ContinuationCursor(
            self.remote,
            session,
            params,
            extract=list_extractor("allrevisions"),
            position=lambda page: (page.get("revisions") or [{}])[-1].get("timestamp"),
            fail_on_empty=True,
            operation="check_revisions",
        )

        logger.info("Checking revisions...")
        with tqdm(total=None, desc="Check revisions", unit=" rev", leave=True, disable=not self.config.show_progress) as progress:
            async for batch in cursor:
                for page in batch:
                    if self.config.skip_fandom_comments and is_fandom_comment_title(page.get("title", "")):
                        continue
                    for rev in page.get("revisions") or []:
                        await verifier.handle_revision(rev, int(page["pageid"]))
                        progress.update(1)

        report = verifier.report()
        logger.info(
            "Done. {} revisions checked. {} revisions missing. {} hash mismatches. {} revisions replaced. {} skipped.",
            report.revisions_checked,
            report.missing_count,
            report.mismatch_count,
            report.replaced_count,
            report.skipped_count,
        )
        return report
