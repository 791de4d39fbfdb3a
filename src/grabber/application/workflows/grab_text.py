from dataclasses import dataclass
from typing import Any

import aiohttp
from tqdm import tqdm
from src.config.logger_config import logger

from src.grabber.application.cursor import ContinuationCursor, list_extractor
from src.grabber.application.identity import IdentityReconciler
from src.grabber.application.namespaces import parse_namespace_names, select_namespaces, split_start_title
from src.grabber.application.pages import PageIdentityResolver, PageWriter, content_model_override
from src.grabber.application.ports import MirrorStorePort, RemoteSourcePort
from src.grabber.application.revisions import RevisionImporter
from src.grabber.domain.models import PageRecord, PageRestriction, RemoteRevision, TextGrabSummary, api_flag
from src.grabber.domain.rules import is_fandom_comment_title, is_infinity, sanitise_title, to_iso_timestamp, to_mw_timestamp

TEXT_REVISION_PROPS = "ids|flags|timestamp|user|userid|comment|content|tags|contentmodel"


@dataclass(frozen=True)
class TextWorkflowConfig:
    namespaces: tuple[int, ...] | None = None
    start: str | None = None
    end: str | None = None
    skip_fandom_comments: bool = False
    show_progress: bool = True


class GrabTextWorkflow:
    """Walk every page of the selected namespaces and mirror its full history."""

    def __init__(
        self,
        remote: RemoteSourcePort,
        store: MirrorStorePort,
        config: TextWorkflowConfig | None = None,
    ) -> None:
        self.remote = remote
        self.store = store
        self.config = config or TextWorkflowConfig()
        self.pages_written = 0
        self.revisions_inserted = 0
        self.skipped_total = 0

    async def run(self, session: aiohttp.ClientSession) -> TextGrabSummary:
        logger.info("Retrieving namespaces list...")
        siteinfo = await self.remote.fetch_siteinfo(session, "namespaces|statistics")
        namespaces = select_namespaces(
            siteinfo,
            self.config.namespaces,
            skip_fandom_comments=self.config.skip_fandom_comments,
        )
        if self.config.namespaces is None and not self.config.skip_fandom_comments:
            expected = (siteinfo.get("statistics") or {}).get("pages", "?")
            logger.info("Generating page list from all namespaces - {} expected...", expected)
        else:
            logger.info("Generating page list from {} namespaces...", len(namespaces))

        start_ns: int | None = None
        start_text: str | None = None
        if self.config.start:
            start_ns, start_text = split_start_title(self.config.start, parse_namespace_names(siteinfo))
            logger.info("Trying to resume import from page {}", self.config.start)

        identities = IdentityReconciler(self.remote, session, self.store)
        importer = RevisionImporter(self.store, identities)
        writer = PageWriter(self.store, PageIdentityResolver(self.store))

        pages_found = 0
        processed_namespaces: list[int] = []
        with tqdm(total=None, desc="Grab text", unit=" page", leave=True, disable=not self.config.show_progress) as progress:
            for ns in namespaces:
                continue_title = None
                if start_ns is not None:
                    if ns != start_ns:
                        continue
                    # gapfrom takes the title without namespace
                    continue_title = start_text
                    start_ns = None
                processed_namespaces.append(ns)
                pages_found += await self._process_namespace(session, ns, continue_title, importer, writer, progress)

        logger.info("Done - found {} total pages.", pages_found)
        return TextGrabSummary(
            namespaces=tuple(processed_namespaces),
            pages_found=pages_found,
            pages_written=self.pages_written,
            revisions_inserted=self.revisions_inserted,
            skipped_total=self.skipped_total,
        )

    async def _process_namespace(
        self,
        session: aiohttp.ClientSession,
        ns: int,
        continue_title: str | None,
        importer: RevisionImporter,
        writer: PageWriter,
        progress: tqdm,
    ) -> int:
        logger.info("Processing pages from namespace {}...", ns)
        params: dict[str, Any] = {
            "generator": "allpages",
            "gaplimit": "max",
            "prop": "info",
            "inprop": "protection",
            "gapnamespace": ns,
        }
        if continue_title:
            params["gapfrom"] = continue_title

        cursor = ContinuationCursor(
            self.remote,
            session,
            params,
            extract=list_extractor("pages"),
            position=lambda page: page.get("title"),
            legacy_module="allpages",
            operation="allpages",
        )
        ns_page_count = 0
        async for batch in cursor:
            for page in batch:
                if self.config.skip_fandom_comments and is_fandom_comment_title(page.get("title", "")):
                    logger.info('Skipped page "{}": Fandom comment page.', page.get("title"))
                    self.skipped_total += 1
                else:
                    await self._process_page(session, page, importer, writer)
                ns_page_count += 1
                progress.update(1)

        logger.info("{} pages found in namespace {}.", ns_page_count, ns)
        return ns_page_count

    async def _process_page(
        self,
        session: aiohttp.ClientSession,
        page: dict[str, Any],
        importer: RevisionImporter,
        writer: PageWriter,
    ) -> None:
        page_id = int(page["pageid"])
        logger.debug("Processing page id {}...", page_id)

        params: dict[str, Any] = {
            "prop": "info|revisions",
            "rvlimit": "max",
            "rvprop": TEXT_REVISION_PROPS,
            "rvslots": "main",
            "rvdir": "newer",
            "pageids": page_id,
        }
        if self.config.end:
            params["rvend"] = to_iso_timestamp(self.config.end)

        cursor = ContinuationCursor(
            self.remote,
            session,
            params,
            extract=list_extractor("pages"),
            legacy_module="revisions",
            operation="page_revisions",
        )
        record: PageRecord | None = None
        revisions_processed = False
        async for batch in cursor:
            if not batch:
                continue
            info = batch[0]
            if record is None:
                if api_flag(info, "missing"):
                    logger.info("Page id {} not found.", page_id)
                    return
                record = self._page_record(page_id, info)
                logger.debug("Title: {} in namespace {}", record.title, record.namespace)
                # Resolve title conflicts before anything is written for this page
                writer.resolver.reconcile(page_id, record.namespace, record.title)
                self._update_restrictions(page_id, page.get("protection"))
            for raw in info.get("revisions") or []:
                if await importer.process_revision(RemoteRevision.from_api(raw), page_id):
                    self.revisions_inserted += 1
                    revisions_processed = True

        if record is None or not revisions_processed:
            # Already grabbed, the page row does not need updating
            return
        if writer.insert_or_update(record, only_if_newer=False):
            self.pages_written += 1

    def _page_record(self, page_id: int, info: dict[str, Any]) -> PageRecord:
        ns = int(info.get("ns", 0))
        return PageRecord(
            page_id=page_id,
            namespace=ns,
            title=sanitise_title(ns, str(info.get("title", ""))),
            is_redirect=api_flag(info, "redirect"),
            is_new=api_flag(info, "new"),
            length=int(info.get("length") or 0),
            content_model=content_model_override(info.get("contentmodel")),
            latest=int(info.get("lastrevid") or 0),
        )

    def _update_restrictions(self, page_id: int, protection: list[dict[str, Any]] | None) -> None:
        if protection is None:
            return
        restrictions = [
            PageRestriction(
                page_id=page_id,
                type=str(prot["type"]),
                level=str(prot["level"]),
                cascade=api_flag(prot, "cascade"),
                expiry="infinity" if is_infinity(prot.get("expiry")) else to_mw_timestamp(prot["expiry"]),
            )
            # Protections inherited from a cascading page carry a source
            for prot in protection
            if "source" not in prot
        ]
        current = self.store.get_page_restrictions(page_id)
        if sorted(current, key=lambda r: r.type) == sorted(restrictions, key=lambda r: r.type):
            return
        logger.info("Setting page_restrictions on page_id {}.", page_id)
        self.store.replace_page_restrictions(page_id, restrictions)
