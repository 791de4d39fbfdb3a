from dataclasses import replace
from typing import Any

import aiohttp
from src.config.logger_config import logger

from src.grabber.application.ports import MirrorStorePort, RemoteSourcePort
from src.grabber.application.revisions import RevisionImporter
from src.grabber.domain.errors import ContentAccessError
from src.grabber.domain.models import IntegrityReport, LocalRevision
from src.grabber.domain.rules import base36_to_hex, sha1_base36

MISSING = "missing"
MATCH = "match"
MISMATCH = "mismatch"
REPLACED = "replaced"
SKIPPED = "skipped"


class RevisionIntegrityVerifier:
    """Compare mirrored revisions with the remote checksums and repair empty ones.

    A checksum mismatch is only repaired when the stored revision is empty
    (size 0): bulk XML exports from some hosts silently lose the text of random
    revisions. Any other mismatch is reported and left alone. In dry-run mode
    every read and classification happens, writes are only logged with a
    ``[DRY]`` prefix.
    """

    def __init__(
        self,
        remote: RemoteSourcePort,
        session: aiohttp.ClientSession,
        store: MirrorStorePort,
        importer: RevisionImporter,
        *,
        dry_run: bool = False,
        report_interval: int = 5000,
    ) -> None:
        self.remote = remote
        self.session = session
        self.store = store
        self.importer = importer
        self.dry_run = dry_run
        self.report_interval = max(1, report_interval)
        self.revisions_checked = 0
        self.missing_count = 0
        self.mismatch_count = 0
        self.replaced_count = 0
        self.skipped_count = 0

    def report(self) -> IntegrityReport:
        return IntegrityReport(
            revisions_checked=self.revisions_checked,
            missing_count=self.missing_count,
            mismatch_count=self.mismatch_count,
            replaced_count=self.replaced_count,
            skipped_count=self.skipped_count,
            dry_run=self.dry_run,
        )

    async def handle_revision(self, scanned: dict[str, Any], page_id: int) -> str:
        """Classify one revision of the bulk scan (``ids|timestamp|sha1``)."""
        revid = int(scanned["revid"])
        try:
            return await self._classify(revid, scanned.get("sha1"), page_id)
        finally:
            self.revisions_checked += 1
            if self.revisions_checked % self.report_interval == 0:
                logger.info("{} revisions processed.", self.revisions_checked)

    async def _classify(self, revid: int, remote_sha1: str | None, page_id: int) -> str:
        local = self.store.get_revision(revid)
        if local is None:
            logger.info("Bad revision (missing): {}", revid)
            await self._insert_missing(revid, page_id)
            self.missing_count += 1
            return MISSING

        try:
            ours = base36_to_hex(self.store.compute_revision_sha1(revid))
        except ContentAccessError as exc:
            logger.warning("Problem processing revision {}: {}", revid, exc)
            self.skipped_count += 1
            return SKIPPED

        if ours is None or not remote_sha1 or ours == remote_sha1:
            return MATCH

        logger.warning("Bad revision (hash): {} (ours: {} | theirs: {})", revid, ours, remote_sha1)
        self.mismatch_count += 1
        if local.length != 0:
            return MISMATCH

        await self._replace(local)
        self.replaced_count += 1
        return REPLACED

    async def _insert_missing(self, revid: int, page_id: int) -> None:
        # The bulk scan carries no content, fetch the full revision by id
        remote_rev = await self.remote.fetch_revision(self.session, revid)
        local, ip_hex = await self.importer.build(remote_rev, page_id)
        if self.dry_run:
            logger.info(
                "[DRY] Would have inserted revision {} on {} with content from {} from remote wiki",
                revid,
                page_id,
                remote_rev.user_name,
            )
            return
        self.importer.write(local, ip_hex, remote_rev.tags)
        logger.info("Inserted missing revision {} on page {}", revid, page_id)

    async def _replace(self, local: LocalRevision) -> None:
        remote_rev = await self.remote.fetch_revision(self.session, local.rev_id)
        content = remote_rev.content or ""
        replacement = replace(
            local,
            content=content,
            sha1=sha1_base36(content),
            length=len(content.encode("utf-8")),
            content_model=remote_rev.content_model or local.content_model,
            content_format=remote_rev.content_format or local.content_format,
        )
        if self.dry_run:
            logger.info("[DRY] Would have replaced revision {} with content from remote wiki", local.rev_id)
            return
        self.store.replace_revision(replacement, self.store.get_ip_hex(local.rev_id))
        logger.info("Replaced revision {} with content from remote wiki", local.rev_id)
