import json
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

import aiohttp
from tqdm import tqdm
from src.config.logger_config import logger

from src.grabber.application.cursor import ContinuationCursor, list_extractor
from src.grabber.application.identity import IdentityReconciler
from src.grabber.application.ports import MirrorStorePort, RemoteSourcePort
from src.grabber.domain.models import ArchivedFile, FileGrabSummary, FileVersion
from src.grabber.domain.rules import (
    MW_TIMESTAMP_FORMAT,
    file_storage_key,
    hex_to_base36,
    sanitise_title,
    to_mw_timestamp,
)

IMAGEINFO_PROPS = "timestamp|user|userid|comment|url|size|sha1|mime|metadata|archivename|bitdepth|mediatype"
FILEARCHIVE_PROPS = "sha1|timestamp|user|size|dimensions|description|mime|metadata|bitdepth"


def split_mime(mime: str | None) -> tuple[str, str]:
    if not mime or "/" not in mime:
        return "unknown", "unknown"
    major, minor = mime.split("/", 1)
    return major, minor


def _is_remote_video(version: dict[str, Any]) -> bool:
    # Wikia stored YouTube embeds as pseudo files
    return version.get("mime") == "video/youtube" and str(version.get("mediatype", "")).upper() == "VIDEO"


@dataclass(frozen=True)
class FilesWorkflowConfig:
    start: str | None = None
    end: str | None = None
    show_progress: bool = True


class GrabFilesWorkflow:
    """Mirror file description rows (``image``/``oldimage``); the bytes are not downloaded."""

    def __init__(
        self,
        remote: RemoteSourcePort,
        store: MirrorStorePort,
        config: FilesWorkflowConfig | None = None,
    ) -> None:
        self.remote = remote
        self.store = store
        self.config = config or FilesWorkflowConfig()
        self._grabbed_this_run: set[str] = set()

    async def run(self, session: aiohttp.ClientSession) -> FileGrabSummary:
        end = (
            to_mw_timestamp(self.config.end)
            if self.config.end
            else datetime.now(timezone.utc).strftime(MW_TIMESTAMP_FORMAT)
        )
        params: dict[str, Any] = {
            "generator": "allimages",
            "gailimit": "max",
            "prop": "imageinfo",
            "iiprop": IMAGEINFO_PROPS,
            "iilimit": "max",
        }
        if self.config.start:
            params["gaifrom"] = self.config.start

        identities = IdentityReconciler(self.remote, session, self.store)
        cursor = ContinuationCursor(
            self.remote,
            session,
            params,
            extract=list_extractor("pages"),
            position=lambda page: page.get("title"),
            legacy_module="allimages",
            fail_on_empty=True,
            operation="allimages",
        )

        logger.info("Processing file descriptions...")
        files_seen = 0
        versions_inserted = 0
        skipped_total = 0
        with tqdm(total=None, desc="Grab files", unit=" file", leave=True, disable=not self.config.show_progress) as progress:
            async for batch in cursor:
                for page in batch:
                    files_seen += 1
                    count = await self._process_file(page, end, identities)
                    versions_inserted += count
                    if not count:
                        skipped_total += 1
                    progress.update(1)

        logger.info("{} file versions stored.", versions_inserted)
        return FileGrabSummary(files_seen=files_seen, versions_inserted=versions_inserted, skipped_total=skipped_total)

    async def _process_file(self, page: dict[str, Any], end: str, identities: IdentityReconciler) -> int:
        name = sanitise_title(6, str(page.get("title", "")))
        # imageinfo continuation returns the same file again with its older versions
        if name not in self._grabbed_this_run and self.store.image_exists(name):
            return 0

        count = 0
        for version in page.get("imageinfo") or []:
            timestamp = to_mw_timestamp(version["timestamp"])
            if not count and end < timestamp:
                logger.debug("Skipping {}: newer than {}", name, end)
                return 0
            if _is_remote_video(version):
                logger.info("{} appears to be a video, skipping it.", name)
                continue

            identity = await identities.resolve(int(version.get("userid") or 0), version.get("user"))
            major, minor = split_mime(version.get("mime"))
            file_version = FileVersion(
                name=name,
                size=int(version.get("size") or 0),
                width=int(version.get("width") or 0),
                height=int(version.get("height") or 0),
                bits=int(version.get("bitdepth") or 0),
                media_type=version.get("mediatype"),
                major_mime=major,
                minor_mime=minor,
                description=str(version.get("comment") or ""),
                actor_id=identity.actor_id or 0,
                timestamp=timestamp,
                sha1=hex_to_base36(version.get("sha1")) or "",
                metadata=json.dumps(version.get("metadata"), ensure_ascii=False),
                archive_name=version.get("archivename"),
            )
            if file_version.archive_name:
                written = self.store.insert_old_image(file_version)
            else:
                written = self.store.insert_image(file_version)
            if written:
                self._grabbed_this_run.add(name)
                count += 1

        if count:
            logger.info("Processing {}: {} revision{}", page.get("title"), count, "" if count == 1 else "s")
        return count


@dataclass(frozen=True)
class DeletedFilesWorkflowConfig:
    start: str | None = None
    show_progress: bool = True


class GrabDeletedFilesWorkflow:
    """Mirror ``list=filearchive`` metadata into ``filearchive``."""

    def __init__(
        self,
        remote: RemoteSourcePort,
        store: MirrorStorePort,
        config: DeletedFilesWorkflowConfig | None = None,
    ) -> None:
        self.remote = remote
        self.store = store
        self.config = config or DeletedFilesWorkflowConfig()

    async def run(self, session: aiohttp.ClientSession) -> FileGrabSummary:
        params: dict[str, Any] = {"list": "filearchive", "falimit": "max", "faprop": FILEARCHIVE_PROPS}
        if self.config.start:
            params["fafrom"] = self.config.start

        identities = IdentityReconciler(self.remote, session, self.store)
        cursor = ContinuationCursor(
            self.remote,
            session,
            params,
            extract=list_extractor("filearchive"),
            position=lambda entry: entry.get("name"),
            legacy_module="filearchive",
            fail_on_empty=True,
            operation="filearchive",
        )

        logger.info("Processing file metadata...")
        files_seen = 0
        inserted = 0
        skipped = 0
        with tqdm(total=None, desc="Grab deleted files", unit=" file", leave=True, disable=not self.config.show_progress) as progress:
            async for batch in cursor:
                for entry in batch:
                    files_seen += 1
                    if files_seen % 500 == 0:
                        logger.info("{}", files_seen)
                    if await self._process_file(entry, identities):
                        inserted += 1
                    else:
                        skipped += 1
                progress.update(len(batch))

        logger.info("{} files found.", files_seen)
        return FileGrabSummary(files_seen=files_seen, versions_inserted=inserted, skipped_total=skipped)

    async def _process_file(self, entry: dict[str, Any], identities: IdentityReconciler) -> bool:
        name = str(entry.get("name", ""))
        # Size and sha1 are missing when the file cannot be viewed
        if entry.get("size") is None or not entry.get("sha1"):
            logger.debug("Skipping deleted file {}: not viewable", name)
            return False

        if entry.get("user") is not None:
            identity = await identities.resolve(int(entry.get("userid") or 0), entry.get("user"))
        else:
            identity = await identities.resolve(0, "")
        major, minor = split_mime(entry.get("mime"))
        archived = ArchivedFile(
            name=name,
            storage_key=file_storage_key(str(entry["sha1"]), name),
            size=int(entry["size"]),
            width=int(entry.get("width") or 0),
            height=int(entry.get("height") or 0),
            bits=int(entry.get("bitdepth") or 0),
            major_mime=major,
            minor_mime=minor,
            description=str(entry.get("description") or ""),
            actor_id=identity.actor_id or 0,
            timestamp=to_mw_timestamp(entry["timestamp"]),
            metadata=json.dumps(entry.get("metadata"), ensure_ascii=False),
        )
        return self.store.insert_archived_file(archived)
