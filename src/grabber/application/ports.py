from contextlib import AbstractContextManager
from typing import Any, Protocol, runtime_checkable

import aiohttp

from src.grabber.domain.models import (
    ArchivedFile,
    FileVersion,
    Identity,
    LocalRevision,
    LogEntry,
    PageRecord,
    PageRestriction,
    RemoteRevision,
)


@runtime_checkable
class RemoteSourcePort(Protocol):
    async def query(self, session: aiohttp.ClientSession, params: dict[str, Any], *, operation: str) -> dict[str, Any]:
        """Run one API query; continuation keys are returned untouched in the body."""
        ...

    async def fetch_siteinfo(self, session: aiohttp.ClientSession, siprop: str = ...) -> dict[str, Any]: ...

    async def fetch_revision(self, session: aiohttp.ClientSession, revid: int) -> RemoteRevision:
        """Fetch a single revision with full content."""
        ...

    async def fetch_user_name(self, session: aiohttp.ClientSession, userid: int) -> str | None:
        """Authoritative current name for a user id, None when the user is gone."""
        ...


@runtime_checkable
class MirrorStorePort(Protocol):
    def transaction(self) -> AbstractContextManager[Any]: ...

    def get_actor_by_user_id(self, user_id: int) -> Identity | None: ...

    def get_actor_by_name(self, name: str) -> Identity | None: ...

    def acquire_actor(self, identity: Identity) -> int: ...

    def rename_actor(self, user_id: int, new_name: str) -> None: ...

    def get_page(self, page_id: int) -> PageRecord | None: ...

    def find_live_page_id(self, namespace: int, title: str) -> int | None: ...

    def displace_page(self, page_id: int) -> None: ...

    def insert_page(self, page: PageRecord) -> None: ...

    def update_page(self, page: PageRecord) -> None: ...

    def get_page_restrictions(self, page_id: int) -> list[PageRestriction]: ...

    def replace_page_restrictions(self, page_id: int, restrictions: list[PageRestriction]) -> None: ...

    def revision_exists(self, rev_id: int) -> bool: ...

    def get_revision(self, rev_id: int) -> LocalRevision | None: ...

    def compute_revision_sha1(self, rev_id: int) -> str:
        """Base-36 checksum of the stored content; raises ContentAccessError when unreadable."""
        ...

    def insert_revision(self, rev: LocalRevision, ip_hex: str | None = None) -> None: ...

    def replace_revision(self, rev: LocalRevision, ip_hex: str | None = None) -> None: ...

    def get_ip_hex(self, rev_id: int) -> str | None: ...

    def latest_revision_timestamp(self) -> str | None: ...

    def insert_tags(self, tags: Any, rev_id: int | None = None, log_id: int | None = None) -> None: ...

    def insert_log_entry(self, entry: LogEntry) -> bool: ...

    def latest_log_timestamp(self) -> str | None: ...

    def image_exists(self, name: str) -> bool: ...

    def insert_image(self, version: FileVersion) -> bool: ...

    def insert_old_image(self, version: FileVersion) -> bool: ...

    def insert_archived_file(self, archived: ArchivedFile) -> bool: ...

    def close(self) -> None: ...
