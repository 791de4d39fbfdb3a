from dataclasses import dataclass, field
from enum import IntFlag
from typing import Any


class RevisionDeleted(IntFlag):
    TEXT = 1
    COMMENT = 2
    USER = 4
    RESTRICTED = 8


class LogDeleted(IntFlag):
    ACTION = 1
    COMMENT = 2
    USER = 4
    RESTRICTED = 8


def api_flag(data: dict[str, Any], key: str) -> bool:
    # formatversion=1 marks flags with an empty string, formatversion=2 with a boolean
    return key in data and data[key] is not False and data[key] is not None


def api_list(value: Any) -> list[Any]:
    if isinstance(value, dict):
        return list(value.values())
    if isinstance(value, list):
        return value
    return []


@dataclass(frozen=True)
class RemoteRevision:
    revid: int
    parentid: int | None
    timestamp: str
    sha1: str | None
    size: int | None
    content: str | None
    content_model: str | None
    content_format: str | None
    comment: str
    minor: bool
    user_id: int
    user_name: str
    user_hidden: bool = False
    comment_hidden: bool = False
    text_hidden: bool = False
    suppressed: bool = False
    tags: tuple[str, ...] = field(default_factory=tuple)

    @property
    def deleted(self) -> int:
        flags = RevisionDeleted(0)
        if self.user_hidden:
            flags |= RevisionDeleted.USER
        if self.comment_hidden:
            flags |= RevisionDeleted.COMMENT
        if self.text_hidden:
            flags |= RevisionDeleted.TEXT
        if self.suppressed:
            flags |= RevisionDeleted.RESTRICTED
        return int(flags)

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "RemoteRevision":
        main_slot = (data.get("slots") or {}).get("main") or {}
        content = main_slot.get("content", main_slot.get("*"))
        if content is None:
            content = data.get("content", data.get("*"))
        user_hidden = api_flag(data, "userhidden")
        parentid = data.get("parentid")
        size = data.get("size")
        return cls(
            revid=int(data["revid"]),
            parentid=int(parentid) if parentid is not None else None,
            timestamp=str(data.get("timestamp") or ""),
            sha1=data.get("sha1") or None,
            size=int(size) if size is not None else None,
            content=content if isinstance(content, str) else None,
            content_model=main_slot.get("contentmodel") or data.get("contentmodel"),
            content_format=main_slot.get("contentformat") or data.get("contentformat"),
            comment=str(data.get("comment") or ""),
            minor=api_flag(data, "minor"),
            # A hidden user comes without name and id
            user_id=int(data.get("userid") or 0),
            user_name=str(data.get("user") or ""),
            user_hidden=user_hidden,
            comment_hidden=api_flag(data, "commenthidden"),
            text_hidden=api_flag(data, "texthidden"),
            suppressed=api_flag(data, "suppressed"),
            tags=tuple(str(t) for t in data.get("tags") or ()),
        )


@dataclass(frozen=True)
class LocalRevision:
    rev_id: int
    page_id: int
    parent_id: int | None
    timestamp: str
    sha1: str
    length: int
    content: str | None
    content_model: str | None
    content_format: str | None
    comment: str
    minor: bool
    deleted: int
    actor_id: int


@dataclass(frozen=True)
class Identity:
    user_id: int
    name: str
    origin: str
    actor_id: int | None = None

    @property
    def is_registered(self) -> bool:
        return self.user_id != 0


@dataclass(frozen=True)
class PageRecord:
    page_id: int
    namespace: int
    title: str
    is_redirect: bool = False
    is_new: bool = False
    length: int = 0
    content_model: str | None = None
    latest: int = 0
    displaced: bool = False


@dataclass(frozen=True)
class PageRestriction:
    page_id: int
    type: str
    level: str
    cascade: bool
    expiry: str


@dataclass(frozen=True)
class LogEntry:
    log_id: int
    type: str
    action: str
    timestamp: str
    namespace: int
    title: str
    actor_id: int
    params: str
    deleted: int
    comment: str
    page_id: int | None = None
    tags: tuple[str, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class FileVersion:
    name: str
    size: int
    width: int
    height: int
    bits: int
    media_type: str | None
    major_mime: str
    minor_mime: str
    description: str
    actor_id: int
    timestamp: str
    sha1: str
    metadata: str
    archive_name: str | None = None


@dataclass(frozen=True)
class ArchivedFile:
    name: str
    storage_key: str
    size: int
    width: int
    height: int
    bits: int
    major_mime: str
    minor_mime: str
    description: str
    actor_id: int
    timestamp: str
    metadata: str


@dataclass(frozen=True)
class CursorStats:
    batches: int
    items_seen: int
    duplicates_skipped: int
    empty_batches: int


@dataclass(frozen=True)
class TextGrabSummary:
    namespaces: tuple[int, ...]
    pages_found: int
    pages_written: int
    revisions_inserted: int
    skipped_total: int


@dataclass(frozen=True)
class RevisionGrabSummary:
    revisions_processed: int
    revisions_inserted: int
    pages_touched: int
    pages_written: int


@dataclass(frozen=True)
class LogGrabSummary:
    fetched_total: int
    inserted_total: int
    ignored_total: int
    filtered_total: int
    duplicates_skipped: int


@dataclass(frozen=True)
class FileGrabSummary:
    files_seen: int
    versions_inserted: int
    skipped_total: int


@dataclass(frozen=True)
class IntegrityReport:
    revisions_checked: int
    missing_count: int
    mismatch_count: int
    replaced_count: int
    skipped_count: int
    dry_run: bool

    def to_dict(self) -> dict[str, Any]:
        return {
            "revisions_checked": self.revisions_checked,
            "missing_count": self.missing_count,
            "mismatch_count": self.mismatch_count,
            "replaced_count": self.replaced_count,
            "skipped_count": self.skipped_count,
            "dry_run": self.dry_run,
        }
