import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path

from src.grabber.domain.errors import ContentAccessError, StoreContractError
from src.grabber.domain.models import (
    ArchivedFile,
    FileVersion,
    Identity,
    LocalRevision,
    LogEntry,
    PageRecord,
    PageRestriction,
)
from src.grabber.domain.rules import MW_TIMESTAMP_FORMAT, sha1_base36

SCHEMA = """
CREATE TABLE IF NOT EXISTS actor (
    actor_id INTEGER PRIMARY KEY AUTOINCREMENT,
    actor_user INTEGER UNIQUE,
    actor_name TEXT NOT NULL UNIQUE
);
CREATE TABLE IF NOT EXISTS page (
    page_id INTEGER PRIMARY KEY,
    page_namespace INTEGER NOT NULL,
    page_title TEXT NOT NULL,
    page_is_redirect INTEGER NOT NULL DEFAULT 0,
    page_is_new INTEGER NOT NULL DEFAULT 0,
    page_touched TEXT NOT NULL,
    page_latest INTEGER NOT NULL DEFAULT 0,
    page_len INTEGER NOT NULL DEFAULT 0,
    page_content_model TEXT,
    page_displaced INTEGER NOT NULL DEFAULT 0
);
CREATE UNIQUE INDEX IF NOT EXISTS page_name_title
    ON page(page_namespace, page_title) WHERE page_displaced = 0;
CREATE TABLE IF NOT EXISTS page_restrictions (
    pr_id INTEGER PRIMARY KEY AUTOINCREMENT,
    pr_page INTEGER NOT NULL,
    pr_type TEXT NOT NULL,
    pr_level TEXT NOT NULL,
    pr_cascade INTEGER NOT NULL DEFAULT 0,
    pr_expiry TEXT,
    UNIQUE (pr_page, pr_type)
);
CREATE TABLE IF NOT EXISTS revision (
    rev_id INTEGER PRIMARY KEY,
    rev_page INTEGER NOT NULL,
    rev_parent_id INTEGER,
    rev_timestamp TEXT NOT NULL,
    rev_sha1 TEXT NOT NULL,
    rev_len INTEGER NOT NULL DEFAULT 0,
    rev_minor_edit INTEGER NOT NULL DEFAULT 0,
    rev_deleted INTEGER NOT NULL DEFAULT 0,
    rev_actor INTEGER NOT NULL,
    rev_comment TEXT NOT NULL DEFAULT ''
);
CREATE INDEX IF NOT EXISTS rev_timestamp ON revision(rev_timestamp);
CREATE INDEX IF NOT EXISTS rev_page_timestamp ON revision(rev_page, rev_timestamp);
CREATE TABLE IF NOT EXISTS content (
    content_id INTEGER PRIMARY KEY AUTOINCREMENT,
    content_size INTEGER NOT NULL,
    content_sha1 TEXT NOT NULL,
    content_model TEXT,
    content_format TEXT,
    content_text TEXT
);
CREATE TABLE IF NOT EXISTS slots (
    slot_revision_id INTEGER NOT NULL,
    slot_role TEXT NOT NULL DEFAULT 'main',
    slot_content_id INTEGER NOT NULL,
    PRIMARY KEY (slot_revision_id, slot_role)
);
CREATE TABLE IF NOT EXISTS ip_changes (
    ipc_rev_id INTEGER PRIMARY KEY,
    ipc_rev_timestamp TEXT NOT NULL,
    ipc_hex TEXT NOT NULL
);
CREATE TABLE IF NOT EXISTS logging (
    log_id INTEGER PRIMARY KEY,
    log_type TEXT NOT NULL,
    log_action TEXT NOT NULL,
    log_timestamp TEXT NOT NULL,
    log_actor INTEGER NOT NULL,
    log_namespace INTEGER NOT NULL DEFAULT 0,
    log_title TEXT NOT NULL DEFAULT '',
    log_page INTEGER,
    log_comment TEXT NOT NULL DEFAULT '',
    log_params TEXT NOT NULL DEFAULT '',
    log_deleted INTEGER NOT NULL DEFAULT 0
);
CREATE INDEX IF NOT EXISTS log_times ON logging(log_timestamp);
CREATE TABLE IF NOT EXISTS change_tag_def (
    ctd_id INTEGER PRIMARY KEY AUTOINCREMENT,
    ctd_name TEXT NOT NULL UNIQUE,
    ctd_count INTEGER NOT NULL DEFAULT 0
);
CREATE TABLE IF NOT EXISTS change_tag (
    ct_id INTEGER PRIMARY KEY AUTOINCREMENT,
    ct_rev_id INTEGER,
    ct_log_id INTEGER,
    ct_tag_id INTEGER NOT NULL,
    ct_params TEXT
);
CREATE UNIQUE INDEX IF NOT EXISTS change_tag_rev_tag_id
    ON change_tag(ct_rev_id, ct_tag_id) WHERE ct_rev_id IS NOT NULL;
CREATE UNIQUE INDEX IF NOT EXISTS change_tag_log_tag_id
    ON change_tag(ct_log_id, ct_tag_id) WHERE ct_log_id IS NOT NULL;
CREATE TABLE IF NOT EXISTS image (
    img_name TEXT PRIMARY KEY,
    img_size INTEGER NOT NULL DEFAULT 0,
    img_width INTEGER NOT NULL DEFAULT 0,
    img_height INTEGER NOT NULL DEFAULT 0,
    img_metadata TEXT NOT NULL DEFAULT '',
    img_bits INTEGER NOT NULL DEFAULT 0,
    img_media_type TEXT,
    img_major_mime TEXT NOT NULL DEFAULT 'unknown',
    img_minor_mime TEXT NOT NULL DEFAULT 'unknown',
    img_description TEXT NOT NULL DEFAULT '',
    img_actor INTEGER NOT NULL,
    img_timestamp TEXT NOT NULL,
    img_sha1 TEXT NOT NULL DEFAULT ''
);
CREATE TABLE IF NOT EXISTS oldimage (
    oi_name TEXT NOT NULL,
    oi_archive_name TEXT NOT NULL,
    oi_size INTEGER NOT NULL DEFAULT 0,
    oi_width INTEGER NOT NULL DEFAULT 0,
    oi_height INTEGER NOT NULL DEFAULT 0,
    oi_bits INTEGER NOT NULL DEFAULT 0,
    oi_description TEXT NOT NULL DEFAULT '',
    oi_actor INTEGER NOT NULL,
    oi_timestamp TEXT NOT NULL,
    oi_metadata TEXT NOT NULL DEFAULT '',
    oi_media_type TEXT,
    oi_major_mime TEXT NOT NULL DEFAULT 'unknown',
    oi_minor_mime TEXT NOT NULL DEFAULT 'unknown',
    oi_deleted INTEGER NOT NULL DEFAULT 0,
    oi_sha1 TEXT NOT NULL DEFAULT '',
    PRIMARY KEY (oi_name, oi_archive_name)
);
CREATE TABLE IF NOT EXISTS filearchive (
    fa_id INTEGER PRIMARY KEY AUTOINCREMENT,
    fa_name TEXT NOT NULL,
    fa_storage_group TEXT,
    fa_storage_key TEXT,
    fa_size INTEGER DEFAULT 0,
    fa_width INTEGER DEFAULT 0,
    fa_height INTEGER DEFAULT 0,
    fa_metadata TEXT,
    fa_bits INTEGER DEFAULT 0,
    fa_major_mime TEXT,
    fa_minor_mime TEXT,
    fa_description TEXT NOT NULL DEFAULT '',
    fa_actor INTEGER NOT NULL,
    fa_timestamp TEXT,
    fa_deleted INTEGER NOT NULL DEFAULT 0,
    UNIQUE (fa_name, fa_storage_key, fa_timestamp)
);
"""

ACTOR_COLUMNS = "actor_id, actor_user, actor_name"
COUNTABLE_TABLES = frozenset(
    {
        "actor",
        "page",
        "page_restrictions",
        "revision",
        "content",
        "slots",
        "ip_changes",
        "logging",
        "change_tag",
        "image",
        "oldimage",
        "filearchive",
    }
)
PAGE_COLUMNS = (
    "page_id, page_namespace, page_title, page_is_redirect, page_is_new, "
    "page_len, page_content_model, page_latest, page_displaced"
)


def _now() -> str:
    return datetime.now(timezone.utc).strftime(MW_TIMESTAMP_FORMAT)


class SQLiteMirrorStore:
    """Local mirror database; every write is keyed by the remote identity."""

    def __init__(self, db_path: str | Path) -> None:
        self.db_path = Path(db_path)
        if str(db_path) != ":memory:":
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
        # Autocommit mode; transactions are opened explicitly
        self.conn = sqlite3.connect(str(db_path), isolation_level=None)
        self._depth = 0
        try:
            self.init_schema()
        except Exception:
            self.conn.close()
            raise

    def init_schema(self) -> None:
        self.conn.executescript(SCHEMA)

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Cursor]:
        cursor = self.conn.cursor()
        if self._depth:
            self._depth += 1
            try:
                yield cursor
            finally:
                self._depth -= 1
            return

        self._depth = 1
        cursor.execute("BEGIN IMMEDIATE")
        try:
            yield cursor
            cursor.execute("COMMIT")
        except sqlite3.IntegrityError as exc:
            cursor.execute("ROLLBACK")
            raise StoreContractError(f"Local constraint violated: {exc}") from exc
        except BaseException:
            cursor.execute("ROLLBACK")
            raise
        finally:
            self._depth = 0

    # Actors

    @staticmethod
    def _identity(row: tuple | None) -> Identity | None:
        if row is None:
            return None
        user_id = int(row[1]) if row[1] is not None else 0
        name = str(row[2])
        if user_id:
            origin = "registered"
        elif name.startswith("imported>"):
            origin = "imported"
        else:
            origin = "anonymous"
        return Identity(user_id=user_id, name=name, origin=origin, actor_id=int(row[0]))

    def get_actor_by_user_id(self, user_id: int) -> Identity | None:
        row = self.conn.execute(
            f"SELECT {ACTOR_COLUMNS} FROM actor WHERE actor_user = ?", (user_id,)
        ).fetchone()
        return self._identity(row)

    def get_actor_by_name(self, name: str) -> Identity | None:
        row = self.conn.execute(
            f"SELECT {ACTOR_COLUMNS} FROM actor WHERE actor_name = ?", (name,)
        ).fetchone()
        return self._identity(row)

    def acquire_actor(self, identity: Identity) -> int:
        if identity.user_id:
            existing = self.get_actor_by_user_id(identity.user_id)
        else:
            existing = self.get_actor_by_name(identity.name)
        if existing is not None and existing.actor_id is not None:
            return existing.actor_id
        with self.transaction() as cur:
            cur.execute(
                "INSERT INTO actor (actor_user, actor_name) VALUES (?, ?)",
                (identity.user_id or None, identity.name),
            )
            return int(cur.lastrowid)

    def rename_actor(self, user_id: int, new_name: str) -> None:
        with self.transaction() as cur:
            cur.execute("UPDATE actor SET actor_name = ? WHERE actor_user = ?", (new_name, user_id))

    # Pages

    @staticmethod
    def _page(row: tuple | None) -> PageRecord | None:
        if row is None:
            return None
        return PageRecord(
            page_id=int(row[0]),
            namespace=int(row[1]),
            title=str(row[2]),
            is_redirect=bool(row[3]),
            is_new=bool(row[4]),
            length=int(row[5]),
            content_model=row[6],
            latest=int(row[7]),
            displaced=bool(row[8]),
        )

    def get_page(self, page_id: int) -> PageRecord | None:
        row = self.conn.execute(f"SELECT {PAGE_COLUMNS} FROM page WHERE page_id = ?", (page_id,)).fetchone()
        return self._page(row)

    def find_live_page_id(self, namespace: int, title: str) -> int | None:
        row = self.conn.execute(
            "SELECT page_id FROM page WHERE page_namespace = ? AND page_title = ? AND page_displaced = 0",
            (namespace, title),
        ).fetchone()
        return int(row[0]) if row else None

    def displace_page(self, page_id: int) -> None:
        with self.transaction() as cur:
            cur.execute("UPDATE page SET page_displaced = 1, page_touched = ? WHERE page_id = ?", (_now(), page_id))

    def insert_page(self, page: PageRecord) -> None:
        with self.transaction() as cur:
            cur.execute(
                """
                INSERT INTO page (
                    page_id, page_namespace, page_title, page_is_redirect, page_is_new,
                    page_touched, page_latest, page_len, page_content_model, page_displaced
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, 0)
                """,
                (
                    page.page_id,
                    page.namespace,
                    page.title,
                    int(page.is_redirect),
                    int(page.is_new),
                    _now(),
                    page.latest,
                    page.length,
                    page.content_model,
                ),
            )

    def update_page(self, page: PageRecord) -> None:
        with self.transaction() as cur:
            cur.execute(
                """
                UPDATE page SET
                    page_namespace = ?,
                    page_title = ?,
                    page_is_redirect = ?,
                    page_is_new = ?,
                    page_touched = ?,
                    page_latest = ?,
                    page_len = ?,
                    page_content_model = ?,
                    page_displaced = 0
                WHERE page_id = ?
                """,
                (
                    page.namespace,
                    page.title,
                    int(page.is_redirect),
                    int(page.is_new),
                    _now(),
                    page.latest,
                    page.length,
                    page.content_model,
                    page.page_id,
                ),
            )

    def replace_page_restrictions(self, page_id: int, restrictions: list[PageRestriction]) -> None:
        with self.transaction() as cur:
            cur.execute("DELETE FROM page_restrictions WHERE pr_page = ?", (page_id,))
            cur.executemany(
                """
                INSERT INTO page_restrictions (pr_page, pr_type, pr_level, pr_cascade, pr_expiry)
                VALUES (?, ?, ?, ?, ?)
                """,
                [(r.page_id, r.type, r.level, int(r.cascade), r.expiry) for r in restrictions],
            )

    def get_page_restrictions(self, page_id: int) -> list[PageRestriction]:
        rows = self.conn.execute(
            "SELECT pr_page, pr_type, pr_level, pr_cascade, pr_expiry FROM page_restrictions WHERE pr_page = ? ORDER BY pr_type",
            (page_id,),
        ).fetchall()
        return [PageRestriction(int(r[0]), str(r[1]), str(r[2]), bool(r[3]), str(r[4])) for r in rows]

    # Revisions

    def revision_exists(self, rev_id: int) -> bool:
        row = self.conn.execute("SELECT 1 FROM revision WHERE rev_id = ?", (rev_id,)).fetchone()
        return row is not None

    def get_revision(self, rev_id: int) -> LocalRevision | None:
        row = self.conn.execute(
            """
            SELECT rev_id, rev_page, rev_parent_id, rev_timestamp, rev_sha1, rev_len,
                   content_text, content_model, content_format, rev_comment, rev_minor_edit,
                   rev_deleted, rev_actor
            FROM revision
            LEFT JOIN slots ON slot_revision_id = rev_id AND slot_role = 'main'
            LEFT JOIN content ON content_id = slot_content_id
            WHERE rev_id = ?
            """,
            (rev_id,),
        ).fetchone()
        if row is None:
            return None
        return LocalRevision(
            rev_id=int(row[0]),
            page_id=int(row[1]),
            parent_id=int(row[2]) if row[2] is not None else None,
            timestamp=str(row[3]),
            sha1=str(row[4]),
            length=int(row[5]),
            content=row[6],
            content_model=row[7],
            content_format=row[8],
            comment=str(row[9]),
            minor=bool(row[10]),
            deleted=int(row[11]),
            actor_id=int(row[12]),
        )

    def compute_revision_sha1(self, rev_id: int) -> str:
        """Recompute the base-36 checksum from the stored main slot content."""
        row = self.conn.execute(
            """
            SELECT content_text FROM slots
            JOIN content ON content_id = slot_content_id
            WHERE slot_revision_id = ? AND slot_role = 'main'
            """,
            (rev_id,),
        ).fetchone()
        if row is None or row[0] is None:
            raise ContentAccessError(f"No content stored for revision {rev_id}")
        return sha1_base36(row[0])

    def latest_revision_timestamp(self) -> str | None:
        row = self.conn.execute("SELECT MAX(rev_timestamp) FROM revision").fetchone()
        return row[0] if row and row[0] else None

    def _write_revision(self, cur: sqlite3.Cursor, rev: LocalRevision, ip_hex: str | None) -> None:
        cur.execute(
            """
            INSERT INTO content (content_size, content_sha1, content_model, content_format, content_text)
            VALUES (?, ?, ?, ?, ?)
            """,
            (rev.length, rev.sha1, rev.content_model, rev.content_format, rev.content),
        )
        cur.execute(
            "INSERT INTO slots (slot_revision_id, slot_role, slot_content_id) VALUES (?, 'main', ?)",
            (rev.rev_id, cur.lastrowid),
        )
        cur.execute(
            """
            INSERT INTO revision (
                rev_id, rev_page, rev_parent_id, rev_timestamp, rev_sha1, rev_len,
                rev_minor_edit, rev_deleted, rev_actor, rev_comment
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                rev.rev_id,
                rev.page_id,
                rev.parent_id,
                rev.timestamp,
                rev.sha1,
                rev.length,
                int(rev.minor),
                rev.deleted,
                rev.actor_id,
                rev.comment,
            ),
        )
        if ip_hex:
            cur.execute(
                "INSERT OR REPLACE INTO ip_changes (ipc_rev_id, ipc_rev_timestamp, ipc_hex) VALUES (?, ?, ?)",
                (rev.rev_id, rev.timestamp, ip_hex),
            )

    def insert_revision(self, rev: LocalRevision, ip_hex: str | None = None) -> None:
        with self.transaction() as cur:
            self._write_revision(cur, rev, ip_hex)

    def replace_revision(self, rev: LocalRevision, ip_hex: str | None = None) -> None:
        """Delete the stored revision with its slot, content and ip_changes rows, then insert ``rev``."""
        with self.transaction() as cur:
            cur.execute(
                """
                DELETE FROM content WHERE content_id IN (
                    SELECT slot_content_id FROM slots WHERE slot_revision_id = ?
                )
                """,
                (rev.rev_id,),
            )
            cur.execute("DELETE FROM slots WHERE slot_revision_id = ?", (rev.rev_id,))
            cur.execute("DELETE FROM ip_changes WHERE ipc_rev_id = ?", (rev.rev_id,))
            cur.execute("DELETE FROM revision WHERE rev_id = ?", (rev.rev_id,))
            self._write_revision(cur, rev, ip_hex)

    def get_ip_hex(self, rev_id: int) -> str | None:
        row = self.conn.execute("SELECT ipc_hex FROM ip_changes WHERE ipc_rev_id = ?", (rev_id,)).fetchone()
        return str(row[0]) if row else None

    # Tags

    def insert_tags(self, tags: list[str] | tuple[str, ...], rev_id: int | None = None, log_id: int | None = None) -> None:
        if not tags:
            return
        if rev_id is None and log_id is None:
            raise ValueError("insert_tags needs a rev_id or a log_id")
        with self.transaction() as cur:
            for tag in tags:
                cur.execute("INSERT OR IGNORE INTO change_tag_def (ctd_name, ctd_count) VALUES (?, 0)", (tag,))
                tag_id = cur.execute("SELECT ctd_id FROM change_tag_def WHERE ctd_name = ?", (tag,)).fetchone()[0]
                cur.execute(
                    "INSERT OR IGNORE INTO change_tag (ct_rev_id, ct_log_id, ct_tag_id, ct_params) VALUES (?, ?, ?, NULL)",
                    (rev_id, log_id, tag_id),
                )
                if cur.rowcount:
                    cur.execute("UPDATE change_tag_def SET ctd_count = ctd_count + 1 WHERE ctd_id = ?", (tag_id,))

    def get_tags(self, rev_id: int | None = None, log_id: int | None = None) -> list[str]:
        column, value = ("ct_rev_id", rev_id) if rev_id is not None else ("ct_log_id", log_id)
        rows = self.conn.execute(
            f"""
            SELECT ctd_name FROM change_tag JOIN change_tag_def ON ctd_id = ct_tag_id
            WHERE {column} = ? ORDER BY ctd_name
            """,
            (value,),
        ).fetchall()
        return [str(r[0]) for r in rows]

    # Logs

    def insert_log_entry(self, entry: LogEntry) -> bool:
        """Insert-ignore by log id; returns whether a row was written."""
        with self.transaction() as cur:
            cur.execute(
                """
                INSERT OR IGNORE INTO logging (
                    log_id, log_type, log_action, log_timestamp, log_actor, log_namespace,
                    log_title, log_page, log_comment, log_params, log_deleted
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    entry.log_id,
                    entry.type,
                    entry.action,
                    entry.timestamp,
                    entry.actor_id,
                    entry.namespace,
                    entry.title,
                    entry.page_id,
                    entry.comment,
                    entry.params,
                    entry.deleted,
                ),
            )
            inserted = cur.rowcount > 0
            if inserted:
                self.insert_tags(entry.tags, log_id=entry.log_id)
        return inserted

    def get_log_params(self, log_id: int) -> str | None:
        row = self.conn.execute("SELECT log_params FROM logging WHERE log_id = ?", (log_id,)).fetchone()
        return str(row[0]) if row else None

    def latest_log_timestamp(self) -> str | None:
        row = self.conn.execute("SELECT MAX(log_timestamp) FROM logging").fetchone()
        return row[0] if row and row[0] else None

    # Files

    def image_exists(self, name: str) -> bool:
        return self.conn.execute("SELECT 1 FROM image WHERE img_name = ?", (name,)).fetchone() is not None

    def insert_image(self, version: FileVersion) -> bool:
        with self.transaction() as cur:
            cur.execute(
                """
                INSERT OR IGNORE INTO image (
                    img_name, img_size, img_width, img_height, img_metadata, img_bits, img_media_type,
                    img_major_mime, img_minor_mime, img_description, img_actor, img_timestamp, img_sha1
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    version.name,
                    version.size,
                    version.width,
                    version.height,
                    version.metadata,
                    version.bits,
                    version.media_type,
                    version.major_mime,
                    version.minor_mime,
                    version.description,
                    version.actor_id,
                    version.timestamp,
                    version.sha1,
                ),
            )
            return cur.rowcount > 0

    def insert_old_image(self, version: FileVersion) -> bool:
        with self.transaction() as cur:
            cur.execute(
                """
                INSERT OR IGNORE INTO oldimage (
                    oi_name, oi_archive_name, oi_size, oi_width, oi_height, oi_bits, oi_description,
                    oi_actor, oi_timestamp, oi_metadata, oi_media_type, oi_major_mime, oi_minor_mime,
                    oi_deleted, oi_sha1
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, 0, ?)
                """,
                (
                    version.name,
                    version.archive_name,
                    version.size,
                    version.width,
                    version.height,
                    version.bits,
                    version.description,
                    version.actor_id,
                    version.timestamp,
                    version.metadata,
                    version.media_type,
                    version.major_mime,
                    version.minor_mime,
                    version.sha1,
                ),
            )
            return cur.rowcount > 0

    def insert_archived_file(self, archived: ArchivedFile) -> bool:
        with self.transaction() as cur:
            cur.execute(
                """
                INSERT OR IGNORE INTO filearchive (
                    fa_name, fa_storage_group, fa_storage_key, fa_size, fa_width, fa_height, fa_metadata,
                    fa_bits, fa_major_mime, fa_minor_mime, fa_description, fa_actor, fa_timestamp, fa_deleted
                ) VALUES (?, 'deleted', ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, 0)
                """,
                (
                    archived.name,
                    archived.storage_key,
                    archived.size,
                    archived.width,
                    archived.height,
                    archived.metadata,
                    archived.bits,
                    archived.major_mime,
                    archived.minor_mime,
                    archived.description,
                    archived.actor_id,
                    archived.timestamp,
                ),
            )
            return cur.rowcount > 0

    def count_rows(self, table: str) -> int:
        if table not in COUNTABLE_TABLES:
            raise ValueError(f"Unknown table: {table}")
        return int(self.conn.execute(f"SELECT COUNT(*) FROM {table}").fetchone()[0])

    def close(self) -> None:
        self.conn.close()
