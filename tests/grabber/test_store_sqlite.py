import unittest

from src.grabber.domain.errors import ContentAccessError, StoreContractError
from src.grabber.domain.models import FileVersion, Identity, LogEntry, PageRecord, PageRestriction
from src.grabber.domain.rules import sha1_base36
from src.grabber.infrastructure.store_sqlite import SQLiteMirrorStore
from tests.utils.fake_remote import make_local_revision
from tests.utils.tempdir import managed_temp_dir


def log_entry(log_id, tags=()):
    return LogEntry(
        log_id=log_id,
        type="block",
        action="block",
        timestamp="20200101000000",
        namespace=2,
        title="Vandal",
        actor_id=1,
        params='{"5::duration":"1 day"}',
        deleted=0,
        comment="spam",
        tags=tuple(tags),
    )


class SQLiteMirrorStoreTests(unittest.TestCase):
    def test_transaction_rolls_back_on_error(self):
        with managed_temp_dir("store_rollback") as tmp:
            store = SQLiteMirrorStore(tmp / "mirror.db")
            try:
                with self.assertRaises(RuntimeError):
                    with store.transaction():
                        store.insert_page(PageRecord(page_id=1, namespace=0, title="Foo"))
                        raise RuntimeError("boom")
                self.assertIsNone(store.get_page(1))
            finally:
                store.close()

    def test_duplicate_live_title_is_a_contract_error(self):
        with managed_temp_dir("store_duplicate_title") as tmp:
            store = SQLiteMirrorStore(tmp / "mirror.db")
            try:
                store.insert_page(PageRecord(page_id=1, namespace=0, title="Foo"))
                with self.assertRaises(StoreContractError):
                    store.insert_page(PageRecord(page_id=2, namespace=0, title="Foo"))

                store.displace_page(1)
                store.insert_page(PageRecord(page_id=2, namespace=0, title="Foo"))
                self.assertEqual(store.find_live_page_id(0, "Foo"), 2)
                self.assertTrue(store.get_page(1).displaced)
            finally:
                store.close()

    def test_actor_acquire_is_idempotent(self):
        with managed_temp_dir("store_actor") as tmp:
            store = SQLiteMirrorStore(tmp / "mirror.db")
            try:
                first = store.acquire_actor(Identity(user_id=7, name="Alice", origin="registered"))
                second = store.acquire_actor(Identity(user_id=7, name="Alice", origin="registered"))
                anon = store.acquire_actor(Identity(user_id=0, name="10.0.0.1", origin="anonymous"))

                self.assertEqual(first, second)
                self.assertNotEqual(first, anon)
                self.assertEqual(store.get_actor_by_name("10.0.0.1").origin, "anonymous")

                store.rename_actor(7, "Alice B")
                self.assertEqual(store.get_actor_by_user_id(7).name, "Alice B")
                self.assertEqual(store.count_rows("actor"), 2)
            finally:
                store.close()

    def test_log_insert_ignores_existing_ids_and_tags_once(self):
        with managed_temp_dir("store_logs") as tmp:
            store = SQLiteMirrorStore(tmp / "mirror.db")
            try:
                self.assertTrue(store.insert_log_entry(log_entry(10, tags=["mobile edit"])))
                self.assertFalse(store.insert_log_entry(log_entry(10, tags=["mobile edit"])))

                self.assertEqual(store.get_tags(log_id=10), ["mobile edit"])
                count = store.conn.execute(
                    "SELECT ctd_count FROM change_tag_def WHERE ctd_name = 'mobile edit'"
                ).fetchone()[0]
                self.assertEqual(count, 1)
                self.assertEqual(store.latest_log_timestamp(), "20200101000000")
                self.assertEqual(store.get_log_params(10), '{"5::duration":"1 day"}')
            finally:
                store.close()

    def test_insert_tags_needs_a_target(self):
        with managed_temp_dir("store_tags") as tmp:
            store = SQLiteMirrorStore(tmp / "mirror.db")
            try:
                with self.assertRaises(ValueError):
                    store.insert_tags(["x"])
            finally:
                store.close()

    def test_replace_revision_rewrites_content_and_keeps_ip(self):
        with managed_temp_dir("store_replace") as tmp:
            store = SQLiteMirrorStore(tmp / "mirror.db")
            try:
                store.insert_revision(make_local_revision(5, content=""), ip_hex="7F000001")
                store.replace_revision(make_local_revision(5, content="restored"), store.get_ip_hex(5))

                rev = store.get_revision(5)
                self.assertEqual(rev.content, "restored")
                self.assertEqual(rev.length, 8)
                self.assertEqual(store.compute_revision_sha1(5), sha1_base36("restored"))
                self.assertEqual(store.get_ip_hex(5), "7F000001")
                self.assertEqual(store.count_rows("content"), 1)
                self.assertEqual(store.count_rows("slots"), 1)
            finally:
                store.close()

    def test_checksum_without_content_raises(self):
        with managed_temp_dir("store_no_content") as tmp:
            store = SQLiteMirrorStore(tmp / "mirror.db")
            try:
                store.insert_revision(make_local_revision(6, content=None, sha1="", length=0))
                with self.assertRaises(ContentAccessError):
                    store.compute_revision_sha1(6)
                with self.assertRaises(ContentAccessError):
                    store.compute_revision_sha1(404)
            finally:
                store.close()

    def test_restrictions_are_replaced_per_page(self):
        with managed_temp_dir("store_restrictions") as tmp:
            store = SQLiteMirrorStore(tmp / "mirror.db")
            try:
                store.replace_page_restrictions(
                    3,
                    [
                        PageRestriction(3, "move", "sysop", False, "infinity"),
                        PageRestriction(3, "edit", "autoconfirmed", False, "20300101000000"),
                    ],
                )
                store.replace_page_restrictions(3, [PageRestriction(3, "edit", "sysop", True, "infinity")])

                self.assertEqual(store.get_page_restrictions(3), [PageRestriction(3, "edit", "sysop", True, "infinity")])
            finally:
                store.close()

    def test_image_insert_is_keyed_by_name(self):
        version = FileVersion(
            name="Logo.png",
            size=10,
            width=1,
            height=1,
            bits=8,
            media_type="BITMAP",
            major_mime="image",
            minor_mime="png",
            description="",
            actor_id=1,
            timestamp="20200101000000",
            sha1="abc",
            metadata="[]",
        )
        with managed_temp_dir("store_images") as tmp:
            store = SQLiteMirrorStore(tmp / "mirror.db")
            try:
                self.assertTrue(store.insert_image(version))
                self.assertFalse(store.insert_image(version))
                self.assertTrue(store.image_exists("Logo.png"))
            finally:
                store.close()
