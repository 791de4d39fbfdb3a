import unittest

from src.grabber.application.pages import PageIdentityResolver, PageWriter, content_model_override
from src.grabber.domain.models import PageRecord
from src.grabber.infrastructure.store_sqlite import SQLiteMirrorStore
from tests.utils.tempdir import managed_temp_dir


class PageIdentityTests(unittest.TestCase):
    def test_incoming_page_displaces_the_old_owner_of_its_title(self):
        with managed_temp_dir("pages_displace") as tmp:
            store = SQLiteMirrorStore(tmp / "mirror.db")
            try:
                resolver = PageIdentityResolver(store)
                writer = PageWriter(store, resolver)
                writer.insert_or_update(PageRecord(page_id=9, namespace=0, title="Foo", latest=90), only_if_newer=True)

                written = writer.insert_or_update(
                    PageRecord(page_id=5, namespace=0, title="Foo", latest=50), only_if_newer=True
                )

                self.assertTrue(written)
                self.assertEqual(store.find_live_page_id(0, "Foo"), 5)
                displaced = store.get_page(9)
                self.assertTrue(displaced.displaced)
                self.assertEqual(displaced.title, "Foo")
                self.assertEqual(resolver.displaced_total, 1)
            finally:
                store.close()

    def test_displaced_page_is_revived_under_its_new_title(self):
        with managed_temp_dir("pages_revive") as tmp:
            store = SQLiteMirrorStore(tmp / "mirror.db")
            try:
                writer = PageWriter(store, PageIdentityResolver(store))
                writer.insert_or_update(PageRecord(page_id=9, namespace=0, title="Foo", latest=90), only_if_newer=True)
                writer.insert_or_update(PageRecord(page_id=5, namespace=0, title="Foo", latest=50), only_if_newer=True)

                # Same latest revision, but the displaced row is always relabelled
                writer.insert_or_update(PageRecord(page_id=9, namespace=0, title="Bar", latest=90), only_if_newer=True)

                page = store.get_page(9)
                self.assertFalse(page.displaced)
                self.assertEqual(page.title, "Bar")
                self.assertEqual(store.find_live_page_id(0, "Bar"), 9)
                self.assertEqual(store.find_live_page_id(0, "Foo"), 5)
            finally:
                store.close()

    def test_only_if_newer_skips_older_updates(self):
        with managed_temp_dir("pages_newer") as tmp:
            store = SQLiteMirrorStore(tmp / "mirror.db")
            try:
                writer = PageWriter(store, PageIdentityResolver(store))
                writer.insert_or_update(PageRecord(page_id=3, namespace=0, title="Foo", latest=30), only_if_newer=True)

                self.assertFalse(
                    writer.insert_or_update(PageRecord(page_id=3, namespace=0, title="Foo", latest=20), only_if_newer=True)
                )
                self.assertTrue(
                    writer.insert_or_update(PageRecord(page_id=3, namespace=0, title="Foo", latest=20), only_if_newer=False)
                )
                self.assertEqual(store.get_page(3).latest, 20)
            finally:
                store.close()

    def test_dry_run_resolver_leaves_owner_in_place(self):
        with managed_temp_dir("pages_dry") as tmp:
            store = SQLiteMirrorStore(tmp / "mirror.db")
            try:
                store.insert_page(PageRecord(page_id=9, namespace=0, title="Foo"))
                resolver = PageIdentityResolver(store, dry_run=True)

                resolver.reconcile(5, 0, "Foo")

                self.assertEqual(resolver.displaced_total, 1)
                self.assertFalse(store.get_page(9).displaced)
            finally:
                store.close()

    def test_default_content_model_is_not_stored(self):
        self.assertIsNone(content_model_override("wikitext"))
        self.assertIsNone(content_model_override(None))
        self.assertEqual(content_model_override("css"), "css")
