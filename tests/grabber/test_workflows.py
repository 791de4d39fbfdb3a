import hashlib
import json
import unittest

from src.grabber.application.workflows.check_revisions import CheckRevisionsWorkflow, CheckWorkflowConfig
from src.grabber.application.workflows.grab_files import (
    DeletedFilesWorkflowConfig,
    FilesWorkflowConfig,
    GrabDeletedFilesWorkflow,
    GrabFilesWorkflow,
)
from src.grabber.application.workflows.grab_logs import GrabLogsWorkflow, LogsWorkflowConfig
from src.grabber.application.workflows.grab_revisions import GrabRevisionsWorkflow, RevisionsWorkflowConfig
from src.grabber.application.workflows.grab_text import GrabTextWorkflow, TextWorkflowConfig
from src.grabber.domain.errors import InvalidOptionError, RemoteContractError
from src.grabber.domain.rules import file_storage_key
from src.grabber.infrastructure.store_sqlite import SQLiteMirrorStore
from tests.utils.fake_remote import FakeRemote, make_local_revision
from tests.utils.tempdir import managed_temp_dir


def raw_revision(revid, content, timestamp, user="Alice", userid=7):
    return {
        "revid": revid,
        "parentid": revid - 1,
        "timestamp": timestamp,
        "user": user,
        "userid": userid,
        "comment": f"edit {revid}",
        "size": len(content),
        "tags": ["visualeditor"],
        "slots": {"main": {"contentmodel": "wikitext", "contentformat": "text/x-wiki", "content": content}},
    }


def raw_log(logid, log_type, params=None):
    return {
        "logid": logid,
        "type": log_type,
        "action": log_type,
        "timestamp": f"2020-01-01T00:00:0{logid}Z",
        "ns": 2,
        "title": "User:Vandal",
        "user": "Admin",
        "userid": 1,
        "comment": "",
        "params": params or {},
    }


ALLREVISIONS_BODY = {
    "query": {
        "allrevisions": [
            {
                "pageid": 1,
                "ns": 0,
                "title": "Foo",
                "revisions": [
                    raw_revision(10, "first", "2020-01-01T00:00:00Z"),
                    raw_revision(11, "second", "2020-01-01T00:00:05Z", user="192.0.2.7", userid=0),
                ],
            },
            {"pageid": 2, "ns": 1, "title": "Talk:Foo", "revisions": [raw_revision(12, "talk", "2020-01-01T00:00:03Z")]},
        ]
    }
}


class RevisionsWorkflowTests(unittest.IsolatedAsyncioTestCase):
    async def test_second_run_resumes_and_changes_nothing(self):
        with managed_temp_dir("workflow_revisions") as tmp:
            store = SQLiteMirrorStore(tmp / "mirror.db")
            try:
                remote = FakeRemote({"allrevisions": lambda params: ALLREVISIONS_BODY})
                first = await GrabRevisionsWorkflow(remote, store, RevisionsWorkflowConfig(show_progress=False)).run(None)

                self.assertEqual(first.revisions_processed, 3)
                self.assertEqual(first.revisions_inserted, 3)
                self.assertEqual(first.pages_written, 2)
                self.assertEqual(store.get_page(1).latest, 11)
                self.assertEqual(store.get_page(2).title, "Foo")
                self.assertEqual(store.get_ip_hex(11), "C0000207")
                self.assertEqual(store.get_tags(rev_id=10), ["visualeditor"])
                self.assertNotIn("arvnamespace", remote.params_for("allrevisions")[0])

                second = await GrabRevisionsWorkflow(
                    remote, store, RevisionsWorkflowConfig(new_revisions=True, show_progress=False)
                ).run(None)

                self.assertEqual(second.revisions_inserted, 0)
                self.assertEqual(second.pages_written, 0)
                self.assertEqual(remote.params_for("allrevisions")[1]["arvstart"], "2020-01-01T00:00:04Z")
                self.assertEqual(store.count_rows("revision"), 3)
                self.assertEqual(store.count_rows("change_tag"), 3)
            finally:
                store.close()

    async def test_namespace_filter_is_sent(self):
        with managed_temp_dir("workflow_revisions_ns") as tmp:
            store = SQLiteMirrorStore(tmp / "mirror.db")
            try:
                remote = FakeRemote({"allrevisions": [{"query": {"allrevisions": []}}]})
                await GrabRevisionsWorkflow(
                    remote, store, RevisionsWorkflowConfig(namespaces=(0, 1, -1), show_progress=False)
                ).run(None)

                self.assertEqual(remote.params_for("allrevisions")[0]["arvnamespace"], "0|1")
            finally:
                store.close()


class LogsWorkflowTests(unittest.IsolatedAsyncioTestCase):
    async def test_logs_are_deduplicated_filtered_and_resumed(self):
        with managed_temp_dir("workflow_logs") as tmp:
            store = SQLiteMirrorStore(tmp / "mirror.db")
            try:
                remote = FakeRemote(
                    {
                        "logevents": [
                            {
                                "query": {
                                    "logevents": [
                                        raw_log(1, "block", {"duration": "1 day", "flags": ["nocreate"]}),
                                        raw_log(2, "move", {"target_ns": 0, "target_title": "Bar"}),
                                        raw_log(3, "newusers"),
                                    ]
                                },
                                "continue": {"lecontinue": "20200101000003|3", "continue": "-||"},
                            },
                            {"query": {"logevents": [raw_log(3, "newusers"), raw_log(4, "block")]}},
                        ]
                    }
                )
                config = LogsWorkflowConfig(log_types=("block", "move"), show_progress=False)
                summary = await GrabLogsWorkflow(remote, store, config).run(None)

                self.assertEqual(summary.fetched_total, 4)
                self.assertEqual(summary.filtered_total, 1)
                self.assertEqual(summary.inserted_total, 3)
                self.assertEqual(summary.duplicates_skipped, 1)
                self.assertNotIn("letype", remote.params_for("logevents")[0])
                self.assertEqual(
                    json.loads(store.get_log_params(1)), {"5::duration": "1 day", "6::flags": "nocreate"}
                )
                self.assertEqual(json.loads(store.get_log_params(2)), {"4::target": "Bar", "5::noredir": 0})

                resumed_remote = FakeRemote({"logevents": [{"query": {"logevents": [raw_log(4, "block")]}}]})
                resumed = await GrabLogsWorkflow(
                    resumed_remote, store, LogsWorkflowConfig(resume=True, show_progress=False)
                ).run(None)

                self.assertEqual(resumed.inserted_total, 0)
                self.assertEqual(resumed.ignored_total, 1)
                self.assertEqual(resumed_remote.params_for("logevents")[0]["lestart"], "2020-01-01T00:00:03Z")
                self.assertEqual(store.count_rows("logging"), 3)
            finally:
                store.close()

    async def test_hidden_fields_set_deleted_flags(self):
        with managed_temp_dir("workflow_logs_hidden") as tmp:
            store = SQLiteMirrorStore(tmp / "mirror.db")
            try:
                hidden = {
                    "logid": 9,
                    "type": "delete",
                    "action": "delete",
                    "timestamp": "2020-01-01T00:00:09Z",
                    "actionhidden": True,
                    "userhidden": True,
                    "commenthidden": True,
                }
                remote = FakeRemote({"logevents": [{"query": {"logevents": [hidden]}}]})
                await GrabLogsWorkflow(remote, store, LogsWorkflowConfig(show_progress=False)).run(None)

                row = store.conn.execute("SELECT log_deleted, log_title FROM logging WHERE log_id = 9").fetchone()
                self.assertEqual(row, (7, ""))
                self.assertIsNotNone(store.get_actor_by_name("Unknown user"))
            finally:
                store.close()


class TextWorkflowTests(unittest.IsolatedAsyncioTestCase):
    async def test_pages_revisions_and_restrictions_are_mirrored(self):
        with managed_temp_dir("workflow_text") as tmp:
            store = SQLiteMirrorStore(tmp / "mirror.db")
            try:
                remote = FakeRemote(
                    {
                        "allpages": [
                            {
                                "query": {
                                    "pages": [
                                        {
                                            "pageid": 1,
                                            "ns": 0,
                                            "title": "Foo",
                                            "protection": [
                                                {"type": "edit", "level": "sysop", "expiry": "infinity"},
                                                {"type": "move", "level": "sysop", "expiry": "infinity", "source": "Main Page"},
                                            ],
                                        }
                                    ]
                                }
                            }
                        ],
                        "page_revisions": [
                            {
                                "query": {
                                    "pages": [
                                        {
                                            "pageid": 1,
                                            "ns": 0,
                                            "title": "Foo",
                                            "lastrevid": 11,
                                            "length": 6,
                                            "contentmodel": "wikitext",
                                            "revisions": [
                                                raw_revision(10, "first", "2020-01-01T00:00:00Z"),
                                                raw_revision(11, "second", "2020-01-02T00:00:00Z"),
                                            ],
                                        }
                                    ]
                                }
                            }
                        ],
                    }
                )
                summary = await GrabTextWorkflow(
                    remote, store, TextWorkflowConfig(namespaces=(0,), show_progress=False)
                ).run(None)

                self.assertEqual(summary.namespaces, (0,))
                self.assertEqual(summary.pages_found, 1)
                self.assertEqual(summary.pages_written, 1)
                self.assertEqual(summary.revisions_inserted, 2)
                page = store.get_page(1)
                self.assertEqual((page.title, page.latest, page.length), ("Foo", 11, 6))
                self.assertIsNone(page.content_model)
                restrictions = store.get_page_restrictions(1)
                self.assertEqual([(r.type, r.expiry) for r in restrictions], [("edit", "infinity")])
                self.assertEqual(remote.params_for("page_revisions")[0]["pageids"], 1)
            finally:
                store.close()

    async def test_second_run_changes_nothing(self):
        allpages = {"query": {"pages": [{"pageid": 1, "ns": 0, "title": "Foo", "protection": []}]}}
        page_revisions = {
            "query": {
                "pages": [
                    {
                        "pageid": 1,
                        "ns": 0,
                        "title": "Foo",
                        "lastrevid": 11,
                        "length": 6,
                        "revisions": [
                            raw_revision(10, "first", "2020-01-01T00:00:00Z"),
                            raw_revision(11, "second", "2020-01-02T00:00:00Z"),
                        ],
                    }
                ]
            }
        }
        with managed_temp_dir("workflow_text_rerun") as tmp:
            store = SQLiteMirrorStore(tmp / "mirror.db")
            try:
                remote = FakeRemote(
                    {"allpages": lambda params: allpages, "page_revisions": lambda params: page_revisions}
                )
                config = TextWorkflowConfig(namespaces=(0,), show_progress=False)
                first = await GrabTextWorkflow(remote, store, config).run(None)
                second = await GrabTextWorkflow(remote, store, config).run(None)

                self.assertEqual((first.revisions_inserted, first.pages_written), (2, 1))
                self.assertEqual(second.pages_found, 1)
                self.assertEqual(second.revisions_inserted, 0)
                self.assertEqual(second.pages_written, 0)
                self.assertEqual(store.count_rows("revision"), 2)
                self.assertEqual(store.count_rows("page"), 1)
                self.assertEqual(store.get_page(1).latest, 11)
                self.assertEqual(remote.user_lookups, [])
            finally:
                store.close()

    async def test_start_title_skips_earlier_namespaces(self):
        with managed_temp_dir("workflow_text_start") as tmp:
            store = SQLiteMirrorStore(tmp / "mirror.db")
            try:
                remote = FakeRemote({"allpages": lambda params: {"query": {"pages": []}}})
                summary = await GrabTextWorkflow(
                    remote, store, TextWorkflowConfig(start="talk:Foo", show_progress=False)
                ).run(None)

                self.assertEqual(summary.namespaces, (1, 2, 6, 500))
                first, *rest = remote.params_for("allpages")
                self.assertEqual((first["gapnamespace"], first["gapfrom"]), (1, "Foo"))
                self.assertTrue(all("gapfrom" not in params for params in rest))
            finally:
                store.close()

    async def test_no_usable_namespaces_is_an_option_error(self):
        with managed_temp_dir("workflow_text_no_ns") as tmp:
            store = SQLiteMirrorStore(tmp / "mirror.db")
            try:
                with self.assertRaises(InvalidOptionError):
                    await GrabTextWorkflow(
                        FakeRemote(), store, TextWorkflowConfig(namespaces=(-1, 42), show_progress=False)
                    ).run(None)
            finally:
                store.close()


class CheckWorkflowTests(unittest.IsolatedAsyncioTestCase):
    async def test_empty_scan_is_fatal(self):
        with managed_temp_dir("workflow_check_empty") as tmp:
            store = SQLiteMirrorStore(tmp / "mirror.db")
            try:
                remote = FakeRemote({"check_revisions": [{"query": {"allrevisions": []}}]})
                with self.assertRaises(RemoteContractError):
                    await CheckRevisionsWorkflow(remote, store, CheckWorkflowConfig(show_progress=False)).run(None)
            finally:
                store.close()

    async def test_matching_revisions_are_reported_clean(self):
        with managed_temp_dir("workflow_check_clean") as tmp:
            store = SQLiteMirrorStore(tmp / "mirror.db")
            try:
                store.insert_revision(make_local_revision(21, content="hello"))
                sha1 = hashlib.sha1(b"hello").hexdigest()
                remote = FakeRemote(
                    {
                        "check_revisions": [
                            {
                                "query": {
                                    "allrevisions": [
                                        {
                                            "pageid": 1,
                                            "ns": 0,
                                            "title": "Foo",
                                            "revisions": [{"revid": 21, "timestamp": "2020-01-01T00:00:00Z", "sha1": sha1}],
                                        }
                                    ]
                                }
                            }
                        ]
                    }
                )
                report = await CheckRevisionsWorkflow(
                    remote, store, CheckWorkflowConfig(namespaces=(0,), dry_run=True, show_progress=False)
                ).run(None)

                self.assertEqual(report.revisions_checked, 1)
                self.assertEqual((report.missing_count, report.mismatch_count, report.skipped_count), (0, 0, 0))
                self.assertTrue(report.dry_run)
                params = remote.params_for("check_revisions")[0]
                self.assertEqual(params["arvnamespace"], "0")
                self.assertEqual(params["arvprop"], "ids|timestamp|sha1")
            finally:
                store.close()


LOGO_SHA1 = hashlib.sha1(b"logo").hexdigest()


class FilesWorkflowTests(unittest.IsolatedAsyncioTestCase):
    async def test_current_and_old_versions_are_stored_once(self):
        body = {
            "query": {
                "pages": [
                    {
                        "title": "File:Logo.png",
                        "imageinfo": [
                            {
                                "timestamp": "2020-01-01T00:00:00Z",
                                "user": "Alice",
                                "userid": 7,
                                "size": 4,
                                "width": 1,
                                "height": 1,
                                "sha1": LOGO_SHA1,
                                "mime": "image/png",
                                "mediatype": "BITMAP",
                                "metadata": [],
                            },
                            {
                                "timestamp": "2019-01-01T00:00:00Z",
                                "user": "Alice",
                                "userid": 7,
                                "size": 3,
                                "sha1": LOGO_SHA1,
                                "mime": "image/png",
                                "archivename": "20200101000000!Logo.png",
                            },
                        ],
                    },
                    {
                        "title": "File:Clip.ogv",
                        "imageinfo": [
                            {"timestamp": "2020-01-01T00:00:00Z", "mime": "video/youtube", "mediatype": "VIDEO"}
                        ],
                    },
                ]
            }
        }
        with managed_temp_dir("workflow_files") as tmp:
            store = SQLiteMirrorStore(tmp / "mirror.db")
            try:
                remote = FakeRemote({"allimages": lambda params: body})
                summary = await GrabFilesWorkflow(remote, store, FilesWorkflowConfig(show_progress=False)).run(None)

                self.assertEqual(summary.files_seen, 2)
                self.assertEqual(summary.versions_inserted, 2)
                self.assertEqual(summary.skipped_total, 1)
                self.assertEqual(store.count_rows("image"), 1)
                self.assertEqual(store.count_rows("oldimage"), 1)
                row = store.conn.execute("SELECT img_major_mime, img_minor_mime FROM image").fetchone()
                self.assertEqual(row, ("image", "png"))

                again = await GrabFilesWorkflow(remote, store, FilesWorkflowConfig(show_progress=False)).run(None)
                self.assertEqual(again.versions_inserted, 0)
            finally:
                store.close()

    async def test_no_files_is_fatal(self):
        with managed_temp_dir("workflow_files_empty") as tmp:
            store = SQLiteMirrorStore(tmp / "mirror.db")
            try:
                remote = FakeRemote({"allimages": [{"batchcomplete": True}]})
                with self.assertRaises(RemoteContractError):
                    await GrabFilesWorkflow(remote, store, FilesWorkflowConfig(show_progress=False)).run(None)
            finally:
                store.close()

    async def test_deleted_files_keep_storage_key_and_skip_hidden(self):
        with managed_temp_dir("workflow_deleted_files") as tmp:
            store = SQLiteMirrorStore(tmp / "mirror.db")
            try:
                remote = FakeRemote(
                    {
                        "filearchive": [
                            {
                                "query": {
                                    "filearchive": [
                                        {
                                            "name": "Old.jpeg",
                                            "sha1": LOGO_SHA1,
                                            "size": 4,
                                            "timestamp": "2020-01-01T00:00:00Z",
                                            "user": "Alice",
                                            "userid": 7,
                                            "mime": "image/jpeg",
                                        },
                                        {"name": "Hidden.png", "timestamp": "2020-01-01T00:00:00Z"},
                                    ]
                                }
                            }
                        ]
                    }
                )
                summary = await GrabDeletedFilesWorkflow(
                    remote, store, DeletedFilesWorkflowConfig(show_progress=False)
                ).run(None)

                self.assertEqual((summary.files_seen, summary.versions_inserted, summary.skipped_total), (2, 1, 1))
                row = store.conn.execute("SELECT fa_storage_group, fa_storage_key FROM filearchive").fetchone()
                self.assertEqual(row, ("deleted", file_storage_key(LOGO_SHA1, "Old.jpg")))
            finally:
                store.close()
