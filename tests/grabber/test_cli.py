import unittest
from unittest.mock import patch

from src.grabber.__main__ import build_parser, main
from src.grabber.domain.errors import RemoteUnavailableError
from src.grabber.domain.models import IntegrityReport, LogGrabSummary


def empty_logs_summary():
    return LogGrabSummary(fetched_total=0, inserted_total=0, ignored_total=0, filtered_total=0, duplicates_skipped=0)


class CliTests(unittest.TestCase):
    def test_invalid_timestamp_exits_with_option_error(self):
        with patch("src.grabber.__main__.run_revisions") as run_revisions:
            code = main(["revisions", "--url", "http://unit.invalid/api.php", "--start", "last tuesday"])
        self.assertEqual(code, 2)
        run_revisions.assert_not_called()

    def test_invalid_report_interval_exits_with_option_error(self):
        with patch("src.grabber.__main__.run_check") as run_check:
            code = main(["check", "--report", "0"])
        self.assertEqual(code, 2)
        run_check.assert_not_called()

    def test_logs_options_reach_the_workflow_config(self):
        with patch("src.grabber.__main__.run_logs", return_value=empty_logs_summary()) as run_logs:
            with patch("builtins.print"):
                code = main(
                    [
                        "logs",
                        "--url",
                        "http://unit.invalid/api.php",
                        "--logtypes",
                        "block|move",
                        "--resume",
                        "--no-progress",
                    ]
                )

        self.assertEqual(code, 0)
        kwargs = run_logs.call_args.kwargs
        self.assertEqual(kwargs["base_url"], "http://unit.invalid/api.php")
        self.assertEqual(kwargs["workflow_config"].log_types, ("block", "move"))
        self.assertTrue(kwargs["workflow_config"].resume)
        self.assertFalse(kwargs["show_progress"])

    def test_check_namespaces_and_dry_run(self):
        report = IntegrityReport(
            revisions_checked=0,
            missing_count=0,
            mismatch_count=0,
            replaced_count=0,
            skipped_count=0,
            dry_run=True,
        )
        with patch("src.grabber.__main__.run_check", return_value=report) as run_check:
            with patch("builtins.print") as printed:
                code = main(["check", "--namespaces", "0|4", "--dry", "--report", "100", "--end", "20200101000000"])

        self.assertEqual(code, 0)
        config = run_check.call_args.kwargs["workflow_config"]
        self.assertEqual(config.namespaces, (0, 4))
        self.assertTrue(config.dry_run)
        self.assertEqual(config.report_interval, 100)
        self.assertIn('"dry_run": true', printed.call_args.args[0])

    def test_remote_failure_exits_with_error(self):
        with patch("src.grabber.__main__.run_text", side_effect=RemoteUnavailableError("down")):
            code = main(["text", "--url", "http://unit.invalid/api.php"])
        self.assertEqual(code, 1)

    def test_subcommand_is_required(self):
        with self.assertRaises(SystemExit):
            build_parser().parse_args([])
