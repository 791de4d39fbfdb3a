import argparse
import json
import sys
from dataclasses import asdict

from src.config.logger_config import logger

from src.grabber.application.workflows import (
    CheckWorkflowConfig,
    DeletedFilesWorkflowConfig,
    FilesWorkflowConfig,
    LogsWorkflowConfig,
    RevisionsWorkflowConfig,
    TextWorkflowConfig,
)
from src.grabber.domain.errors import GrabberError, InvalidOptionError
from src.grabber.domain.rules import parse_timestamp
from src.grabber.grab import run_check, run_deleted_files, run_files, run_logs, run_revisions, run_text


def _timestamp(value: str | None, option: str) -> str | None:
    if value is None:
        return None
    try:
        parse_timestamp(value)
    except ValueError as exc:
        raise InvalidOptionError(f"Invalid {option} timestamp format: {value}") from exc
    return value


def _namespaces(value: str | None) -> tuple[int, ...] | None:
    if value is None:
        return None
    try:
        return tuple(int(ns) for ns in value.split("|") if ns.strip())
    except ValueError as exc:
        raise InvalidOptionError(f"Invalid namespace list: {value}") from exc


def _log_types(value: str | None) -> tuple[str, ...] | None:
    if value is None:
        return None
    return tuple(t.strip() for t in value.split("|") if t.strip()) or None


def cmd_text(args: argparse.Namespace):
    config = TextWorkflowConfig(
        namespaces=_namespaces(args.namespaces),
        start=args.start,
        end=_timestamp(args.end, "end"),
        skip_fandom_comments=args.skip_fandom_comments,
    )
    return run_text(**_connection(args), workflow_config=config, show_progress=not args.no_progress)


def cmd_revisions(args: argparse.Namespace):
    config = RevisionsWorkflowConfig(
        namespaces=_namespaces(args.namespaces),
        start=_timestamp(args.start, "start"),
        end=_timestamp(args.end, "end"),
        new_revisions=args.new_revisions,
        skip_fandom_comments=args.skip_fandom_comments,
    )
    return run_revisions(**_connection(args), workflow_config=config, show_progress=not args.no_progress)


def cmd_logs(args: argparse.Namespace):
    config = LogsWorkflowConfig(
        start=_timestamp(args.start, "start"),
        end=_timestamp(args.end, "end"),
        resume=args.resume,
        log_types=_log_types(args.logtypes),
        leaction=args.leaction,
    )
    return run_logs(**_connection(args), workflow_config=config, show_progress=not args.no_progress)


def cmd_files(args: argparse.Namespace):
    config = FilesWorkflowConfig(start=args.start, end=_timestamp(args.end, "end"))
    return run_files(**_connection(args), workflow_config=config, show_progress=not args.no_progress)


def cmd_deleted_files(args: argparse.Namespace):
    config = DeletedFilesWorkflowConfig(start=args.start)
    return run_deleted_files(**_connection(args), workflow_config=config, show_progress=not args.no_progress)


def cmd_check(args: argparse.Namespace):
    if args.report is not None and args.report <= 0:
        raise InvalidOptionError("--report must be a positive number of revisions")
    config = CheckWorkflowConfig(
        namespaces=_namespaces(args.namespaces),
        start=_timestamp(args.start, "start"),
        end=_timestamp(args.end, "end"),
        dry_run=args.dry,
        report_interval=args.report or 5000,
        skip_fandom_comments=args.skip_fandom_comments,
    )
    return run_check(**_connection(args), workflow_config=config, show_progress=not args.no_progress)


def _connection(args: argparse.Namespace) -> dict:
    return {
        "base_url": args.url,
        "username": args.username,
        "password": args.password,
        "db_path": args.db,
    }


def build_parser() -> argparse.ArgumentParser:
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--url", "-u", help="URL to the remote wiki's api.php (GRABBER_API_URL)")
    common.add_argument("--username", "-n", help="username to log into the remote wiki")
    common.add_argument("--password", "-p", help="password on the remote wiki")
    common.add_argument("--db", help="path of the local SQLite mirror (GRABBER_DB_PATH)")
    common.add_argument("--no-progress", action="store_true", help="disable progress bars")

    namespaces = argparse.ArgumentParser(add_help=False)
    namespaces.add_argument("--namespaces", help="pipe-separated namespace ids, defaults to all namespaces")
    namespaces.add_argument(
        "--skip-fandom-comments",
        action="store_true",
        help="skip Fandom comment pages (@comment-*) and their namespaces",
    )

    parser = argparse.ArgumentParser(prog="python -m src.grabber", description="Mirror a remote MediaWiki into a local store")
    sub = parser.add_subparsers(dest="cmd", required=True)

    p_text = sub.add_parser("text", parents=[common, namespaces], help="grab pages and their full history")
    p_text.add_argument("--start", help="page title at which to start, useful if a run stopped there")
    p_text.add_argument("--end", help="ignore revisions after this timestamp")
    p_text.set_defaults(func=cmd_text)

    p_revisions = sub.add_parser("revisions", parents=[common, namespaces], help="grab revisions oldest first")
    p_revisions.add_argument("--start", help="timestamp at which to continue (20121222142317, 2012-12-22T14:23:17Z)")
    p_revisions.add_argument("--end", help="timestamp at which to end")
    p_revisions.add_argument(
        "--new-revisions",
        action="store_true",
        help="resume from the latest local revision's timestamp",
    )
    p_revisions.set_defaults(func=cmd_revisions)

    p_logs = sub.add_parser("logs", parents=[common], help="grab log entries")
    p_logs.add_argument("--start", help="start point (20121222142317, 2012-12-22T14:23:17Z)")
    p_logs.add_argument("--end", help="log time at which to stop")
    p_logs.add_argument("--logtypes", help="pipe-separated log types to process, all by default")
    p_logs.add_argument("--leaction", help="the leaction parameter for the API")
    p_logs.add_argument("--resume", action="store_true", help="start from the last log entry grabbed")
    p_logs.set_defaults(func=cmd_logs)

    p_files = sub.add_parser("files", parents=[common], help="grab file description rows")
    p_files.add_argument("--start", help="name of the file to start from")
    p_files.add_argument("--end", help="date after which to ignore new files")
    p_files.set_defaults(func=cmd_files)

    p_deleted = sub.add_parser("deleted-files", parents=[common], help="grab deleted file metadata")
    p_deleted.add_argument("--start", help="start point from which to continue with metadata")
    p_deleted.set_defaults(func=cmd_deleted_files)

    p_check = sub.add_parser("check", parents=[common, namespaces], help="check and repair mirrored revisions")
    p_check.add_argument("--start", help="revisions before this time are not checked")
    p_check.add_argument("--end", help="revisions after this time are not checked")
    p_check.add_argument("--report", type=int, help="report position every n revisions (default 5000)")
    p_check.add_argument("--dry", action="store_true", help="dry run, the database is not modified")
    p_check.set_defaults(func=cmd_check)
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        result = args.func(args)
    except InvalidOptionError as exc:
        logger.error("{}", exc)
        return 2
    except GrabberError as exc:
        logger.error("{}: {}", type(exc).__name__, exc)
        return 1
    print(json.dumps(asdict(result), ensure_ascii=False, indent=2))
    return 0


# python -m src.grabber
if __name__ == "__main__":
    sys.exit(main())
