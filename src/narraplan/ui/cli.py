# ruff: noqa: T201

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from signal import SIGINT, signal
from typing import TYPE_CHECKING

from dotenv import load_dotenv

from narraplan.app import (
    build_narrative_plan,
    execute_session,
    refresh_session,
    session_clarifications,
    session_status,
)
from narraplan.config import ConfigurationError, configure_logging
from narraplan.domain.planning import (
    action_label,
    dump_session_json,
    parse_session,
)

if TYPE_CHECKING:
    from collections.abc import Sequence
    from types import FrameType

    from narraplan.domain.planning import ExecutionReport, PlanSession

log = logging.getLogger(__name__)


def _parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Plan and execute CRM updates from narratives")
    subparsers = parser.add_subparsers(dest="command", required=True)

    plan = subparsers.add_parser("plan", help="Build a plan from a narrative")
    source = plan.add_mutually_exclusive_group(required=True)
    source.add_argument("narrative", nargs="?", help="Narrative text")
    source.add_argument("--file", type=Path, help="Read the narrative from a file")
    plan.add_argument(
        "--output",
        type=Path,
        help="Where to write the session JSON (defaults to stdout)",
    )
    plan.add_argument(
        "--no-services",
        action="store_true",
        help="Skip the extraction and web search services even when configured",
    )

    clarify = subparsers.add_parser("clarify", help="List open clarification questions")
    clarify.add_argument("session", type=Path, help="Session JSON file")

    execute = subparsers.add_parser("execute", help="Execute actions of a session")
    execute.add_argument("session", type=Path, help="Session JSON file")
    selection = execute.add_mutually_exclusive_group()
    selection.add_argument(
        "--action",
        dest="actions",
        action="append",
        help="Action id to execute (repeatable; defaults to all runnable actions)",
    )
    selection.add_argument(
        "--next",
        action="store_true",
        help="Execute only the next runnable action",
    )
    execute.add_argument(
        "--output",
        type=Path,
        help="Where to write the updated session (defaults to the input file)",
    )

    refresh = subparsers.add_parser(
        "refresh", help="Re-match a session plan against the current records"
    )
    refresh.add_argument("session", type=Path, help="Session JSON file")
    refresh.add_argument(
        "--output",
        type=Path,
        help="Where to write the refreshed session (defaults to the input file)",
    )

    status = subparsers.add_parser("status", help="Show order and validation of a session")
    status.add_argument("session", type=Path, help="Session JSON file")

    return parser.parse_args(list(argv))


def _read_narrative(args: argparse.Namespace) -> str:
    if args.file is not None:
        try:
            return args.file.read_text(encoding="utf-8")
        except OSError as exc:
            raise ValueError(f"Cannot read narrative file: {args.file}") from exc
    return args.narrative


def _load_session(path: Path) -> PlanSession:
    try:
        payload = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ValueError(f"Cannot read session file: {path}") from exc
    return parse_session(payload)


def _write_session(session: PlanSession, path: Path | None) -> None:
    payload = dump_session_json(session)
    if path is None:
        print(payload)
        return
    path.write_text(payload + "\n", encoding="utf-8")
    log.info("Wrote session to %s", path)


def _print_report(report: ExecutionReport) -> None:
    for result in report.results:
        print(f"{result.status.value:<9} {result.action_id}: {result.message}")
    for warning in report.warnings:
        print(f"warning: {warning}")
    print(report.summary)


def _print_status(session: PlanSession) -> None:
    status = session_status(session)
    completed = set(status.completed_action_ids)
    print(session.plan.summary)
    print(f"phase: {session.plan.phase}")
    for position, action_id in enumerate(status.execution_order, start=1):
        marker = "x" if action_id in completed else " "
        action = session.plan.action_for(action_id)
        label = action_label(action) if action is not None else action_id
        print(f"{position:>3}. [{marker}] {action_id}  {label}")
        for issue in status.validation.get(action_id, ()):
            print(f"       ! {issue}")
    for warning in status.warnings:
        print(f"warning: {warning}")
    print(f"next: {status.next_runnable or '-'}")


def _run_command(args: argparse.Namespace) -> None:
    if args.command == "plan":
        session = build_narrative_plan(_read_narrative(args), use_services=not args.no_services)
        _write_session(session, args.output)
    elif args.command == "clarify":
        clarifications = session_clarifications(_load_session(args.session))
        if not clarifications:
            print("No open questions.")
        for clarification in clarifications:
            suffix = f" ({', '.join(clarification.action_ids)})" if clarification.action_ids else ""
            print(f"- {clarification.question}{suffix}")
    elif args.command == "execute":
        session = _load_session(args.session)
        updated, report = execute_session(
            session, action_ids=args.actions, next_only=args.next
        )
        if report is None:
            print("Nothing left to execute.")
        else:
            _print_report(report)
        _write_session(updated, args.output or args.session)
    elif args.command == "refresh":
        refreshed = refresh_session(_load_session(args.session))
        _write_session(refreshed, args.output or args.session)
    elif args.command == "status":
        _print_status(_load_session(args.session))
    else:
        raise ValueError(f"Unsupported command: {args.command}")


def main(argv: Sequence[str] | None = None) -> None:
    """Main application entry point."""
    load_dotenv()
    signal(SIGINT, sigint_handler)
    try:
        configure_logging()
    except ConfigurationError as exc:
        print(exc, file=sys.stderr)
        sys.exit(2)
    args_list = list(argv) if argv is not None else list(sys.argv[1:])
    parsed_args = _parse_args(args_list)

    try:
        _run_command(parsed_args)
    except ValueError:
        log.exception("CLI validation error")
        sys.exit(2)
    except Exception:
        log.exception("Fatal error")
        sys.exit(1)


def sigint_handler(_signal_received: int, _frame: FrameType | None) -> None:
    """Handle SIGINT (Ctrl+C) gracefully."""
    log.info("Closed by user (Ctrl+C)")
    sys.exit(0)


if __name__ == "__main__":
    main()
