from __future__ import annotations

import argparse
import json
import logging
import sys
import threading
from pathlib import Path
from signal import SIGINT, signal
from typing import TYPE_CHECKING

from dotenv import load_dotenv

from marketsync.adapters.files import JsonFileProductFetcher
from marketsync.adapters.reporting import (
    dump_analysis,
    dump_bulk_analysis,
    dump_persist_result,
    dump_reconciliation,
)
from marketsync.adapters.sqlalchemy.migrations import upgrade_head
from marketsync.app import analyze, bulk_analyze, run_reconciliation
from marketsync.config import configure_logging, get_reconciliation_config
from marketsync.domain.errors import ContractViolationError
from marketsync.domain.model import GroupingPolicy
from marketsync.domain.reconciliation import MatchingOptions, PersistOptions

if TYPE_CHECKING:
    from collections.abc import Sequence
    from types import FrameType

    from marketsync.domain.ports import ProductCatalogFetcher

log = logging.getLogger(__name__)

_CANCEL = threading.Event()


class CliJobHandle:
    """Job handle logging progress and cancelled by Ctrl+C."""

    def __init__(self, cancel: threading.Event) -> None:
        self._cancel = cancel
        self._last = -1

    def report_progress(self, percent: int, message: str | None = None) -> None:
        if percent == self._last and message is None:
            return
        self._last = percent
        log.info("Progress %3d%% %s", percent, message or "")

    def is_cancelled(self) -> bool:
        return self._cancel.is_set()


def _marketplace_list(value: str) -> list[str]:
    names = [name.strip().casefold() for name in value.split(",") if name.strip()]
    if len(names) < 2:  # noqa: PLR2004
        raise argparse.ArgumentTypeError("Provide at least two comma-separated marketplaces")
    if len(set(names)) != len(names):
        raise argparse.ArgumentTypeError("Marketplaces must be distinct")
    return names


def _add_matching_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--seller", required=True, help="Seller whose catalogs are compared")
    parser.add_argument(
        "--input-dir",
        type=Path,
        help="Read <marketplace>.json catalog exports instead of calling the gateways",
    )
    parser.add_argument(
        "--strict",
        action="store_true",
        default=None,
        help="Disable fuzzy name matching",
    )
    parser.add_argument(
        "--threshold",
        type=float,
        help="Name similarity threshold in (0, 1] (defaults to config)",
    )
    parser.add_argument(
        "--ignore-brand",
        action="store_true",
        default=None,
        help="Ignore brands when matching",
    )
    parser.add_argument("--output", type=Path, help="Write the JSON report to this file")


def _parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Reconcile product catalogs across marketplaces")
    subparsers = parser.add_subparsers(dest="command", required=True)

    analyze_parser = subparsers.add_parser("analyze", help="Compare two marketplaces")
    _add_matching_arguments(analyze_parser)
    analyze_parser.add_argument("--source", required=True, help="Source marketplace")
    analyze_parser.add_argument("--target", required=True, help="Target marketplace")

    reconcile = subparsers.add_parser("reconcile", help="Group products across marketplaces")
    _add_matching_arguments(reconcile)
    reconcile.add_argument(
        "--marketplaces",
        type=_marketplace_list,
        required=True,
        help="Comma-separated marketplaces to reconcile",
    )
    reconcile.add_argument(
        "--policy",
        choices=[policy.value for policy in GroupingPolicy],
        help="Grouping policy (defaults to config)",
    )
    reconcile.add_argument(
        "--execute",
        action="store_true",
        help="Persist the reconciled groups as canonical products",
    )
    reconcile.add_argument(
        "--overwrite",
        action="store_true",
        help="Overwrite existing canonical products and listings when executing",
    )

    bulk = subparsers.add_parser("bulk-analyze", help="Analyze every pair of marketplaces")
    _add_matching_arguments(bulk)
    bulk.add_argument(
        "--marketplaces",
        type=_marketplace_list,
        required=True,
        help="Comma-separated marketplaces to analyze pairwise",
    )
    bulk.add_argument(
        "--job-id",
        required=True,
        help="Job identifier; re-running the same id resumes unfinished pairs",
    )

    db = subparsers.add_parser("db", help="Database management commands")
    db_sub = db.add_subparsers(dest="db_command", required=True)
    db_sub.add_parser("upgrade", help="Apply pending migrations")

    return parser.parse_args(list(argv))


def _matching_options(args: argparse.Namespace) -> MatchingOptions:
    config = get_reconciliation_config()
    return MatchingOptions(
        strict_matching=config.strict_matching if args.strict is None else args.strict,
        similarity_threshold=(
            config.similarity_threshold if args.threshold is None else args.threshold
        ),
        ignore_brand=config.ignore_brand if args.ignore_brand is None else args.ignore_brand,
    )


def _fetcher(args: argparse.Namespace) -> ProductCatalogFetcher | None:
    if args.input_dir is None:
        return None
    return JsonFileProductFetcher(args.input_dir)


def _emit(payload: dict[str, object], output: Path | None) -> None:
    text = json.dumps(payload, indent=2, ensure_ascii=False)
    if output is None:
        sys.stdout.write(text + "\n")
        return
    output.write_text(text + "\n", encoding="utf-8")
    log.info("Wrote report to %s", output)


def _run(args: argparse.Namespace) -> int:
    handle = CliJobHandle(_CANCEL)

    if args.command == "db":
        upgrade_head()
        log.info("Database schema is up to date")
        return 0

    options = _matching_options(args)
    if args.command == "analyze":
        report = analyze(
            args.seller,
            args.source.lower(),
            args.target.lower(),
            options=options,
            fetcher=_fetcher(args),
        )
        _emit(dump_analysis(report), args.output)
        return 0

    if args.command == "reconcile":
        result = run_reconciliation(
            args.seller,
            args.marketplaces,
            handle=handle,
            persist=args.execute,
            options=options,
            policy=GroupingPolicy(args.policy) if args.policy else None,
            persist_options=PersistOptions(overwrite_existing=args.overwrite),
            fetcher=_fetcher(args),
        )
        payload: dict[str, object] = {"cancelled": result.cancelled}
        if result.report is not None:
            payload["report"] = dump_reconciliation(result.report)
        if result.persisted is not None:
            payload["persisted"] = dump_persist_result(result.persisted)
        _emit(payload, args.output)
        return 130 if result.cancelled else 0

    if args.command == "bulk-analyze":
        bulk = bulk_analyze(
            args.seller,
            args.marketplaces,
            job_id=args.job_id,
            handle=handle,
            options=options,
            fetcher=_fetcher(args),
        )
        _emit(dump_bulk_analysis(bulk), args.output)
        return 130 if bulk.cancelled else 0

    raise ValueError(f"Unsupported command: {args.command}")


def sigint_handler(_signal_received: int, _frame: FrameType | None) -> None:
    """Request cooperative cancellation; a second Ctrl+C exits immediately."""

    if _CANCEL.is_set():
        log.info("Closed by user (Ctrl+C)")
        sys.exit(130)
    log.info("Cancelling after the current step (Ctrl+C again to abort)")
    _CANCEL.set()


def main(argv: Sequence[str] | None = None) -> None:
    """Main application entry point."""

    load_dotenv()
    configure_logging()
    args_list = list(argv) if argv is not None else list(sys.argv[1:])
    try:
        parsed_args = _parse_args(args_list)
        if getattr(parsed_args, "threshold", None) is not None:
            MatchingOptions(similarity_threshold=parsed_args.threshold)
    except ValueError:
        log.exception("CLI validation error")
        sys.exit(2)

    _CANCEL.clear()
    signal(SIGINT, sigint_handler)
    try:
        code = _run(parsed_args)
    except ContractViolationError:
        log.exception("CLI validation error")
        sys.exit(2)
    except Exception:
        log.exception("Fatal error during reconciliation")
        sys.exit(1)
    if code:
        sys.exit(code)


if __name__ == "__main__":
    main()
