"""Long-running reconciliation work driven through a ``JobHandle``.

Responsibilities of this module:
- report progress that never decreases and stays within 0..100
- stop cooperatively between units of work once the handle reports cancellation
- resume bulk analyses from the pairs recorded in a ``JobCheckpointStore``
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from itertools import combinations
from logging import getLogger
from typing import TYPE_CHECKING

from marketsync.domain.data_integration import (
    AnalysisReport,
    execute_plan,
    fetch_catalogs,
    reconcile_marketplaces,
)
from marketsync.domain.reconciliation import ReconciliationEngine

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from marketsync.domain.data_integration import FetchSettings, ReconciliationReport
    from marketsync.domain.ports import (
        CatalogUnitOfWork,
        JobCheckpointStore,
        JobHandle,
        ProductCatalogFetcher,
        SellerLock,
    )
    from marketsync.domain.reconciliation import PersistOptions, PersistResult

log = getLogger(__name__)

_FETCHED = 40
_DONE = 100


class ProgressTracker:
    """Forward clamped, monotonic progress to a job handle."""

    def __init__(self, handle: JobHandle) -> None:
        self._handle = handle
        self._percent = 0

    @property
    def percent(self) -> int:
        return self._percent

    def report(self, percent: float, message: str | None = None) -> None:
        clamped = max(0, min(_DONE, int(percent)))
        self._percent = max(self._percent, clamped)
        self._handle.report_progress(self._percent, message)

    def report_fraction(
        self,
        done: int,
        total: int,
        *,
        start: int,
        end: int,
        message: str | None = None,
    ) -> None:
        """Map ``done / total`` onto the ``start..end`` band."""

        share = done / total if total else 1.0
        self.report(start + (end - start) * share, message)


@dataclass(slots=True, kw_only=True)
class ReconciliationJobResult:
    report: ReconciliationReport | None = None
    persisted: PersistResult | None = None
    cancelled: bool = False


@dataclass(slots=True, kw_only=True)
class BulkAnalysisResult:
    reports: dict[str, AnalysisReport] = field(default_factory=dict[str, AnalysisReport])
    skipped: list[str] = field(default_factory=list[str])
    cancelled: bool = False


def pair_id(source: str, target: str) -> str:
    return f"{source}:{target}"


async def run_reconciliation_job(
    *,
    handle: JobHandle,
    fetcher: ProductCatalogFetcher,
    seller_id: str,
    marketplaces: Sequence[str],
    unit_of_work_factory: Callable[[], CatalogUnitOfWork] | None = None,
    lock: SellerLock | None = None,
    engine: ReconciliationEngine | None = None,
    settings: FetchSettings | None = None,
    persist_options: PersistOptions | None = None,
) -> ReconciliationJobResult:
    """Reconcile ``marketplaces`` and, when storage is wired, persist the result."""

    tracker = ProgressTracker(handle)
    result = ReconciliationJobResult()
    tracker.report(0, "started")

    if handle.is_cancelled():
        result.cancelled = True
        return result

    result.report = await reconcile_marketplaces(
        fetcher=fetcher,
        seller_id=seller_id,
        marketplaces=marketplaces,
        engine=engine,
        settings=settings,
    )
    tracker.report(_FETCHED, "reconciled")

    if unit_of_work_factory is None or lock is None:
        tracker.report(_DONE, "completed")
        return result
    if handle.is_cancelled():
        result.cancelled = True
        return result

    def on_progress(done: int, total: int) -> None:
        tracker.report_fraction(done, total, start=_FETCHED, end=_DONE - 1)

    result.persisted = await asyncio.to_thread(
        execute_plan,
        seller_id=seller_id,
        grouping=result.report.grouping,
        unit_of_work_factory=unit_of_work_factory,
        lock=lock,
        options=persist_options,
        should_continue=lambda: not handle.is_cancelled(),
        on_progress=on_progress,
    )
    result.cancelled = result.persisted.cancelled
    if not result.cancelled:
        tracker.report(_DONE, "completed")
    return result


async def run_bulk_analysis_job(
    *,
    job_id: str,
    handle: JobHandle,
    fetcher: ProductCatalogFetcher,
    seller_id: str,
    marketplaces: Sequence[str],
    checkpoints: JobCheckpointStore,
    engine: ReconciliationEngine | None = None,
    settings: FetchSettings | None = None,
) -> BulkAnalysisResult:
    """Analyze every pair of ``marketplaces``, skipping pairs a previous run finished.

    Checkpoints are cleared once all pairs are done; a cancelled run keeps them so
    the next run with the same ``job_id`` resumes.
    """

    engine = engine or ReconciliationEngine()
    tracker = ProgressTracker(handle)
    result = BulkAnalysisResult()

    marketplaces = engine.canonical_marketplaces(marketplaces)
    pairs = list(combinations(marketplaces, 2))
    done = checkpoints.load(job_id)
    pending = [pair for pair in pairs if pair_id(*pair) not in done]
    result.skipped = [pair_id(*pair) for pair in pairs if pair_id(*pair) in done]
    if result.skipped:
        log.info("Resuming job %s: %d of %d pairs already done", job_id, len(done), len(pairs))
    tracker.report_fraction(len(result.skipped), len(pairs), start=0, end=_DONE - 1)

    needed = [
        marketplace
        for marketplace in marketplaces
        if any(marketplace in pair for pair in pending)
    ]
    fetched = await fetch_catalogs(fetcher, seller_id, needed, settings=settings)

    completed = len(result.skipped)
    for source, target in pending:
        if handle.is_cancelled():
            log.info("Job %s cancelled with %d pairs left", job_id, len(pairs) - completed)
            result.cancelled = True
            return result

        outcome = engine.compare(source, fetched.records[source], target, fetched.records[target])
        key = pair_id(source, target)
        result.reports[key] = AnalysisReport(
            seller_id=seller_id,
            comparison=outcome.comparison,
            plan=outcome.plan,
            fetch_failures=[
                failure for failure in fetched.failures if failure.marketplace in (source, target)
            ],
            warnings=outcome.warnings,
        )
        checkpoints.mark_done(job_id, key)
        completed += 1
        tracker.report_fraction(completed, len(pairs), start=0, end=_DONE - 1, message=key)

    checkpoints.clear(job_id)
    tracker.report(_DONE, "completed")
    return result
