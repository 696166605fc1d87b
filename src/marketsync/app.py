"""Application orchestration entry points."""

from __future__ import annotations

import asyncio
from datetime import timedelta
from logging import getLogger
from typing import TYPE_CHECKING

from marketsync.adapters.checkpoints import JsonFileCheckpointStore
from marketsync.adapters.marketplaces import HttpListingPublisher, HttpMarketplaceClient
from marketsync.adapters.sqlalchemy.locking import SqlAlchemySellerLease
from marketsync.adapters.sqlalchemy.unit_of_work import (
    SqlAlchemyCatalogUnitOfWork,
    is_started,
    startup,
)
from marketsync.config import get_reconciliation_config, get_storage_config
from marketsync.domain.data_integration import (
    FetchSettings,
    analyze_marketplaces,
    execute_plan,
    publish_missing_products,
    reconcile_marketplaces,
)
from marketsync.domain.jobs import run_bulk_analysis_job, run_reconciliation_job
from marketsync.domain.model import GroupingPolicy
from marketsync.domain.reconciliation import MatchingOptions, ReconciliationEngine

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Sequence

    from marketsync.config import ReconciliationConfig
    from marketsync.domain.data_integration import (
        AnalysisReport,
        PublishResult,
        ReconciliationReport,
    )
    from marketsync.domain.jobs import BulkAnalysisResult, ReconciliationJobResult
    from marketsync.domain.ports import (
        CatalogUnitOfWork,
        JobCheckpointStore,
        JobHandle,
        ListingPublisher,
        ProductCatalogFetcher,
        SellerLock,
    )
    from marketsync.domain.reconciliation import PersistOptions, PersistResult

    type UnitOfWorkFactory = Callable[[], CatalogUnitOfWork]


log = getLogger(__name__)


def build_engine(
    config: ReconciliationConfig | None = None,
    *,
    options: MatchingOptions | None = None,
    policy: GroupingPolicy | None = None,
) -> ReconciliationEngine:
    """Return an engine from explicit options, falling back to the environment."""

    config = config or get_reconciliation_config()
    return ReconciliationEngine(
        matching=options
        or MatchingOptions(
            strict_matching=config.strict_matching,
            similarity_threshold=config.similarity_threshold,
            ignore_brand=config.ignore_brand,
        ),
        policy=policy or GroupingPolicy(config.grouping_policy),
    )


def build_fetch_settings(config: ReconciliationConfig | None = None) -> FetchSettings:
    config = config or get_reconciliation_config()
    return FetchSettings(
        concurrency=config.fetch_concurrency,
        timeout_seconds=config.fetch_timeout_seconds,
        page_size=config.page_size,
        max_pages=config.max_pages,
    )


def _run_with_fetcher[T](
    work: Callable[[ProductCatalogFetcher], Awaitable[T]],
    fetcher: ProductCatalogFetcher | None,
) -> T:
    async def runner() -> T:
        if fetcher is not None:
            return await work(fetcher)
        async with HttpMarketplaceClient() as client:
            return await work(client)

    return asyncio.run(runner())


def _storage(
    unit_of_work_factory: UnitOfWorkFactory | None,
    lock: SellerLock | None,
) -> tuple[UnitOfWorkFactory, SellerLock]:
    if unit_of_work_factory is not None and lock is not None:
        return unit_of_work_factory, lock
    if not is_started():
        startup()
    ttl = timedelta(seconds=get_reconciliation_config().lease_ttl_seconds)
    return (
        unit_of_work_factory or SqlAlchemyCatalogUnitOfWork,
        lock or SqlAlchemySellerLease(ttl=ttl),
    )


def analyze(
    seller_id: str,
    source: str,
    target: str,
    *,
    options: MatchingOptions | None = None,
    fetcher: ProductCatalogFetcher | None = None,
    settings: FetchSettings | None = None,
) -> AnalysisReport:
    """Compare two marketplaces of a seller and recommend sync actions."""

    engine = build_engine(options=options)
    log.info("Analyzing %s against %s for seller %s", source, target, seller_id)
    report = _run_with_fetcher(
        lambda effective: analyze_marketplaces(
            fetcher=effective,
            seller_id=seller_id,
            source=source,
            target=target,
            engine=engine,
            settings=settings or build_fetch_settings(),
        ),
        fetcher,
    )
    summary = report.summary
    log.info(
        "Finished analysis: matched=%d, conflicts=%d, source_only=%d, target_only=%d, "
        "match_rate=%.1f%%",
        summary.matched,
        summary.conflicts,
        summary.source_only,
        summary.target_only,
        summary.match_rate,
    )
    return report


def reconcile_all(
    seller_id: str,
    marketplaces: Sequence[str],
    *,
    options: MatchingOptions | None = None,
    policy: GroupingPolicy | None = None,
    fetcher: ProductCatalogFetcher | None = None,
    settings: FetchSettings | None = None,
) -> ReconciliationReport:
    """Group a seller's catalogs across ``marketplaces`` and plan sync actions."""

    engine = build_engine(options=options, policy=policy)
    log.info("Reconciling %s for seller %s", ", ".join(marketplaces), seller_id)
    report = _run_with_fetcher(
        lambda effective: reconcile_marketplaces(
            fetcher=effective,
            seller_id=seller_id,
            marketplaces=marketplaces,
            engine=engine,
            settings=settings or build_fetch_settings(),
        ),
        fetcher,
    )
    log.info(
        "Finished reconciliation: groups=%d, singles=%d, duplicates=%d, recommendations=%d",
        len(report.grouping.groups),
        report.grouping.single_products,
        len(report.grouping.duplicates),
        len(report.plan.recommendations),
    )
    return report


def execute(
    seller_id: str,
    report: ReconciliationReport,
    *,
    options: PersistOptions | None = None,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
    lock: SellerLock | None = None,
    should_continue: Callable[[], bool] | None = None,
) -> PersistResult:
    """Persist a reconciliation report as canonical products under the seller's lease."""

    effective_uow, effective_lock = _storage(unit_of_work_factory, lock)
    return execute_plan(
        seller_id=seller_id,
        grouping=report.grouping,
        unit_of_work_factory=effective_uow,
        lock=effective_lock,
        options=options,
        should_continue=should_continue,
    )


def publish_missing(
    seller_id: str,
    report: ReconciliationReport,
    *,
    publisher: ListingPublisher | None = None,
    should_continue: Callable[[], bool] | None = None,
) -> PublishResult:
    """Create the products of the report's ``sync_missing`` actions on their targets."""

    products = [product for items in report.grouping.singles.values() for product in items]

    async def runner() -> PublishResult:
        if publisher is not None:
            return await publish_missing_products(
                seller_id=seller_id,
                plan=report.plan,
                products=products,
                publisher=publisher,
                should_continue=should_continue,
            )
        async with HttpMarketplaceClient() as client:
            return await publish_missing_products(
                seller_id=seller_id,
                plan=report.plan,
                products=products,
                publisher=HttpListingPublisher(client),
                should_continue=should_continue,
            )

    return asyncio.run(runner())


def run_reconciliation(
    seller_id: str,
    marketplaces: Sequence[str],
    *,
    handle: JobHandle,
    persist: bool = False,
    options: MatchingOptions | None = None,
    policy: GroupingPolicy | None = None,
    persist_options: PersistOptions | None = None,
    fetcher: ProductCatalogFetcher | None = None,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
    lock: SellerLock | None = None,
) -> ReconciliationJobResult:
    """Reconcile and optionally persist as a cancellable job."""

    engine = build_engine(options=options, policy=policy)
    storage = _storage(unit_of_work_factory, lock) if persist else (None, None)
    return _run_with_fetcher(
        lambda effective: run_reconciliation_job(
            handle=handle,
            fetcher=effective,
            seller_id=seller_id,
            marketplaces=marketplaces,
            unit_of_work_factory=storage[0],
            lock=storage[1],
            engine=engine,
            settings=build_fetch_settings(),
            persist_options=persist_options,
        ),
        fetcher,
    )


def bulk_analyze(
    seller_id: str,
    marketplaces: Sequence[str],
    *,
    job_id: str,
    handle: JobHandle,
    options: MatchingOptions | None = None,
    fetcher: ProductCatalogFetcher | None = None,
    checkpoints: JobCheckpointStore | None = None,
) -> BulkAnalysisResult:
    """Analyze every marketplace pair; re-running a job id resumes where it stopped."""

    engine = build_engine(options=options)
    store = checkpoints or JsonFileCheckpointStore(get_storage_config().checkpoint_dir())
    return _run_with_fetcher(
        lambda effective: run_bulk_analysis_job(
            job_id=job_id,
            handle=handle,
            fetcher=effective,
            seller_id=seller_id,
            marketplaces=marketplaces,
            checkpoints=store,
            engine=engine,
            settings=build_fetch_settings(),
        ),
        fetcher,
    )
