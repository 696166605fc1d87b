"""Application services for reconciling a seller's marketplace catalogs."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING

from marketsync.domain.errors import MarketplaceUnavailableError
from marketsync.domain.model import RecommendationType
from marketsync.domain.reconciliation import (
    DEFAULT_REGISTRY,
    PersistOptions,
    ReconciliationEngine,
    ReconciliationWriter,
)

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Sequence

    from marketsync.domain.model import NormalizedProduct, ProductKey
    from marketsync.domain.ports import (
        CatalogUnitOfWork,
        ListingPublisher,
        ProductCatalogFetcher,
        RawProductRecord,
        SellerLock,
    )
    from marketsync.domain.reconciliation import (
        ComparisonSummary,
        GroupingResult,
        MappingRegistry,
        NormalizationWarning,
        PairComparison,
        PersistResult,
        SyncPlan,
    )

log = getLogger(__name__)

DEFAULT_PAGE_SIZE = 100


@dataclass(slots=True, frozen=True, kw_only=True)
class FetchSettings:
    concurrency: int = 4
    timeout_seconds: float = 120.0
    page_size: int = DEFAULT_PAGE_SIZE
    max_pages: int | None = None


@dataclass(slots=True, frozen=True, kw_only=True)
class FetchFailure:
    marketplace: str
    message: str


@dataclass(slots=True, kw_only=True)
class CatalogFetchResult:
    """Raw records per marketplace; failed marketplaces map to an empty list."""

    records: dict[str, list[RawProductRecord]] = field(
        default_factory=dict[str, list["RawProductRecord"]]
    )
    failures: list[FetchFailure] = field(default_factory=list[FetchFailure])


@dataclass(slots=True, kw_only=True)
class AnalysisReport:
    seller_id: str
    comparison: PairComparison
    plan: SyncPlan
    fetch_failures: list[FetchFailure] = field(default_factory=list[FetchFailure])
    warnings: list[NormalizationWarning] = field(default_factory=list["NormalizationWarning"])

    @property
    def summary(self) -> ComparisonSummary:
        return self.comparison.summary


@dataclass(slots=True, kw_only=True)
class ReconciliationReport:
    seller_id: str
    marketplaces: tuple[str, ...]
    grouping: GroupingResult
    plan: SyncPlan
    fetch_failures: list[FetchFailure] = field(default_factory=list[FetchFailure])
    warnings: list[NormalizationWarning] = field(default_factory=list["NormalizationWarning"])


@dataclass(slots=True, frozen=True, kw_only=True)
class PublishedListing:
    product: ProductKey
    marketplace: str
    external_id: str | None


@dataclass(slots=True, frozen=True, kw_only=True)
class PublishFailure:
    product: ProductKey
    marketplace: str
    message: str


@dataclass(slots=True, kw_only=True)
class PublishResult:
    published: list[PublishedListing] = field(default_factory=list[PublishedListing])
    failures: list[PublishFailure] = field(default_factory=list[PublishFailure])
    cancelled: bool = False


async def fetch_catalogs(
    fetcher: ProductCatalogFetcher,
    seller_id: str,
    marketplaces: Sequence[str],
    *,
    settings: FetchSettings | None = None,
) -> CatalogFetchResult:
    """Fetch every marketplace's catalog concurrently.

    At most ``settings.concurrency`` marketplaces are paginated at once, each under
    its own timeout. A marketplace that fails or times out contributes an empty list
    and a ``FetchFailure``; the others are unaffected.
    """

    settings = settings or FetchSettings()
    semaphore = asyncio.Semaphore(settings.concurrency)

    async def fetch_one(marketplace: str) -> list[RawProductRecord]:
        async with semaphore:
            async with asyncio.timeout(settings.timeout_seconds):
                return await _paginate(fetcher, seller_id, marketplace, settings)

    outcomes = await asyncio.gather(
        *(fetch_one(marketplace) for marketplace in marketplaces),
        return_exceptions=True,
    )

    result = CatalogFetchResult()
    for marketplace, outcome in zip(marketplaces, outcomes, strict=True):
        if isinstance(outcome, asyncio.CancelledError):
            raise outcome
        if isinstance(outcome, TimeoutError):
            message = f"timed out after {settings.timeout_seconds:g}s"
        elif isinstance(outcome, MarketplaceUnavailableError):
            message = str(outcome)
        elif isinstance(outcome, BaseException):
            raise outcome
        else:
            result.records[marketplace] = outcome
            log.info("Fetched %d %s products for %s", len(outcome), marketplace, seller_id)
            continue
        log.warning("Fetching %s products for %s failed: %s", marketplace, seller_id, message)
        result.records[marketplace] = []
        result.failures.append(FetchFailure(marketplace=marketplace, message=message))
    return result


async def _paginate(
    fetcher: ProductCatalogFetcher,
    seller_id: str,
    marketplace: str,
    settings: FetchSettings,
) -> list[RawProductRecord]:
    records: list[RawProductRecord] = []
    page = 0
    while True:
        batch = await fetcher(
            seller_id=seller_id,
            marketplace=marketplace,
            page=page,
            page_size=settings.page_size,
        )
        records.extend(batch.records)
        page += 1
        if not batch.has_more or not batch.records:
            break
        if settings.max_pages is not None and page >= settings.max_pages:
            log.info("Stopping %s pagination after %d pages", marketplace, page)
            break
    return records


async def analyze_marketplaces(
    *,
    fetcher: ProductCatalogFetcher,
    seller_id: str,
    source: str,
    target: str,
    engine: ReconciliationEngine | None = None,
    settings: FetchSettings | None = None,
) -> AnalysisReport:
    """Compare two marketplaces of one seller without writing anything."""

    engine = engine or ReconciliationEngine()
    source, target = engine.canonical_marketplaces((source, target))
    fetched = await fetch_catalogs(fetcher, seller_id, (source, target), settings=settings)
    outcome = engine.compare(
        source,
        fetched.records[source],
        target,
        fetched.records[target],
    )
    return AnalysisReport(
        seller_id=seller_id,
        comparison=outcome.comparison,
        plan=outcome.plan,
        fetch_failures=fetched.failures,
        warnings=outcome.warnings,
    )


async def reconcile_marketplaces(
    *,
    fetcher: ProductCatalogFetcher,
    seller_id: str,
    marketplaces: Sequence[str],
    engine: ReconciliationEngine | None = None,
    settings: FetchSettings | None = None,
) -> ReconciliationReport:
    """Group the catalogs of all ``marketplaces`` and plan the sync actions."""

    engine = engine or ReconciliationEngine()
    marketplaces = engine.canonical_marketplaces(marketplaces)
    fetched = await fetch_catalogs(fetcher, seller_id, marketplaces, settings=settings)
    outcome = engine.reconcile(fetched.records)
    return ReconciliationReport(
        seller_id=seller_id,
        marketplaces=marketplaces,
        grouping=outcome.grouping,
        plan=outcome.plan,
        fetch_failures=fetched.failures,
        warnings=outcome.warnings,
    )


def execute_plan(
    *,
    seller_id: str,
    grouping: GroupingResult,
    unit_of_work_factory: Callable[[], CatalogUnitOfWork],
    lock: SellerLock,
    options: PersistOptions | None = None,
    should_continue: Callable[[], bool] | None = None,
    on_progress: Callable[[int, int], None] | None = None,
) -> PersistResult:
    """Persist a grouping result while holding the seller's lease.

    The lease is renewed before every transaction. Raises ``SellerBusyError`` when
    another run holds the seller or takes the lease over mid-run.
    """

    def keep_going() -> bool:
        if should_continue is not None and not should_continue():
            return False
        lock.renew(seller_id)
        return True

    writer = ReconciliationWriter(unit_of_work_factory, options or PersistOptions())
    with lock.hold(seller_id):
        return writer.persist(
            grouping.groups,
            grouping.singles,
            seller_id=seller_id,
            should_continue=keep_going,
            on_progress=on_progress,
        )


async def publish_missing_products(
    *,
    seller_id: str,
    plan: SyncPlan,
    products: Iterable[NormalizedProduct],
    publisher: ListingPublisher,
    registry: MappingRegistry = DEFAULT_REGISTRY,
    should_continue: Callable[[], bool] | None = None,
) -> PublishResult:
    """Create every product of the plan's ``sync_missing`` actions on its targets."""

    by_key = {product.key: product for product in products}
    result = PublishResult()

    for recommendation in plan.of_type(RecommendationType.SYNC_MISSING):
        for key in recommendation.products:
            product = by_key.get(key)
            if product is None:
                log.warning("No product data for %s, skipping publication", key)
                continue
            for marketplace in recommendation.target_marketplaces:
                if should_continue is not None and not should_continue():
                    result.cancelled = True
                    return result
                payload = registry.get(marketplace).from_canonical(product)
                try:
                    external_id = await publisher(
                        seller_id=seller_id,
                        marketplace=marketplace,
                        payload=payload,
                    )
                except MarketplaceUnavailableError as exc:
                    log.warning("Publishing %s to %s failed: %s", key, marketplace, exc)
                    result.failures.append(
                        PublishFailure(product=key, marketplace=marketplace, message=str(exc))
                    )
                else:
                    result.published.append(
                        PublishedListing(
                            product=key,
                            marketplace=marketplace,
                            external_id=external_id,
                        )
                    )

    log.info(
        "Published %d listings for %s, %d failed",
        len(result.published),
        seller_id,
        len(result.failures),
    )
    return result
