"""JSON views of analysis, reconciliation and persistence results.

The views read the domain objects through ``from_attributes`` and expose only the
marketplace-independent fields; raw marketplace payloads never leave the domain.
"""

from __future__ import annotations

from decimal import Decimal
from typing import TYPE_CHECKING, Annotated
from uuid import UUID  # noqa: TC003

from pydantic import BaseModel, BeforeValidator, ConfigDict, field_validator

from marketsync.domain.model import (  # noqa: TC001
    MatchCriterion,
    Priority,
    ProductStatus,
    RecommendationType,
    Severity,
)
from marketsync.domain.reconciliation import ConflictReport, PersistOutcome  # noqa: TC001

if TYPE_CHECKING:
    from marketsync.domain.data_integration import AnalysisReport, ReconciliationReport
    from marketsync.domain.jobs import BulkAnalysisResult
    from marketsync.domain.reconciliation import PersistResult


def _decimal_to_float(value: object) -> object:
    if isinstance(value, Decimal):
        return float(value)
    return value


JsonScalar = Annotated[float | int | str | None, BeforeValidator(_decimal_to_float)]
Money = Annotated[float, BeforeValidator(_decimal_to_float)]
ProductKeyView = tuple[str, str]


class ReportModel(BaseModel):
    model_config = ConfigDict(from_attributes=True, extra="ignore")


class ProductView(ReportModel):
    marketplace: str
    external_id: str
    name: str
    sku: str | None = None
    barcode: str | None = None
    brand: str | None = None
    price: Money = 0.0
    stock: int = 0
    category: str | None = None
    status: ProductStatus


class MatchView(ReportModel):
    criterion: MatchCriterion
    confidence: float


class ConflictView(ReportModel):
    field: str
    source_value: JsonScalar
    target_value: JsonScalar
    difference: JsonScalar
    severity: Severity


def _unwrap_report(value: object) -> object:
    if isinstance(value, ConflictReport):
        return list(value.conflicts)
    return value


class GroupView(ReportModel):
    members: list[ProductView]
    confidence: float
    match_criteria: list[MatchCriterion]
    conflicts: list[ConflictView]
    total_stock: int


class DuplicateView(ReportModel):
    product: ProductKeyView
    matched: ProductKeyView
    match: MatchView


class SuggestionView(ReportModel):
    field: str
    suggestion: str
    value: JsonScalar
    rationale: str


class RecommendationView(ReportModel):
    type: RecommendationType
    priority: Priority
    description: str
    source_marketplace: str | None = None
    target_marketplaces: list[str]
    products: list[ProductKeyView]
    count: int
    estimated_minutes: int
    suggestions: list[SuggestionView]


class NextStepView(ReportModel):
    step: int
    action: str
    operation: str
    description: str
    estimated_minutes: int


class WarningView(ReportModel):
    marketplace: str
    index: int
    reason: str
    message: str


class FetchFailureView(ReportModel):
    marketplace: str
    message: str


class MatchedPairView(ReportModel):
    source: ProductView
    target: ProductView
    match: MatchView
    conflicts: list[ConflictView]

    _unwrap_conflicts = field_validator("conflicts", mode="before")(_unwrap_report)


class DuplicateMatchView(ReportModel):
    source: ProductView
    candidates: list[ProductView]
    match: MatchView


class ComparisonSummaryView(ReportModel):
    total_source: int
    total_target: int
    matched: int
    conflicts: int
    source_only: int
    target_only: int
    duplicates: int
    match_rate: float


class AnalysisView(BaseModel):
    seller_id: str
    source_marketplace: str
    target_marketplace: str
    summary: ComparisonSummaryView
    matched: list[MatchedPairView]
    conflicts: list[MatchedPairView]
    source_only: list[ProductView]
    target_only: list[ProductView]
    duplicates: list[DuplicateMatchView]
    recommendations: list[RecommendationView]
    next_steps: list[NextStepView]
    fetch_failures: list[FetchFailureView]
    warnings: list[WarningView]


class GroupingSummaryView(BaseModel):
    total_products: int
    matched_products: int
    single_products: int
    groups: int
    duplicates: int


class ReconciliationView(BaseModel):
    seller_id: str
    marketplaces: list[str]
    summary: GroupingSummaryView
    groups: list[GroupView]
    singles: dict[str, list[ProductView]]
    duplicates: list[DuplicateView]
    recommendations: list[RecommendationView]
    next_steps: list[NextStepView]
    fetch_failures: list[FetchFailureView]
    warnings: list[WarningView]


class PersistErrorView(ReportModel):
    product: str
    marketplaces: list[str]
    message: str


class PersistedProductView(ReportModel):
    product_id: UUID
    name: str
    marketplaces: list[str]
    outcome: PersistOutcome
    confidence: float | None = None
    match_criteria: list[MatchCriterion]


class PersistResultView(ReportModel):
    saved: int
    skipped: int
    errors: list[PersistErrorView]
    products: list[PersistedProductView]
    cancelled: bool


class BulkAnalysisView(BaseModel):
    reports: dict[str, AnalysisView]
    skipped: list[str]
    cancelled: bool


def analysis_view(report: AnalysisReport) -> AnalysisView:
    comparison = report.comparison
    return AnalysisView.model_validate(
        {
            "seller_id": report.seller_id,
            "source_marketplace": comparison.source_marketplace,
            "target_marketplace": comparison.target_marketplace,
            "summary": report.summary,
            "matched": comparison.matches,
            "conflicts": comparison.conflicts,
            "source_only": comparison.source_only,
            "target_only": comparison.target_only,
            "duplicates": comparison.duplicates,
            "recommendations": report.plan.recommendations,
            "next_steps": report.plan.next_steps,
            "fetch_failures": report.fetch_failures,
            "warnings": report.warnings,
        },
        from_attributes=True,
    )


def reconciliation_view(report: ReconciliationReport) -> ReconciliationView:
    grouping = report.grouping
    return ReconciliationView.model_validate(
        {
            "seller_id": report.seller_id,
            "marketplaces": report.marketplaces,
            "summary": {
                "total_products": grouping.total_products,
                "matched_products": grouping.matched_products,
                "single_products": grouping.single_products,
                "groups": len(grouping.groups),
                "duplicates": len(grouping.duplicates),
            },
            "groups": grouping.groups,
            "singles": grouping.singles,
            "duplicates": grouping.duplicates,
            "recommendations": report.plan.recommendations,
            "next_steps": report.plan.next_steps,
            "fetch_failures": report.fetch_failures,
            "warnings": report.warnings,
        },
        from_attributes=True,
    )


def dump_analysis(report: AnalysisReport) -> dict[str, object]:
    return analysis_view(report).model_dump(mode="json")


def dump_reconciliation(report: ReconciliationReport) -> dict[str, object]:
    return reconciliation_view(report).model_dump(mode="json")


def dump_persist_result(result: PersistResult) -> dict[str, object]:
    return PersistResultView.model_validate(result).model_dump(mode="json")


def dump_bulk_analysis(result: BulkAnalysisResult) -> dict[str, object]:
    view = BulkAnalysisView(
        reports={key: analysis_view(report) for key, report in result.reports.items()},
        skipped=result.skipped,
        cancelled=result.cancelled,
    )
    return view.model_dump(mode="json")
