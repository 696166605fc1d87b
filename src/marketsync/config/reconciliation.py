"""Defaults for matching, fetching and persistence runs."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Final

from .env import env_bool, env_float, env_int, optional_env
from .errors import ConfigurationError

GROUPING_POLICIES: Final[frozenset[str]] = frozenset({"seed", "transitive"})


@dataclass(frozen=True, slots=True)
class ReconciliationConfig:
    strict_matching: bool = False
    similarity_threshold: float = 0.85
    ignore_brand: bool = False
    grouping_policy: str = "transitive"
    fetch_concurrency: int = 4
    fetch_timeout_seconds: float = 120.0
    page_size: int = 100
    max_pages: int | None = None
    lease_ttl_seconds: float = 900.0


def get_reconciliation_config() -> ReconciliationConfig:
    policy = (optional_env("MARKETSYNC_GROUPING_POLICY") or "transitive").lower()
    if policy not in GROUPING_POLICIES:
        allowed = ", ".join(sorted(GROUPING_POLICIES))
        raise ConfigurationError(f"MARKETSYNC_GROUPING_POLICY must be one of: {allowed}")

    threshold = env_float("MARKETSYNC_SIMILARITY_THRESHOLD", 0.85, minimum=0.0)
    if not 0.0 < threshold <= 1.0:
        raise ConfigurationError("MARKETSYNC_SIMILARITY_THRESHOLD must be in (0, 1]")

    max_pages = env_int("MARKETSYNC_MAX_PAGES", 0, minimum=0)
    return ReconciliationConfig(
        strict_matching=env_bool("MARKETSYNC_STRICT_MATCHING", default=False),
        similarity_threshold=threshold,
        ignore_brand=env_bool("MARKETSYNC_IGNORE_BRAND", default=False),
        grouping_policy=policy,
        fetch_concurrency=env_int("MARKETSYNC_FETCH_CONCURRENCY", 4, minimum=1),
        fetch_timeout_seconds=env_float("MARKETSYNC_FETCH_TIMEOUT_SECONDS", 120.0, minimum=1.0),
        page_size=env_int("MARKETSYNC_PAGE_SIZE", 100, minimum=1),
        max_pages=max_pages or None,
        lease_ttl_seconds=env_float("MARKETSYNC_LEASE_TTL_SECONDS", 900.0, minimum=1.0),
    )
