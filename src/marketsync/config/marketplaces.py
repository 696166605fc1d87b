"""Per-marketplace connection settings.

Each marketplace is reached through its own HTTP gateway. Settings are read from
``MARKETSYNC_<NAME>_BASE_URL`` / ``MARKETSYNC_<NAME>_API_KEY`` and combined with a
default request budget for that marketplace.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Final

from .env import env_float, env_int, optional_env, require_env_vars
from .http_resilience import CacheConfig, RateLimit, ResilienceConfig

DEFAULT_TIMEOUT_SECONDS: Final[float] = 20.0
DEFAULT_RATE_LIMIT: Final[RateLimit] = RateLimit(max_calls=5, per_seconds=1.0)

# Documented request budgets of the public seller APIs, conservative where unknown.
DEFAULT_RATE_LIMITS: Final[dict[str, RateLimit]] = {
    "trendyol": RateLimit(max_calls=50, per_seconds=10.0),
    "hepsiburada": RateLimit(max_calls=10, per_seconds=1.0),
    "amazon": RateLimit(max_calls=2, per_seconds=1.0),
    "n11": RateLimit(max_calls=5, per_seconds=1.0),
    "shopify": RateLimit(max_calls=2, per_seconds=1.0),
    "ciceksepeti": RateLimit(max_calls=5, per_seconds=1.0),
    "pazarama": RateLimit(max_calls=5, per_seconds=1.0),
    "pttavm": RateLimit(max_calls=3, per_seconds=1.0),
}


def is_cacheable_page(payload: object) -> bool:
    """Only product pages without an error body are worth caching."""

    if isinstance(payload, list):
        return True
    return isinstance(payload, dict) and "error" not in payload


@dataclass(frozen=True, slots=True)
class MarketplaceConfig:
    """Connection settings for a single marketplace gateway."""

    name: str
    base_url: str
    api_key: str | None
    resilience: ResilienceConfig


def _env_prefix(marketplace: str) -> str:
    return f"MARKETSYNC_{marketplace.upper()}"


def get_marketplace_config(
    marketplace: str,
    *,
    resilience: ResilienceConfig | None = None,
) -> MarketplaceConfig:
    prefix = _env_prefix(marketplace)
    base_url_var = f"{prefix}_BASE_URL"
    base_url = require_env_vars((base_url_var,))[base_url_var]
    default_limit = DEFAULT_RATE_LIMITS.get(marketplace, DEFAULT_RATE_LIMIT)
    ratelimit = RateLimit(
        max_calls=env_int(f"{prefix}_RATE_LIMIT_CALLS", default_limit.max_calls, minimum=1),
        per_seconds=env_float(
            f"{prefix}_RATE_LIMIT_SECONDS", default_limit.per_seconds, minimum=0.001
        ),
    )
    api_key = optional_env(f"{prefix}_API_KEY")
    headers = {"Authorization": f"Bearer {api_key}"} if api_key else None
    return MarketplaceConfig(
        name=marketplace,
        base_url=base_url,
        api_key=api_key,
        resilience=resilience
        or ResilienceConfig(
            name=marketplace,
            base_url=base_url,
            timeout_seconds=env_float(
                f"{prefix}_TIMEOUT_SECONDS", DEFAULT_TIMEOUT_SECONDS, minimum=0.1
            ),
            ratelimit=ratelimit,
            cache=CacheConfig(
                backend="memory",
                default_ttl_seconds=60.0,
                should_cache=is_cacheable_page,
            ),
            default_headers=headers,
        ),
    )
