import math
import os
from dataclasses import dataclass

import httpx

from tokenmeter.errors import PricingConfigError

DEFAULT_API_URL = "https://pricing.tokenmeter.dev/api/v1"
DEFAULT_CDN_URL = (
    "https://cdn.jsdelivr.net/npm/tokenmeter@latest/dist/pricing/manifest.json"
)

# remote pricing may only be fetched from these hosts, over HTTPS
ALLOWED_HOSTS: "frozenset[str]" = frozenset(
    {
        "pricing.tokenmeter.dev",
        "cdn.jsdelivr.net",
        "unpkg.com",
        "raw.githubusercontent.com",
    }
)

MAX_FETCH_TIMEOUT = 60.0

_TRUTHY = ("1", "true", "yes", "on")


def validate_source_url(url: "str", field: "str") -> "str":
    """
    checks that a remote pricing source is an HTTPS URL on an
    allow-listed host. Returns the URL unchanged.
    """
    try:
        parsed = httpx.URL(url)
    except (httpx.InvalidURL, TypeError) as exc:
        raise PricingConfigError(f"Invalid {field}: {url!r}") from exc

    if parsed.scheme != "https":
        raise PricingConfigError(f"Invalid {field}: only https is allowed, got {url!r}")

    if parsed.host not in ALLOWED_HOSTS:
        raise PricingConfigError(
            f"Invalid {field}: host {parsed.host!r} is not in the allow-list"
        )

    return url


def _valid_seconds(value: "object") -> "bool":
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value) and value > 0


@dataclass
class Config:
    api_url: "str" = DEFAULT_API_URL
    cdn_url: "str" = DEFAULT_CDN_URL
    # skip every network fetch and use the bundled table only
    offline_mode: "bool" = False
    # per-source timeout for a remote pricing fetch, in seconds
    fetch_timeout: "float" = 5.0
    # how long a loaded table stays fresh, in seconds
    cache_timeout: "float" = 300.0
    log_level: "str" = "info"

    @classmethod
    def from_env(cls) -> "Config":
        config = cls(
            api_url=os.environ.get("TOKENMETER_PRICING_API_URL", DEFAULT_API_URL),
            cdn_url=os.environ.get("TOKENMETER_PRICING_CDN_URL", DEFAULT_CDN_URL),
            offline_mode=os.environ.get("TOKENMETER_OFFLINE", "").lower() in _TRUTHY,
            log_level=os.environ.get("TOKENMETER_LOG_LEVEL", "info"),
        )

        fetch_timeout = os.environ.get("TOKENMETER_FETCH_TIMEOUT")
        if fetch_timeout:
            config.fetch_timeout = _parse_float("TOKENMETER_FETCH_TIMEOUT", fetch_timeout)

        cache_timeout = os.environ.get("TOKENMETER_CACHE_TIMEOUT")
        if cache_timeout:
            config.cache_timeout = _parse_float("TOKENMETER_CACHE_TIMEOUT", cache_timeout)

        return config

    def validate(self) -> "Config":
        """
        raises PricingConfigError on the first invalid field.
        """
        validate_source_url(self.api_url, "api_url")
        validate_source_url(self.cdn_url, "cdn_url")

        if not _valid_seconds(self.fetch_timeout) or self.fetch_timeout > MAX_FETCH_TIMEOUT:
            raise PricingConfigError(
                f"Invalid fetch_timeout: expected 0 < seconds <= {MAX_FETCH_TIMEOUT:g},"
                f" got {self.fetch_timeout!r}"
            )

        if not _valid_seconds(self.cache_timeout):
            raise PricingConfigError(
                f"Invalid cache_timeout: expected seconds > 0, got {self.cache_timeout!r}"
            )

        return self


def _parse_float(name: "str", raw: "str") -> "float":
    try:
        return float(raw)
    except ValueError as exc:
        raise PricingConfigError(f"Invalid {name}: {raw!r}") from exc
