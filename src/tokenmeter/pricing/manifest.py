import asyncio
import dataclasses
import re
import time
from dataclasses import dataclass
from typing import Any, Mapping

import httpx
import structlog

from tokenmeter.config import Config
from tokenmeter.constants import PACKAGE_NAME, VERSION
from tokenmeter.errors import PricingConfigError
from tokenmeter.models import UsageData
from tokenmeter.pricing.bundled import bundled_manifest
from tokenmeter.pricing.models import (
    ModelPricing,
    PricingManifest,
    parse_unit,
    valid_quantity,
    valid_rate,
)

logger = structlog.get_logger()

_DATE_SUFFIX = re.compile(r"-\d{4}-\d{2}-\d{2}$")
_NAMESPACE_PREFIX = re.compile(r"^[^/]+/")

_HEADERS: "dict[str, str]" = {
    "Accept": "application/json",
    "User-Agent": f"{PACKAGE_NAME}/{VERSION}",
}


@dataclass(frozen=True, slots=True)
class ModelAlias:
    """
    target of a model alias, used only to redirect rate lookups.
    """

    provider: "str"
    model: "str"


class ManifestCache:
    """
    ManifestCache holds the process-wide rate table. It always has a
    table (the bundled one until a refresh succeeds) and keeps at most
    one refresh in flight; concurrent callers share that fetch.
    """

    def __init__(self) -> "None":
        self._generation: "int" = 0
        self.reset()

    def reset(self) -> "None":
        """
        drops any refreshed table and goes back to the bundled one.
        A refresh already in flight finishes but its result is discarded.
        """
        self._manifest: "PricingManifest" = bundled_manifest()
        self._timestamp: "float | None" = None
        self._pending: "asyncio.Task[PricingManifest] | None" = None
        self._source: "str" = "bundled"
        # bumped on reset so stale fetches do not overwrite the table
        self._generation += 1

    @property
    def manifest(self) -> "PricingManifest":
        return self._manifest

    @property
    def source(self) -> "str":
        return self._source

    def is_stale(self, cache_timeout: "float") -> "bool":
        if self._timestamp is None:
            return True
        return time.monotonic() - self._timestamp >= cache_timeout

    def _in_flight(self) -> "asyncio.Task[PricingManifest] | None":
        task = self._pending
        if task is None or task.done():
            return None
        # a task from a previous (possibly closed) loop cannot be awaited here
        if task.get_loop() is not asyncio.get_running_loop():
            return None
        return task

    async def refresh(
        self, config: "Config", force_refresh: "bool" = False
    ) -> "PricingManifest":
        if not force_refresh and not self.is_stale(config.cache_timeout):
            return self._manifest

        task = self._in_flight()
        if task is None:
            task = asyncio.get_running_loop().create_task(self._fetch(config))
            self._pending = task

        # shield so one cancelled waiter does not cancel the shared fetch
        return await asyncio.shield(task)

    def schedule_refresh(self, config: "Config") -> "None":
        """
        starts a background refresh when an event loop is running.
        Without a loop this is a no-op and the current table is kept.
        """
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return

        if self._in_flight() is not None:
            return

        self._pending = loop.create_task(self._fetch(config))

    async def _fetch(self, config: "Config") -> "PricingManifest":
        generation = self._generation
        try:
            if config.offline_mode:
                logger.debug("pricing_offline_mode")
                self._timestamp = time.monotonic()
                return self._manifest

            async with httpx.AsyncClient(
                timeout=config.fetch_timeout, headers=_HEADERS
            ) as client:
                sources = (
                    ("api", _fetch_from_api, config.api_url),
                    ("cdn", _fetch_from_cdn, config.cdn_url),
                )
                for source, fetch, url in sources:
                    try:
                        manifest = await fetch(client, url)
                    except Exception as exc:
                        logger.warning(
                            "pricing_source_unavailable",
                            source=source,
                            url=url,
                            error=str(exc),
                        )
                        continue

                    if generation == self._generation:
                        self._manifest = manifest
                        self._timestamp = time.monotonic()
                        self._source = source
                    logger.info(
                        "pricing_manifest_loaded",
                        source=source,
                        version=manifest.version,
                        model_count=manifest.model_count(),
                    )
                    return manifest

            logger.warning("pricing_sources_unavailable", keeping=self._source)
            # failures wait a full interval before the next attempt
            if generation == self._generation:
                self._timestamp = time.monotonic()
            return self._manifest
        finally:
            if self._pending is asyncio.current_task():
                self._pending = None


async def _get_json(client: "httpx.AsyncClient", url: "str") -> "Mapping[str, Any]":
    resp = await client.get(url)
    resp.raise_for_status()
    data = resp.json()
    if not isinstance(data, Mapping):
        raise ValueError(f"unexpected pricing payload from {url}")
    return data


async def _fetch_from_api(client: "httpx.AsyncClient", api_url: "str") -> "PricingManifest":
    data = await _get_json(client, f"{api_url.rstrip('/')}/manifest")
    manifest = PricingManifest.from_api(data)
    if not manifest.model_count():
        raise ValueError("pricing API returned no models")
    return manifest


async def _fetch_from_cdn(client: "httpx.AsyncClient", cdn_url: "str") -> "PricingManifest":
    data = await _get_json(client, cdn_url)
    manifest = PricingManifest.from_dict(data)
    if not manifest.model_count():
        raise ValueError("pricing manifest has no models")
    return manifest


_cache = ManifestCache()
_config = Config()
_aliases: "dict[str, ModelAlias]" = {}


def _coerce_alias(key: "object", target: "object") -> "ModelAlias":
    if not isinstance(key, str) or not key:
        raise PricingConfigError(f"Invalid model alias key: {key!r}")

    if isinstance(target, ModelAlias):
        provider, model = target.provider, target.model
    elif isinstance(target, Mapping):
        provider, model = target.get("provider"), target.get("model")
    elif isinstance(target, (tuple, list)) and len(target) == 2:
        provider, model = target
    else:
        raise PricingConfigError(f"Invalid model alias {key!r}: expected provider and model")

    if not isinstance(provider, str) or not provider:
        raise PricingConfigError(f"Invalid model alias {key!r}: missing or invalid provider")
    if not isinstance(model, str) or not model:
        raise PricingConfigError(f"Invalid model alias {key!r}: missing or invalid model")

    return ModelAlias(provider=provider, model=model)


def _validate_aliases(aliases: "Mapping[str, Any]") -> "dict[str, ModelAlias]":
    if not isinstance(aliases, Mapping):
        raise PricingConfigError("Invalid model_aliases: expected a mapping")
    return {key: _coerce_alias(key, target) for key, target in aliases.items()}


def configure_pricing(
    config: "Config | None" = None,
    *,
    api_url: "str | None" = None,
    cdn_url: "str | None" = None,
    offline_mode: "bool | None" = None,
    fetch_timeout: "float | None" = None,
    cache_timeout: "float | None" = None,
    model_aliases: "Mapping[str, Any] | None" = None,
) -> "Config":
    """
    updates the global pricing configuration. Everything is validated
    before anything is applied; on success the rate table cache is reset
    to the bundled table so the next lookup refreshes from the new sources.
    """
    global _config

    overrides = {
        name: value
        for name, value in (
            ("api_url", api_url),
            ("cdn_url", cdn_url),
            ("offline_mode", offline_mode),
            ("fetch_timeout", fetch_timeout),
            ("cache_timeout", cache_timeout),
        )
        if value is not None
    }
    new_config = dataclasses.replace(config or _config, **overrides).validate()
    new_aliases = _validate_aliases(model_aliases) if model_aliases is not None else {}

    _config = new_config
    _aliases.update(new_aliases)
    _cache.reset()
    return dataclasses.replace(_config)


def get_pricing_config() -> "Config":
    """
    returns a copy of the current pricing configuration.
    """
    return dataclasses.replace(_config)


def reset_pricing_config() -> "None":
    global _config
    _config = Config()
    _cache.reset()


def set_model_aliases(aliases: "Mapping[str, Any]") -> "None":
    """
    merges aliases into the alias table. Keys are either a bare model
    name or "<provider>:<model>"; provider-qualified keys win.
    """
    _aliases.update(_validate_aliases(aliases))


def clear_model_aliases() -> "None":
    _aliases.clear()


def get_model_aliases() -> "dict[str, ModelAlias]":
    return dict(_aliases)


async def load_manifest(force_refresh: "bool" = False) -> "PricingManifest":
    """
    refreshes the rate table from the pricing API, then the CDN. Never
    raises for network problems: on failure the previous table is kept
    and returned.
    """
    return await _cache.refresh(_config, force_refresh=force_refresh)


def get_cached_manifest() -> "PricingManifest":
    """
    returns the current rate table immediately, scheduling a background
    refresh when it is stale and a loop is available.
    """
    if not _config.offline_mode and _cache.is_stale(_config.cache_timeout):
        _cache.schedule_refresh(_config)
    return _cache.manifest


def clear_manifest_cache() -> "None":
    _cache.reset()


def get_manifest_cache() -> "ManifestCache":
    return _cache


def get_model_pricing(
    provider: "str",
    model: "str",
    manifest: "PricingManifest | None" = None,
) -> "ModelPricing | None":
    """
    resolves a rate entry, first hit wins:
     - provider-qualified alias "<provider>:<model>"
     - generic alias "<model>"
     - exact model id
     - model id without a trailing -YYYY-MM-DD
     - model id without a leading "<namespace>/"
    """
    if manifest is None:
        manifest = get_cached_manifest()

    for key in (f"{provider}:{model}", model):
        alias = _aliases.get(key)
        if alias is None:
            continue
        pricing = manifest.providers.get(alias.provider, {}).get(alias.model)
        if pricing is not None:
            return pricing

    models = manifest.providers.get(provider)
    if not models:
        return None

    if model in models:
        return models[model]

    for pattern in (_DATE_SUFFIX, _NAMESPACE_PREFIX):
        candidate = pattern.sub("", model)
        if candidate != model and candidate in models:
            return models[candidate]

    return None


def calculate_cost(usage: "UsageData", pricing: "ModelPricing") -> "float":
    """
    computes the USD cost of usage under a rate entry. Invalid
    quantities count as zero and invalid rates as absent, so the
    result is always a finite number >= 0.
    """
    divisor = parse_unit(pricing.unit).divisor

    # multi-modal pricing replaces the token math when any key matches
    if pricing.prices_by_type and usage.usage_by_type:
        matched = False
        total = 0.0
        for key, quantity in usage.usage_by_type.items():
            rate = valid_rate(pricing.prices_by_type.get(key))
            if rate is None:
                continue
            matched = True
            total += (valid_quantity(quantity) / divisor) * rate
        if matched:
            return max(0.0, total)

    input_units = valid_quantity(usage.input_units)
    output_units = valid_quantity(usage.output_units)
    cached_units = valid_quantity(usage.cached_input_units)

    cost = 0.0

    flat = valid_rate(pricing.cost)
    if flat is not None:
        if parse_unit(pricing.unit).is_flat:
            cost += flat * max(1.0, output_units)
        else:
            cost += flat

    for units, rate in (
        (input_units, pricing.input),
        (output_units, pricing.output),
        (cached_units, pricing.cached_input),
    ):
        rate = valid_rate(rate)
        if rate is not None and units > 0:
            cost += (units / divisor) * rate

    return max(0.0, cost)
