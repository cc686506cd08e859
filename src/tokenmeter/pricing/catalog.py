import json
from pathlib import Path
from typing import Any, Iterable, Mapping

import structlog

from tokenmeter.pricing.models import ModelPricing, PricingManifest, PricingUnit

logger = structlog.get_logger()

# unit used when a catalog model does not name one
DEFAULT_UNITS: "dict[str, PricingUnit]" = {
    "openai": PricingUnit.PER_MILLION_TOKENS,
    "anthropic": PricingUnit.PER_MILLION_TOKENS,
    "google": PricingUnit.PER_MILLION_TOKENS,
    "google-vertex": PricingUnit.PER_MILLION_TOKENS,
    "bedrock": PricingUnit.PER_MILLION_TOKENS,
    "elevenlabs": PricingUnit.PER_THOUSAND_CHARACTERS,
    "fal": PricingUnit.REQUEST,
    "bfl": PricingUnit.IMAGE,
}

_CATALOG_UNITS: "dict[str, PricingUnit]" = {
    "characters": PricingUnit.PER_THOUSAND_CHARACTERS,
    "images": PricingUnit.IMAGE,
    "image": PricingUnit.IMAGE,
    "seconds": PricingUnit.SECOND,
    "second": PricingUnit.SECOND,
    "minutes": PricingUnit.MINUTE,
    "minute": PricingUnit.MINUTE,
    "megapixels": PricingUnit.MEGAPIXEL,
    "megapixel": PricingUnit.MEGAPIXEL,
    "requests": PricingUnit.REQUEST,
    "request": PricingUnit.REQUEST,
}


def convert_unit(
    unit: "str | None",
    unit_size: "int | None" = None,
    default: "PricingUnit" = PricingUnit.PER_MILLION_TOKENS,
) -> "PricingUnit":
    """
    maps a catalog billing unit (and optional unit size) to the
    runtime pricing unit.
    """
    if not unit:
        return default
    if unit == "tokens":
        if unit_size == 1000:
            return PricingUnit.PER_THOUSAND_TOKENS
        return PricingUnit.PER_MILLION_TOKENS
    return _CATALOG_UNITS.get(unit, PricingUnit.PER_MILLION_TOKENS)


def convert_catalog(catalog: "Mapping[str, Any]") -> "dict[str, ModelPricing]":
    """
    converts one provider catalog into rate entries. Only the latest
    pricing history entry is kept and every alias gets a copy.
    """
    provider = str(catalog.get("provider", ""))
    default_unit = DEFAULT_UNITS.get(provider, PricingUnit.PER_MILLION_TOKENS)
    entries: "dict[str, ModelPricing]" = {}

    for model_id, model in (catalog.get("models") or {}).items():
        history = model.get("pricing") or []
        if not history:
            logger.debug("catalog_model_without_pricing", provider=provider, model=model_id)
            continue

        latest = dict(history[-1])
        latest["unit"] = convert_unit(model.get("unit"), model.get("unitSize"), default_unit)
        pricing = ModelPricing.from_dict(latest)

        entries[model_id] = pricing
        for alias in model.get("aliases") or []:
            entries[alias] = pricing

    return entries


def build_manifest_from_catalogs(
    catalogs: "Iterable[Mapping[str, Any]]",
    version: "str" = "1.0.0",
) -> "PricingManifest":
    providers: "dict[str, dict[str, ModelPricing]]" = {}
    for catalog in catalogs:
        provider = catalog.get("provider")
        if not provider:
            logger.warning("catalog_missing_provider")
            continue
        providers.setdefault(str(provider), {}).update(convert_catalog(catalog))

    return PricingManifest(version=version, providers=providers)


def load_catalog_dir(directory: "Path") -> "list[dict[str, Any]]":
    """
    reads every *.json catalog in a directory, in name order.
    """
    catalogs = []
    for path in sorted(Path(directory).glob("*.json")):
        with path.open(encoding="utf-8") as fh:
            catalogs.append(json.load(fh))
        logger.debug("catalog_loaded", path=str(path))
    return catalogs
