import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Mapping


class PricingUnit(str, Enum):
    PER_MILLION_TOKENS = "1m_tokens"
    PER_THOUSAND_TOKENS = "1k_tokens"
    PER_THOUSAND_CHARACTERS = "1k_characters"
    REQUEST = "request"
    MEGAPIXEL = "megapixel"
    SECOND = "second"
    MINUTE = "minute"
    IMAGE = "image"

    @property
    def divisor(self) -> "float":
        if self is PricingUnit.PER_MILLION_TOKENS:
            return 1_000_000
        if self in (PricingUnit.PER_THOUSAND_TOKENS, PricingUnit.PER_THOUSAND_CHARACTERS):
            return 1_000
        return 1

    @property
    def is_flat(self) -> "bool":
        """
        flat-rate units charge `cost` once per generated artifact.
        """
        return self in (PricingUnit.IMAGE, PricingUnit.REQUEST)


# (attribute, camelCase key, snake_case key)
_RATE_FIELDS: "tuple[tuple[str, str, str], ...]" = (
    ("input", "input", "input"),
    ("output", "output", "output"),
    ("cached_input", "cachedInput", "cached_input"),
    ("cached_output", "cachedOutput", "cached_output"),
    ("cache_write", "cacheWrite", "cache_write"),
    ("cache_read", "cacheRead", "cache_read"),
    ("cost", "cost", "cost"),
)


def valid_rate(value: "object") -> "float | None":
    """
    returns the value as a float when it is a finite, non-negative
    number, otherwise None. Invalid input is discarded, never coerced.
    """
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if not math.isfinite(value) or value < 0:
        return None
    return float(value)


def valid_quantity(value: "object") -> "float":
    """
    usage quantities normalize to zero when missing or invalid.
    """
    rate = valid_rate(value)
    return 0.0 if rate is None else rate


def parse_unit(raw: "object", default: "PricingUnit" = PricingUnit.PER_MILLION_TOKENS) -> "PricingUnit":
    if isinstance(raw, PricingUnit):
        return raw
    try:
        return PricingUnit(raw)
    except ValueError:
        return default


@dataclass(frozen=True, slots=True)
class ModelPricing:
    """
    ModelPricing is one row of the rate table. Rates are in USD per
    `unit`; a missing rate does not contribute to the cost.
    """

    unit: "PricingUnit" = PricingUnit.PER_MILLION_TOKENS
    input: "float | None" = None
    output: "float | None" = None
    cached_input: "float | None" = None
    cached_output: "float | None" = None
    cache_write: "float | None" = None
    cache_read: "float | None" = None
    # flat rate for request/image pricing
    cost: "float | None" = None
    prices_by_type: "dict[str, float] | None" = None

    @classmethod
    def from_dict(cls, data: "Mapping[str, Any]") -> "ModelPricing":
        """
        builds a rate entry from either the runtime (camelCase) or the
        API (snake_case) JSON shape.
        """
        rates: "dict[str, float | None]" = {}
        for attr, camel, snake in _RATE_FIELDS:
            raw = data.get(camel, data.get(snake))
            rates[attr] = valid_rate(raw)

        prices_by_type = None
        raw_by_type = data.get("pricesByType", data.get("prices_by_type"))
        if isinstance(raw_by_type, Mapping):
            prices_by_type = {
                str(key): rate
                for key, rate in ((k, valid_rate(v)) for k, v in raw_by_type.items())
                if rate is not None
            }

        return cls(
            unit=parse_unit(data.get("unit")),
            prices_by_type=prices_by_type or None,
            **rates,
        )

    def to_dict(self) -> "dict[str, Any]":
        out: "dict[str, Any]" = {"unit": self.unit.value}
        for attr, camel, _ in _RATE_FIELDS:
            value = getattr(self, attr)
            if value is not None:
                out[camel] = value
        if self.prices_by_type:
            out["pricesByType"] = dict(self.prices_by_type)
        return out


def _utc_now() -> "str":
    return datetime.now(timezone.utc).isoformat()


@dataclass(frozen=True, slots=True)
class PricingManifest:
    """
    PricingManifest is a complete, versioned rate table keyed by
    provider and model id.
    """

    version: "str" = "1.0.0"
    updated_at: "str" = field(default_factory=_utc_now)
    providers: "dict[str, dict[str, ModelPricing]]" = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: "Mapping[str, Any]") -> "PricingManifest":
        """
        parses the runtime manifest JSON:
        {"version", "updatedAt", "providers": {provider: {model: entry}}}
        """
        raw = data.get("providers") or {}
        if not isinstance(raw, Mapping):
            raise ValueError("pricing manifest providers must be a mapping")

        providers: "dict[str, dict[str, ModelPricing]]" = {}
        for provider, models in raw.items():
            if not isinstance(models, Mapping):
                continue
            providers[provider] = {
                model_id: ModelPricing.from_dict(entry)
                for model_id, entry in models.items()
                if isinstance(entry, Mapping)
            }

        return cls(
            version=str(data.get("version") or "1.0.0"),
            updated_at=str(data.get("updatedAt") or data.get("updated_at") or _utc_now()),
            providers=providers,
        )

    @classmethod
    def from_api(cls, data: "Mapping[str, Any]") -> "PricingManifest":
        """
        parses the pricing API response, a flat model map where each
        entry names its provider:
        {"version", "updated_at", "models": {model: {"provider", ...}}}
        """
        raw = data.get("models") or {}
        if not isinstance(raw, Mapping):
            raise ValueError("pricing API models must be a mapping")

        providers: "dict[str, dict[str, ModelPricing]]" = {}
        for model_id, entry in raw.items():
            if not isinstance(entry, Mapping) or not entry.get("provider"):
                continue
            providers.setdefault(str(entry["provider"]), {})[model_id] = (
                ModelPricing.from_dict(entry)
            )

        return cls(
            version=str(data.get("version") or "1.0.0"),
            updated_at=str(data.get("updated_at") or _utc_now()),
            providers=providers,
        )

    def to_dict(self) -> "dict[str, Any]":
        return {
            "version": self.version,
            "updatedAt": self.updated_at,
            "providers": {
                provider: {model: pricing.to_dict() for model, pricing in models.items()}
                for provider, models in self.providers.items()
            },
        }

    def model_count(self) -> "int":
        return sum(len(models) for models in self.providers.values())
