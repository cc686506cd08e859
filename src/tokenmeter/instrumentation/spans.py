from typing import Any

import structlog
from opentelemetry import baggage, trace
from opentelemetry.trace import Span, Tracer, TracerProvider

from tokenmeter.constants import (
    ATTR_COST_USD,
    ATTR_INPUT_UNITS,
    ATTR_MODEL,
    ATTR_OUTPUT_UNITS,
    ATTR_PROVIDER,
    ATTR_UNIT,
    GEN_AI_INPUT_TOKENS,
    GEN_AI_OUTPUT_TOKENS,
    GEN_AI_REQUEST_MODEL,
    GEN_AI_SYSTEM,
    PACKAGE_NAME,
    PROVIDER_UNKNOWN,
    VERSION,
)
from tokenmeter.models import StreamingCostCallback, StreamingCostUpdate, UsageData
from tokenmeter.pricing.manifest import calculate_cost, get_model_pricing
from tokenmeter.pricing.models import parse_unit, valid_rate

logger = structlog.get_logger()


def get_tracer(tracer_provider: "TracerProvider | None" = None) -> "Tracer":
    return trace.get_tracer(PACKAGE_NAME, VERSION, tracer_provider=tracer_provider)


def get_baggage_attributes() -> "dict[str, str]":
    """
    returns the ambient baggage entries (org.id, user.id, ...) so they
    can be copied onto new spans.
    """
    return {key: str(value) for key, value in baggage.get_all().items()}


def price_usage(usage: "UsageData") -> "tuple[float, str | None]":
    """
    returns (cost, pricing unit) for usage. A missing rate entry is not
    an error: the provider-reported raw cost is used when valid, else 0.
    """
    pricing = get_model_pricing(usage.provider, usage.model)
    if pricing is None:
        raw_cost = valid_rate(usage.raw_cost)
        logger.debug(
            "pricing_not_found",
            provider=usage.provider,
            model=usage.model,
            raw_cost=raw_cost,
        )
        return (raw_cost or 0.0, None)

    return (calculate_cost(usage, pricing), parse_unit(pricing.unit).value)


def calculate_usage_cost(usage: "UsageData") -> "float":
    return price_usage(usage)[0]


def add_usage_to_span(
    span: "Span", usage: "UsageData", cost: "float", unit: "str | None" = None
) -> "None":
    """
    sets usage and cost attributes, in both the tokenmeter and the
    gen_ai namespaces. Must run before span.end().
    """
    attributes: "dict[str, Any]" = {
        ATTR_PROVIDER: usage.provider,
        ATTR_MODEL: usage.model,
        GEN_AI_REQUEST_MODEL: usage.model,
        GEN_AI_SYSTEM: usage.provider,
        ATTR_COST_USD: cost,
    }
    if usage.input_units is not None:
        attributes[ATTR_INPUT_UNITS] = usage.input_units
        attributes[GEN_AI_INPUT_TOKENS] = usage.input_units
    if usage.output_units is not None:
        attributes[ATTR_OUTPUT_UNITS] = usage.output_units
        attributes[GEN_AI_OUTPUT_TOKENS] = usage.output_units
    if unit is not None:
        attributes[ATTR_UNIT] = unit

    span.set_attributes(attributes)


def invoke_streaming_callback(
    callback: "StreamingCostCallback | None",
    usage: "UsageData | None",
    is_complete: "bool",
    cost: "float | None" = None,
) -> "None":
    if callback is None:
        return

    try:
        if cost is None:
            cost = calculate_usage_cost(usage) if usage is not None else 0.0
        callback(
            StreamingCostUpdate(
                estimated_cost=cost,
                input_tokens=(usage.input_units or 0) if usage else 0,
                output_tokens=(usage.output_units or 0) if usage else 0,
                provider=usage.provider if usage else PROVIDER_UNKNOWN,
                model=usage.model if usage else PROVIDER_UNKNOWN,
                is_complete=is_complete,
            )
        )
    except Exception as exc:
        logger.warning("streaming_cost_callback_failed", error=str(exc))
