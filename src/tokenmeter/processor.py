from typing import Any, Mapping

import structlog
from opentelemetry.context import Context
from opentelemetry.sdk.trace import ReadableSpan, Span, SpanProcessor
from opentelemetry.trace import StatusCode

from tokenmeter.constants import (
    ATTR_COST_USD,
    ATTR_INPUT_UNITS,
    ATTR_MODEL,
    ATTR_OUTPUT_UNITS,
    ATTR_PROVIDER,
    GEN_AI_INPUT_TOKENS,
    GEN_AI_OUTPUT_TOKENS,
    GEN_AI_REQUEST_MODEL,
    GEN_AI_SYSTEM,
    PROVIDER_UNKNOWN,
)
from tokenmeter.metrics import CostMetrics
from tokenmeter.models import UsageData
from tokenmeter.pricing.manifest import calculate_cost, get_model_pricing
from tokenmeter.pricing.models import ModelPricing, valid_rate

logger = structlog.get_logger()

PricingOverrides = Mapping[str, Mapping[str, "ModelPricing | Mapping[str, Any]"]]


def _first(attributes: "Mapping[str, Any]", *keys: "str") -> "Any":
    for key in keys:
        value = attributes.get(key)
        if value is not None:
            return value
    return None


def _coerce_overrides(overrides: "PricingOverrides") -> "dict[str, dict[str, ModelPricing]]":
    return {
        provider: {
            model: pricing if isinstance(pricing, ModelPricing) else ModelPricing.from_dict(pricing)
            for model, pricing in models.items()
        }
        for provider, models in overrides.items()
    }


class TokenMeterProcessor(SpanProcessor):
    """
    TokenMeterProcessor reads finished spans that carry usage (from
    `monitor()` or from other gen_ai instrumentation), logs their cost
    and feeds CostMetrics when one is given.

    Finished spans are read-only: spans without a cost attribute get
    their cost computed here for logs and metrics only, never written
    back. Monitored clients set the cost before the span ends.
    """

    def __init__(
        self,
        pricing_overrides: "PricingOverrides | None" = None,
        metrics: "CostMetrics | None" = None,
    ) -> "None":
        self._overrides = _coerce_overrides(pricing_overrides or {})
        self._metrics = metrics

    def on_start(self, span: "Span", parent_context: "Context | None" = None) -> "None":
        pass

    def on_end(self, span: "ReadableSpan") -> "None":
        attributes = span.attributes or {}
        if self._metrics is not None and span.status.status_code is StatusCode.ERROR:
            provider = _first(attributes, ATTR_PROVIDER, GEN_AI_SYSTEM)
            if provider is not None:
                self._metrics.inc_error(str(provider))

        input_units = _first(attributes, ATTR_INPUT_UNITS, GEN_AI_INPUT_TOKENS)
        output_units = _first(attributes, ATTR_OUTPUT_UNITS, GEN_AI_OUTPUT_TOKENS)
        if input_units is None and output_units is None:
            return

        usage = UsageData(
            provider=str(_first(attributes, ATTR_PROVIDER, GEN_AI_SYSTEM) or PROVIDER_UNKNOWN),
            model=str(_first(attributes, ATTR_MODEL, GEN_AI_REQUEST_MODEL) or PROVIDER_UNKNOWN),
            input_units=input_units,
            output_units=output_units,
        )

        cost = valid_rate(attributes.get(ATTR_COST_USD))
        if cost is None:
            cost = self.calculate_span_cost(usage)

        logger.debug(
            "span_cost",
            span_name=span.name,
            provider=usage.provider,
            model=usage.model,
            cost_usd=round(cost, 6),
        )

        if self._metrics is None:
            return

        self._metrics.record_usage(usage, cost)
        if span.start_time is not None and span.end_time is not None:
            self._metrics.observe_duration(
                usage.provider, (span.end_time - span.start_time) / 1e9
            )

    def calculate_span_cost(self, usage: "UsageData") -> "float":
        """
        prices usage with the overrides first, then the shared rate table.
        """
        pricing = self._overrides.get(usage.provider, {}).get(usage.model)
        if pricing is None:
            pricing = get_model_pricing(usage.provider, usage.model)
        if pricing is None:
            logger.warning("pricing_not_found", provider=usage.provider, model=usage.model)
            return 0.0
        return calculate_cost(usage, pricing)

    def shutdown(self) -> "None":
        pass

    def force_flush(self, timeout_millis: "int" = 30000) -> "bool":
        return True
