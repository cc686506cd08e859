from prometheus_client import REGISTRY, CollectorRegistry, Counter, Histogram

from tokenmeter.models import UsageData


class CostMetrics:
    """
    applies priced calls to Prometheus counters.
     - tokenmeter_requests_total: priced calls, labeled by provider
     and model.
     - tokenmeter_units_total: usage units, labeled by provider, model
     and direction (input/output/cached_input).
     - tokenmeter_cost_usd_total: cost in USD, labeled by provider and
     model.
    """

    def __init__(self, registry: "CollectorRegistry" = REGISTRY) -> "None":
        self._requests: "Counter" = Counter(
            "tokenmeter_requests_total",
            "Total monitored AI calls",
            ["provider", "model"],
            registry=registry,
        )
        self._units: "Counter" = Counter(
            "tokenmeter_units_total",
            "Total usage units reported by monitored AI calls",
            ["provider", "model", "direction"],
            registry=registry,
        )
        self._cost: "Counter" = Counter(
            "tokenmeter_cost_usd_total",
            "Total cost in USD of monitored AI calls",
            ["provider", "model"],
            registry=registry,
        )
        self._duration: "Histogram" = Histogram(
            "tokenmeter_call_duration_seconds",
            "Duration of monitored AI calls",
            ["provider"],
            registry=registry,
        )
        self._errors: "Counter" = Counter(
            "tokenmeter_call_errors_total",
            "Total monitored AI calls that failed",
            ["provider"],
            registry=registry,
        )

    def record_usage(self, usage: "UsageData", cost: "float") -> "None":
        labels = {"provider": usage.provider, "model": usage.model}
        self._requests.labels(**labels).inc()
        self._cost.labels(**labels).inc(max(cost, 0.0))

        directions = (
            ("input", usage.input_units),
            ("output", usage.output_units),
            ("cached_input", usage.cached_input_units),
        )
        for direction, units in directions:
            if units:
                self._units.labels(**labels, direction=direction).inc(units)

    def observe_duration(self, provider: "str", duration_seconds: "float") -> "None":
        self._duration.labels(provider=provider).observe(duration_seconds)

    def inc_error(self, provider: "str") -> "None":
        self._errors.labels(provider=provider).inc()
