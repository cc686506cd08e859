from typing import Iterator

import pytest
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import SimpleSpanProcessor
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter
from prometheus_client import CollectorRegistry

from tokenmeter.pricing.manifest import (
    clear_manifest_cache,
    clear_model_aliases,
    configure_pricing,
    reset_pricing_config,
)
from tokenmeter.registry import clear_provider_registry


@pytest.fixture()
def registry() -> "CollectorRegistry":
    """
    fresh Prometheus registry to avoid cross-test state.
    """
    return CollectorRegistry()


@pytest.fixture()
def span_exporter() -> "InMemorySpanExporter":
    return InMemorySpanExporter()


@pytest.fixture()
def tracer_provider(span_exporter: "InMemorySpanExporter") -> "TracerProvider":
    """
    per-test provider, passed to monitor() explicitly so the global
    tracer provider is never touched.
    """
    provider = TracerProvider()
    provider.add_span_processor(SimpleSpanProcessor(span_exporter))
    return provider


@pytest.fixture(autouse=True)
def _isolated_pricing() -> "Iterator[None]":
    """
    every test starts offline on the bundled table, with no aliases
    and no registered providers.
    """
    configure_pricing(offline_mode=True)
    yield
    reset_pricing_config()
    clear_model_aliases()
    clear_provider_registry()
    clear_manifest_cache()
