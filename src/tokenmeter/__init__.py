from tokenmeter.config import Config
from tokenmeter.constants import VERSION as __version__
from tokenmeter.context import (
    attribute_scope,
    context_from_headers,
    extract_trace_headers,
    get_attribute,
    get_current_attributes,
    with_attributes,
    with_attributes_sync,
    with_extracted_context,
)
from tokenmeter.cost import CostCapture, CostResult, capture_cost, with_cost, with_cost_sync
from tokenmeter.errors import PricingConfigError, TokenMeterError
from tokenmeter.instrumentation.detect import detect_provider
from tokenmeter.instrumentation.proxy import monitor, unwrap
from tokenmeter.instrumentation.sanitize import sanitize_error_message
from tokenmeter.logging import setup_logging
from tokenmeter.metrics import CostMetrics
from tokenmeter.models import (
    ErrorContext,
    MonitorOptions,
    RequestContext,
    ResponseContext,
    StreamingCostUpdate,
    UsageData,
)
from tokenmeter.pricing.manifest import (
    calculate_cost,
    clear_manifest_cache,
    clear_model_aliases,
    configure_pricing,
    get_cached_manifest,
    get_model_aliases,
    get_model_pricing,
    get_pricing_config,
    load_manifest,
    reset_pricing_config,
    set_model_aliases,
)
from tokenmeter.pricing.models import ModelPricing, PricingManifest, PricingUnit
from tokenmeter.processor import TokenMeterProcessor
from tokenmeter.registry import (
    ProviderConfig,
    clear_provider_registry,
    get_provider,
    get_registered_providers,
    register_provider,
    unregister_provider,
)
from tokenmeter.strategies.dispatch import extract_usage

__all__ = [
    "Config",
    "CostCapture",
    "CostMetrics",
    "CostResult",
    "ErrorContext",
    "ModelPricing",
    "MonitorOptions",
    "PricingConfigError",
    "PricingManifest",
    "PricingUnit",
    "ProviderConfig",
    "RequestContext",
    "ResponseContext",
    "StreamingCostUpdate",
    "TokenMeterError",
    "TokenMeterProcessor",
    "UsageData",
    "__version__",
    "attribute_scope",
    "calculate_cost",
    "capture_cost",
    "clear_manifest_cache",
    "clear_model_aliases",
    "clear_provider_registry",
    "configure_pricing",
    "context_from_headers",
    "detect_provider",
    "extract_trace_headers",
    "extract_usage",
    "get_attribute",
    "get_cached_manifest",
    "get_current_attributes",
    "get_model_aliases",
    "get_model_pricing",
    "get_pricing_config",
    "get_provider",
    "get_registered_providers",
    "load_manifest",
    "monitor",
    "register_provider",
    "reset_pricing_config",
    "sanitize_error_message",
    "set_model_aliases",
    "setup_logging",
    "unregister_provider",
    "unwrap",
    "with_attributes",
    "with_attributes_sync",
    "with_cost",
    "with_cost_sync",
    "with_extracted_context",
]
