from typing import Any, Mapping, Sequence

import structlog

from tokenmeter.models import UsageData
from tokenmeter.registry import get_registered_strategy
from tokenmeter.strategies.anthropic import AnthropicStrategy
from tokenmeter.strategies.base import ExtractionStrategy
from tokenmeter.strategies.bedrock import BedrockStrategy
from tokenmeter.strategies.bfl import BFLStrategy
from tokenmeter.strategies.elevenlabs import ElevenLabsStrategy
from tokenmeter.strategies.fal import FalStrategy
from tokenmeter.strategies.google import GoogleStrategy, GoogleWrappedStrategy
from tokenmeter.strategies.openai import OpenAIStrategy
from tokenmeter.strategies.vercel_ai import VercelAIStrategy

logger = structlog.get_logger()

# order matters: specific shapes precede general ones that could also
# match them (wrapped google before unwrapped google, bedrock's gated
# camelCase keys before the catch-all path checks)
STRATEGIES: "tuple[ExtractionStrategy, ...]" = (
    OpenAIStrategy(),
    AnthropicStrategy(),
    BedrockStrategy(),
    GoogleWrappedStrategy(),
    GoogleStrategy(),
    FalStrategy(),
    BFLStrategy(),
    ElevenLabsStrategy(),
    VercelAIStrategy(),
)


def find_strategy(
    method_path: "Sequence[str]", result: "Any"
) -> "ExtractionStrategy | None":
    for strategy in STRATEGIES:
        if strategy.can_handle(method_path, result):
            return strategy
    return None


def _hinted_strategy(
    method_path: "Sequence[str]", result: "Any", provider_hint: "str"
) -> "ExtractionStrategy | None":
    # registered providers override built-ins with the same name
    registered = get_registered_strategy(provider_hint)
    if registered is not None and registered.can_handle(method_path, result):
        return registered

    for strategy in STRATEGIES:
        if strategy.provider == provider_hint and strategy.can_handle(method_path, result):
            return strategy

    return None


def extract_usage(
    method_path: "Sequence[str]",
    result: "Any",
    args: "Sequence[Any]" = (),
    kwargs: "Mapping[str, Any] | None" = None,
    provider_hint: "str | None" = None,
) -> "UsageData | None":
    """
    extracts usage from an API result. The provider hint is advisory:
    when its strategy does not recognize the result, every built-in
    strategy is tried in order. Returns None when nothing matches.
    """
    kwargs = kwargs or {}
    try:
        strategy = None
        if provider_hint:
            strategy = _hinted_strategy(method_path, result, provider_hint)
        if strategy is None:
            strategy = find_strategy(method_path, result)
        if strategy is None:
            return None
        return strategy.extract(method_path, result, args, kwargs)
    except Exception as exc:
        # extraction problems never break the wrapped call
        logger.warning(
            "usage_extraction_failed",
            method=".".join(method_path),
            provider=provider_hint,
            error=str(exc),
        )
        return None
