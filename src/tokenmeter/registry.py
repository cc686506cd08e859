import dataclasses
from dataclasses import dataclass
from typing import Any, Callable, Mapping, Sequence

import structlog

from tokenmeter.constants import TOKENMETER_PROVIDER
from tokenmeter.models import UsageData
from tokenmeter.strategies.base import ExtractionStrategy

logger = structlog.get_logger()

_USAGE_FIELDS = frozenset(field.name for field in dataclasses.fields(UsageData))

# (response, args, kwargs) -> partial usage fields or None
UsageExtractor = Callable[[Any, Sequence[Any], Mapping[str, Any]], "Mapping[str, Any] | None"]
# (args, kwargs, response) -> model id
ModelExtractor = Callable[[Sequence[Any], Mapping[str, Any], Any], str]


@dataclass
class ProviderConfig:
    """
    ProviderConfig describes a caller-registered provider. Either a full
    `strategy` or an `extract_usage` callable (plus optional
    `extract_model`) makes its responses recognizable.
    """

    name: "str"
    # returns True when a client belongs to this provider
    detect: "Callable[[Any], bool] | None" = None
    extract_usage: "UsageExtractor | None" = None
    extract_model: "ModelExtractor | None" = None
    # methods that return sub-clients: wrapped, but no span
    factory_methods: "Sequence[str]" = ()
    strategy: "ExtractionStrategy | None" = None


class RegisteredStrategy:
    """
    strategy synthesized from a provider's extract_usage/extract_model
    pair. Results are recognized whenever extract_usage returns a value.
    """

    def __init__(self, config: "ProviderConfig") -> "None":
        self.provider: "str" = config.name
        self._config = config

    def can_handle(self, method_path: "Sequence[str]", result: "Any") -> "bool":
        try:
            return self._config.extract_usage(result, (), {}) is not None
        except Exception as exc:
            logger.warning(
                "registered_usage_extractor_failed", provider=self.provider, error=str(exc)
            )
            return False

    def extract(
        self,
        method_path: "Sequence[str]",
        result: "Any",
        args: "Sequence[Any]",
        kwargs: "Mapping[str, Any]",
    ) -> "UsageData | None":
        partial = self._config.extract_usage(result, args, kwargs)
        if partial is None:
            return None

        if isinstance(partial, UsageData):
            partial = dataclasses.asdict(partial)

        model = "unknown"
        if self._config.extract_model is not None:
            model = self._config.extract_model(args, kwargs, result) or "unknown"

        fields: "dict[str, Any]" = {"provider": self.provider, "model": model}
        for key, value in partial.items():
            if key in _USAGE_FIELDS:
                fields[key] = value
            else:
                logger.debug("registered_usage_field_ignored", provider=self.provider, field=key)
        return UsageData(**fields)


_providers: "dict[str, ProviderConfig]" = {}


def register_provider(
    config: "ProviderConfig | None" = None, **fields: "Any"
) -> "ProviderConfig":
    """
    registers (or replaces) a custom provider. Accepts a ProviderConfig
    or its fields as keyword arguments.
    """
    if config is None:
        name = fields.pop("name", "")
        config = ProviderConfig(name=name, **fields)

    if not config.name:
        raise ValueError("Provider name is required")

    if config.strategy is None and config.extract_usage is not None:
        config = dataclasses.replace(config)
        config.strategy = RegisteredStrategy(config)

    _providers[config.name] = config
    logger.debug("provider_registered", provider=config.name)
    return config


def unregister_provider(name: "str") -> "bool":
    return _providers.pop(name, None) is not None


def get_provider(name: "str") -> "ProviderConfig | None":
    return _providers.get(name)


def get_registered_providers() -> "list[ProviderConfig]":
    return list(_providers.values())


def clear_provider_registry() -> "None":
    _providers.clear()


def detect_provider_from_registry(client: "Any") -> "str | None":
    """
    returns the explicit provider tag of a client, else the first
    registered provider whose detect predicate accepts it.
    """
    tag = getattr(client, TOKENMETER_PROVIDER, None)
    if isinstance(tag, str) and tag:
        return tag

    for name, config in _providers.items():
        if config.detect is None:
            continue
        try:
            if config.detect(client):
                return name
        except Exception as exc:
            logger.warning("provider_detect_failed", provider=name, error=str(exc))

    return None


def get_factory_methods(provider: "str") -> "Sequence[str]":
    config = _providers.get(provider)
    return tuple(config.factory_methods) if config else ()


def get_registered_strategy(provider: "str") -> "ExtractionStrategy | None":
    config = _providers.get(provider)
    return config.strategy if config else None
