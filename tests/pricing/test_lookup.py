import math

import pytest

from tokenmeter.errors import PricingConfigError
from tokenmeter.pricing.manifest import (
    ModelAlias,
    clear_model_aliases,
    configure_pricing,
    get_cached_manifest,
    get_model_aliases,
    get_model_pricing,
    get_pricing_config,
    set_model_aliases,
)
from tokenmeter.pricing.models import ModelPricing, PricingManifest, PricingUnit


@pytest.fixture()
def manifest() -> "PricingManifest":
    return PricingManifest.from_dict(
        {
            "version": "2.0.0",
            "providers": {
                "openai": {
                    "gpt-4o": {"unit": "1m_tokens", "input": 2.5, "output": 10.0},
                    "gpt-4o-mini": {"unit": "1m_tokens", "input": 0.15, "output": 0.6},
                },
                "azure": {
                    "gpt-4o": {"unit": "1m_tokens", "input": 5.0, "output": 15.0},
                },
                "fal": {
                    "flux-pro": {"unit": "image", "cost": 0.05},
                },
            },
        }
    )


class TestGetModelPricing:
    def test_exact_match(self, manifest: "PricingManifest") -> "None":
        pricing = get_model_pricing("openai", "gpt-4o", manifest)
        assert pricing is not None
        assert pricing.input == 2.5

    def test_strips_date_suffix(self, manifest: "PricingManifest") -> "None":
        dated = get_model_pricing("openai", "gpt-4o-2024-08-06", manifest)
        assert dated is get_model_pricing("openai", "gpt-4o", manifest)

    def test_strips_namespace_prefix(self, manifest: "PricingManifest") -> "None":
        pricing = get_model_pricing("fal", "fal-ai/flux-pro", manifest)
        assert pricing is not None
        assert pricing.cost == 0.05

    def test_unknown_model(self, manifest: "PricingManifest") -> "None":
        assert get_model_pricing("openai", "gpt-9", manifest) is None

    def test_unknown_provider(self, manifest: "PricingManifest") -> "None":
        assert get_model_pricing("mistral", "gpt-4o", manifest) is None

    def test_defaults_to_bundled_table(self) -> "None":
        pricing = get_model_pricing("anthropic", "claude-sonnet-4")
        assert pricing is not None
        assert pricing.input == 3.0
        assert pricing.output == 15.0


class TestModelAliases:
    def test_generic_alias(self, manifest: "PricingManifest") -> "None":
        set_model_aliases({"my-model": {"provider": "openai", "model": "gpt-4o-mini"}})
        pricing = get_model_pricing("openai", "my-model", manifest)
        assert pricing is not None
        assert pricing.input == 0.15

    def test_qualified_aliases_are_per_provider(self, manifest: "PricingManifest") -> "None":
        set_model_aliases(
            {
                "openai:my-model": ("openai", "gpt-4o"),
                "azure:my-model": ("azure", "gpt-4o"),
            }
        )
        openai = get_model_pricing("openai", "my-model", manifest)
        azure = get_model_pricing("azure", "my-model", manifest)
        assert openai is not None and azure is not None
        assert openai.input == 2.5
        assert azure.input == 5.0

    def test_qualified_alias_wins(self, manifest: "PricingManifest") -> "None":
        set_model_aliases(
            {
                "my-model": ("openai", "gpt-4o-mini"),
                "openai:my-model": ("openai", "gpt-4o"),
            }
        )
        pricing = get_model_pricing("openai", "my-model", manifest)
        assert pricing is not None
        assert pricing.input == 2.5

    def test_alias_to_missing_entry_falls_through(self, manifest: "PricingManifest") -> "None":
        set_model_aliases({"gpt-4o": ("openai", "does-not-exist")})
        pricing = get_model_pricing("openai", "gpt-4o", manifest)
        assert pricing is not None
        assert pricing.input == 2.5

    def test_clear(self) -> "None":
        set_model_aliases({"my-model": ModelAlias("openai", "gpt-4o")})
        assert "my-model" in get_model_aliases()
        clear_model_aliases()
        assert get_model_aliases() == {}

    @pytest.mark.parametrize(
        "aliases",
        [
            {"my-model": {"model": "gpt-4o"}},
            {"my-model": {"provider": "openai"}},
            {"my-model": {"provider": "", "model": "gpt-4o"}},
            {"my-model": "gpt-4o"},
            {"": ("openai", "gpt-4o")},
        ],
    )
    def test_invalid_alias_rejected(self, aliases: "dict[str, object]") -> "None":
        with pytest.raises(PricingConfigError):
            set_model_aliases(aliases)
        assert get_model_aliases() == {}


class TestConfigurePricing:
    def test_applies_overrides(self) -> "None":
        config = configure_pricing(
            cdn_url="https://unpkg.com/tokenmeter/manifest.json",
            fetch_timeout=2,
        )
        assert config.cdn_url == "https://unpkg.com/tokenmeter/manifest.json"
        assert get_pricing_config().fetch_timeout == 2

    def test_invalid_url_changes_nothing(self) -> "None":
        before = get_pricing_config()
        with pytest.raises(PricingConfigError):
            configure_pricing(
                api_url="https://evil.example.com",
                model_aliases={"x": ("openai", "gpt-4o")},
            )
        assert get_pricing_config() == before
        assert get_model_aliases() == {}

    def test_invalid_alias_changes_nothing(self) -> "None":
        with pytest.raises(PricingConfigError):
            configure_pricing(fetch_timeout=1, model_aliases={"x": {"provider": "openai"}})
        assert get_pricing_config().fetch_timeout == 5.0

    def test_model_aliases_applied(self) -> "None":
        configure_pricing(model_aliases={"house-model": ("anthropic", "claude-3-5-haiku")})
        pricing = get_model_pricing("anthropic", "house-model")
        assert pricing is not None
        assert pricing.input == 0.8


class TestParsing:
    def test_invalid_rates_are_discarded(self) -> "None":
        pricing = ModelPricing.from_dict(
            {"unit": "1m_tokens", "input": -1, "output": "10", "cachedInput": math.inf, "cost": 0}
        )
        assert pricing.input is None
        assert pricing.output is None
        assert pricing.cached_input is None
        assert pricing.cost == 0.0

    def test_snake_and_camel_keys(self) -> "None":
        camel = ModelPricing.from_dict({"cachedInput": 1.25, "pricesByType": {"a": 1}})
        snake = ModelPricing.from_dict({"cached_input": 1.25, "prices_by_type": {"a": 1}})
        assert camel == snake

    def test_unknown_unit_defaults_to_million_tokens(self) -> "None":
        assert ModelPricing.from_dict({"unit": "furlongs"}).unit is PricingUnit.PER_MILLION_TOKENS

    def test_api_shape(self) -> "None":
        manifest = PricingManifest.from_api(
            {
                "version": "3.1.0",
                "updated_at": "2025-07-01T00:00:00Z",
                "models": {
                    "gpt-4o": {"provider": "openai", "input": 2.5, "output": 10},
                    "orphan": {"input": 1},
                },
            }
        )
        assert manifest.version == "3.1.0"
        assert manifest.model_count() == 1
        assert manifest.providers["openai"]["gpt-4o"].output == 10.0

    def test_api_models_must_be_a_mapping(self) -> "None":
        with pytest.raises(ValueError, match="models must be a mapping"):
            PricingManifest.from_api({"models": ["gpt-4o"]})

    def test_manifest_providers_must_be_a_mapping(self) -> "None":
        with pytest.raises(ValueError, match="providers must be a mapping"):
            PricingManifest.from_dict({"providers": "openai"})

    def test_round_trip_keeps_rates(self) -> "None":
        manifest = get_cached_manifest()
        again = PricingManifest.from_dict(manifest.to_dict())
        assert again.providers == manifest.providers
