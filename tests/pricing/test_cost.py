import math

import pytest

from tokenmeter.models import UsageData
from tokenmeter.pricing.manifest import calculate_cost
from tokenmeter.pricing.models import ModelPricing, PricingUnit


def _usage(**fields: "object") -> "UsageData":
    return UsageData(provider="openai", model="gpt-4o", **fields)  # type: ignore[arg-type]


class TestTokenPricing:
    def test_per_million_tokens(self) -> "None":
        pricing = ModelPricing(unit=PricingUnit.PER_MILLION_TOKENS, input=2.5, output=10.0)
        cost = calculate_cost(_usage(input_units=1000, output_units=500), pricing)
        assert cost == pytest.approx(0.0075)

    @pytest.mark.parametrize(
        "input_units, output_units, cached_units",
        [(0, 0, 0), (1, 2, 3), (1_000_000, 250_000, 10_000), (123_456, 7, 0)],
    )
    def test_matches_linear_formula(
        self, input_units: "int", output_units: "int", cached_units: "int"
    ) -> "None":
        pricing = ModelPricing(input=3.0, output=15.0, cached_input=0.3)
        expected = (
            input_units / 1e6 * 3.0 + output_units / 1e6 * 15.0 + cached_units / 1e6 * 0.3
        )
        cost = calculate_cost(
            _usage(
                input_units=input_units,
                output_units=output_units,
                cached_input_units=cached_units,
            ),
            pricing,
        )
        assert cost == pytest.approx(expected)

    def test_per_thousand_characters(self) -> "None":
        pricing = ModelPricing(unit=PricingUnit.PER_THOUSAND_CHARACTERS, input=0.3)
        assert calculate_cost(_usage(input_units=2000), pricing) == pytest.approx(0.6)

    def test_missing_rates_do_not_contribute(self) -> "None":
        pricing = ModelPricing(input=0.02)
        cost = calculate_cost(_usage(input_units=1_000_000, output_units=1_000_000), pricing)
        assert cost == pytest.approx(0.02)


class TestFlatPricing:
    def test_image_defaults_to_one(self) -> "None":
        pricing = ModelPricing(unit=PricingUnit.IMAGE, cost=0.04)
        assert calculate_cost(_usage(), pricing) == pytest.approx(0.04)

    def test_image_multiplies_by_output_units(self) -> "None":
        pricing = ModelPricing(unit=PricingUnit.IMAGE, cost=0.04)
        assert calculate_cost(_usage(output_units=3), pricing) == pytest.approx(0.12)

    def test_flat_cost_added_once_for_other_units(self) -> "None":
        pricing = ModelPricing(unit=PricingUnit.SECOND, cost=0.5, output=0.05)
        cost = calculate_cost(_usage(output_units=10), pricing)
        assert cost == pytest.approx(0.5 + 10 * 0.05)


class TestMultiModalPricing:
    def test_prices_by_type(self) -> "None":
        pricing = ModelPricing(
            unit=PricingUnit.IMAGE, prices_by_type={"output_images_4k": 0.10}
        )
        cost = calculate_cost(_usage(usage_by_type={"output_images_4k": 4}), pricing)
        assert cost == pytest.approx(0.40)

    def test_only_intersecting_keys_count(self) -> "None":
        pricing = ModelPricing(
            unit=PricingUnit.IMAGE,
            prices_by_type={"output_images_4k": 0.10, "output_images_1k": 0.02},
        )
        usage = _usage(usage_by_type={"output_images_1k": 5, "upscales": 9})
        assert calculate_cost(usage, pricing) == pytest.approx(0.10)

    def test_falls_back_to_legacy_without_overlap(self) -> "None":
        pricing = ModelPricing(
            input=2.5, output=10.0, prices_by_type={"output_images_4k": 0.10}
        )
        usage = _usage(
            input_units=1000, output_units=500, usage_by_type={"unrelated_key": 1}
        )
        assert calculate_cost(usage, pricing) == pytest.approx(0.0075)


class TestInvalidValues:
    @pytest.mark.parametrize("bad", [-1, math.nan, math.inf, -math.inf, None])
    def test_invalid_quantities_count_as_zero(self, bad: "object") -> "None":
        pricing = ModelPricing(input=2.5, output=10.0)
        usage = _usage(input_units=bad, output_units=1_000_000)
        assert calculate_cost(usage, pricing) == pytest.approx(10.0)

    def test_never_negative(self) -> "None":
        # bypasses from_dict validation on purpose
        pricing = ModelPricing(input=-5.0, output=math.nan, cost=-1.0, cached_input=math.inf)
        usage = _usage(input_units=-100, output_units=math.inf, cached_input_units=math.nan)
        cost = calculate_cost(usage, pricing)
        assert cost == 0.0

    def test_string_unit_is_accepted(self) -> "None":
        pricing = ModelPricing(unit="1k_tokens", input=1.0)  # type: ignore[arg-type]
        assert calculate_cost(_usage(input_units=500), pricing) == pytest.approx(0.5)
