import math

import pytest

from platewise.cost import compute_ingredient_cost, effective_price, is_free_ingredient


class TestComputeIngredientCost:
    def test_exact_fit_is_one_package(self):
        cost = compute_ingredient_cost("2", "cup", 3.00, "16 fl oz")

        assert cost.package_count == 1
        assert cost.total_cost == pytest.approx(3.00)
        assert cost.base == "ml"
        assert cost.leftover == pytest.approx(0.0, abs=1e-6)
        assert cost.adjusted is False

    def test_rounds_up_to_whole_packages(self):
        cost = compute_ingredient_cost("3", "cups", 3.00, "16 fl oz")

        assert cost.package_count == 2
        assert cost.total_cost == pytest.approx(6.00)
        assert cost.leftover == pytest.approx(473.176 * 2 - 236.588 * 3)

    def test_mixed_number_amount(self):
        cost = compute_ingredient_cost("1 1/2", "lb", 4.00, "1 lb")
        assert cost.package_count == 2

    def test_unit_price_is_per_base_unit(self):
        cost = compute_ingredient_cost("100", "g", 5.00, "500 g")
        assert cost.unit_price == pytest.approx(0.01)

    def test_missing_size_uses_default_package(self):
        cost = compute_ingredient_cost("1", "lb", 4.00, None)

        assert cost.package_size == 454
        assert cost.package_count == 1
        assert cost.adjusted is True

    def test_implausible_package_count_charges_one_package(self):
        cost = compute_ingredient_cost(30, "", 0.50, "1 ct")

        assert cost.package_count == 1
        assert cost.total_cost == pytest.approx(0.50)
        assert cost.adjusted is True

    def test_large_requirement_keeps_many_packages(self):
        cost = compute_ingredient_cost(25, "lb", 2.00, "1 lb")

        assert cost.package_count == 25
        assert cost.total_cost == pytest.approx(50.00)
        assert cost.adjusted is False

    def test_volume_requirement_against_weight_package(self):
        cost = compute_ingredient_cost("1", "cup", 2.00, "8 oz")

        # 236.6 ml needed, 226.8 g package bridged at 1 g/ml
        assert cost.base == "ml"
        assert cost.package_count == 2
        assert cost.adjusted is True

    def test_negative_amount_is_clamped(self):
        cost = compute_ingredient_cost(-2, "cup", 3.00, "16 fl oz")

        assert cost.required == 0
        assert cost.package_count == 1

    def test_by_portion(self):
        cost = compute_ingredient_cost("100", "g", 5.00, "500 g", by_package=False)

        assert cost.total_cost == pytest.approx(1.00)
        assert cost.package_count == 1
        assert cost.leftover == pytest.approx(400)

    @pytest.mark.parametrize("amount,packages,overridden", [(20, 20, False), (21, 1, True)])
    def test_override_starts_above_twenty_packages(self, amount, packages, overridden):
        cost = compute_ingredient_cost(amount, "", 0.50, "1 ct")

        assert cost.package_count == packages
        assert cost.adjusted is overridden

    @pytest.mark.parametrize("grams,packages", [(1999, 1), (2000, 40)])
    def test_override_only_for_small_requirements(self, grams, packages):
        cost = compute_ingredient_cost(grams, "g", 1.00, "50 g")
        assert cost.package_count == packages

    @pytest.mark.parametrize("amount", [math.inf, -math.inf, math.nan, 10 ** 400, "9" * 400])
    def test_out_of_range_amount_is_treated_as_zero(self, amount):
        cost = compute_ingredient_cost(amount, "cup", 3.00, "16 fl oz")

        assert cost.required == 0
        assert cost.package_count == 1
        assert cost.total_cost == pytest.approx(3.00)

    def test_out_of_range_package_size_uses_default(self):
        cost = compute_ingredient_cost("1", "lb", 4.00, "9" * 400 + " oz")

        assert cost.package_size == 454
        assert cost.adjusted is True

    @pytest.mark.parametrize("price", [None, 0, -1, "abc", math.nan, math.inf, True, 10 ** 400])
    def test_unusable_price_returns_none(self, price):
        assert compute_ingredient_cost("1", "cup", price, "16 fl oz") is None

    def test_to_dict(self):
        data = compute_ingredient_cost("2", "cup", 3.00, "16 fl oz").to_dict()
        assert set(data) == {
            "unit_price", "total_cost", "package_count", "base",
            "package_size", "required", "leftover", "adjusted",
        }


class TestIsFreeIngredient:
    @pytest.mark.parametrize("name", ["water", "Cold Water", "warm water", "ice", "ice cubes", "ice water"])
    def test_free(self, name):
        assert is_free_ingredient(name) is True

    @pytest.mark.parametrize("name", [
        "coconut water", "rose water", "orange blossom water", "tonic water", "water chestnuts",
        "watermelon", "rice", "ice cream", "", None,
    ])
    def test_priced(self, name):
        assert is_free_ingredient(name) is False


class TestEffectivePrice:
    def test_plain_number(self):
        assert effective_price(3.5) == 3.5

    def test_sale_beats_promo_beats_regular(self):
        assert effective_price({"regular": 4.0, "promo": 3.5, "sale": 3.0}) == 3.0
        assert effective_price({"regular": 4.0, "promo": 3.5}) == 3.5
        assert effective_price({"regular": 4.0, "sale": 0}) == 4.0

    def test_no_usable_price(self):
        assert effective_price({}) is None
        assert effective_price(-1) is None
        assert effective_price(None) is None
        assert effective_price(10 ** 400) is None
        assert effective_price({"sale": math.inf, "regular": 4.0}) == 4.0
