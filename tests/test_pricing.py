import pytest

from platewise.price_cache import PriceCache
from platewise.pricing import build_catalog, price_ingredient, price_recipe, price_recipes
from platewise.recipes import RecipeIngredient
from tests.conftest import FakeClock, create_test_product, create_test_recipe

FLOUR = {"description": "All-Purpose Flour", "size": "5 lb", "price": 3.49, "product_id": "flour-5lb"}


@pytest.fixture
def pancake_recipe():
    return {
        "id": "pancakes",
        "title": "Pancakes",
        "servings": 4,
        "ingredients": [
            {"name": "all-purpose flour", "amount": "2", "unit": "cup"},
            {"name": "water", "amount": "1", "unit": "cup"},
        ],
    }


class TestBuildCatalog:
    def test_keys_are_lowercased(self):
        catalog = build_catalog({"All-Purpose Flour ": [FLOUR]})

        assert list(catalog) == ["all-purpose flour"]
        assert catalog["all-purpose flour"][0].description == "All-Purpose Flour"

    def test_single_product_and_junk(self):
        catalog = build_catalog({"flour": FLOUR, "sugar": "not a product"})

        assert len(catalog["flour"]) == 1
        assert "sugar" not in catalog

    def test_empty(self):
        assert build_catalog(None) == {}


class TestPriceIngredient:
    def test_water_is_excluded(self):
        line = price_ingredient(RecipeIngredient(name="water", amount="1", unit="cup"), [])

        assert line.excluded is True
        assert line.total_cost == 0
        assert line.to_dict()["excluded"] is True
        assert line.to_dict()["price"] is None

    def test_no_candidates_is_unpriced(self):
        line = price_ingredient(RecipeIngredient(name="saffron", amount="1", unit="pinch"), [])

        assert line.product is None
        assert line.total_cost == 0
        assert line.to_dict()["price"] is None

    def test_priced_in_whole_packages(self):
        line = price_ingredient(
            RecipeIngredient(name="all-purpose flour", amount="2", unit="cup"),
            build_catalog({"flour": [FLOUR]})["flour"],
        )

        assert line.total_cost == pytest.approx(3.49)
        assert line.cost.package_count == 1
        # cups against a pound bag: mass and volume bridged
        assert line.cost.adjusted is True
        price = line.to_dict()["price"]
        assert price["product_name"] == "All-Purpose Flour"
        assert price["on_sale"] is False
        assert price["sale_price"] is None

    def test_sale_price_is_used(self):
        line = price_ingredient(
            RecipeIngredient(name="milk", amount="1", unit="cup"),
            [create_test_product("Whole Milk", "1 gal", {"regular": 3.99, "sale": 2.99})],
        )

        assert line.total_cost == pytest.approx(2.99)
        assert line.on_sale is True
        assert line.to_dict()["price"]["sale_price"] == 2.99

    def test_alternatives_exclude_the_chosen_product(self):
        line = price_ingredient(
            RecipeIngredient(name="milk", amount="1", unit="cup"),
            [
                create_test_product("Whole Milk", "1 gal", 3.99, product_id="1"),
                create_test_product("2% Milk", "1 gal", 3.79, product_id="2"),
            ],
        )

        ids = [alt["product_id"] for alt in line.alternatives]
        assert line.product.product_id not in ids
        assert len(ids) == 1


class TestPriceRecipe:
    def test_totals_and_cost_per_serving(self, pancake_recipe):
        recipe = create_test_recipe(
            title=pancake_recipe["title"], servings=4, ingredients=pancake_recipe["ingredients"]
        )
        priced = price_recipe(recipe, build_catalog({"all-purpose flour": [FLOUR]}))

        assert priced.has_pricing is True
        assert priced.pricing.total_cost == pytest.approx(3.49)
        assert priced.pricing.cost_per_serving == pytest.approx(3.49 / 4)
        assert priced.pricing.budget_friendly is True
        assert priced.pricing.savings_opportunities == []

    def test_expensive_recipe_is_not_budget_friendly(self):
        recipe = create_test_recipe(servings=1, ingredients=[
            {"name": "salmon", "amount": "1", "unit": "lb"},
        ])
        priced = price_recipe(recipe, build_catalog({
            "salmon": [{"description": "Atlantic Salmon Fillet", "size": "1 lb", "price": 12.99}],
        }))

        assert priced.pricing.cost_per_serving == pytest.approx(12.99)
        assert priced.pricing.budget_friendly is False

    def test_savings_opportunities(self):
        recipe = create_test_recipe(ingredients=[
            {"name": "milk", "amount": "1", "unit": "cup"},
            {"name": "butter", "amount": "4", "unit": "tbsp"},
        ])
        catalog = {
            "milk": [create_test_product("Whole Milk", "1 gal", {"regular": 3.99, "sale": 2.99})],
            "butter": [
                create_test_product("Salted Butter", "16 oz", 5.99, product_id="b1"),
                create_test_product("Butter Value Pack", "16 oz", 3.49, product_id="b2", stock_level="TEMPORARILY_OUT_OF_STOCK"),
            ],
        }

        tips = price_recipe(recipe, catalog).pricing.savings_opportunities

        assert "milk is on sale - save $1.00!" in tips
        assert any("Butter Value Pack" in tip and "additional savings" in tip for tip in tips)


class TestPriceRecipes:
    def test_invalid_recipe_comes_back_unpriced(self, pancake_recipe):
        bad = {"title": "Mystery Stew", "servings": 0, "ingredients": []}

        result = price_recipes([pancake_recipe, bad], build_catalog({"all-purpose flour": [FLOUR]}))

        assert [r.has_pricing for r in result.recipes] == [True, False]
        failed = result.recipes[1].to_dict()
        assert failed["title"] == "Mystery Stew"
        assert failed["has_pricing"] is False
        assert failed["pricing"]["error"] == "Pricing unavailable"

        summary = result.summary()
        assert summary == {
            "total_recipes": 2,
            "successful_pricing": 1,
            "total_cost": 3.49,
            "average_cost_per_meal": round(3.49 / 2, 2),
        }

    def test_priced_recipe_keeps_caller_fields(self, pancake_recipe):
        result = price_recipes([pancake_recipe], build_catalog({"all-purpose flour": [FLOUR]}))
        data = result.recipes[0].to_dict()

        assert data["id"] == "pancakes"
        assert data["pricing"]["total_cost"] == 3.49
        assert "pricing_updated_at" in data
        assert data["ingredients"][1]["excluded"] is True

    def test_empty_meal_plan(self):
        assert price_recipes([], {}).summary() == {
            "total_recipes": 0,
            "successful_pricing": 0,
            "total_cost": 0,
            "average_cost_per_meal": 0,
        }

    def test_cached_price_fills_in_for_missing_products(self, pancake_recipe, tmp_path):
        cache = PriceCache(tmp_path / "price_cache.json", clock=FakeClock())

        price_recipes([pancake_recipe], build_catalog({"all-purpose flour": [FLOUR]}), cache=cache)
        assert cache.get("all-purpose flour").price == 3.49

        result = price_recipes([pancake_recipe], {}, cache=cache)
        assert result.total_cost == pytest.approx(3.49)
        line = result.recipes[0].ingredients[0]
        assert line.product.description == "All-Purpose Flour"

    def test_stale_cached_price_is_used_when_nothing_fresh(self, tmp_path):
        clock = FakeClock()
        cache = PriceCache(tmp_path / "price_cache.json", ttl_hours=48, stale_hours=168, clock=clock)
        cache.put("all-purpose flour", 3.49, product_name="All-Purpose Flour", size="5 lb")
        clock.advance(72)
        assert cache.get("all-purpose flour") is None

        line = price_ingredient(
            RecipeIngredient(name="all-purpose flour", amount="2", unit="cup"), [], cache=cache
        )

        assert line.total_cost == pytest.approx(3.49)
        assert line.product.description == "All-Purpose Flour"
        # a cached price is not written back, so the entry stays stale
        assert cache.get("all-purpose flour") is None

    def test_cache_write_failure_does_not_fail_pricing(self, tmp_path, caplog):
        blocker = tmp_path / "blocker"
        blocker.write_text("a file, not a directory")
        cache = PriceCache(blocker / "price_cache.json", clock=FakeClock())

        line = price_ingredient(
            RecipeIngredient(name="all-purpose flour", amount="2", unit="cup"),
            build_catalog({"flour": [FLOUR]})["flour"],
            cache=cache,
        )

        assert line.total_cost == pytest.approx(3.49)
        assert any("Could not cache price" in r.getMessage() for r in caplog.records)


class TestSavingsByUnitPrice:
    def test_smaller_cheaper_package_is_not_a_saving(self):
        recipe = create_test_recipe(ingredients=[{"name": "butter", "amount": "4", "unit": "tbsp"}])
        catalog = {"butter": [
            create_test_product("Salted Butter", "16 oz", 5.99, product_id="b1"),
            # cheaper shelf price, dearer per ounce
            create_test_product(
                "Butter Sticks", "4 oz", 2.49, product_id="b2",
                stock_level="TEMPORARILY_OUT_OF_STOCK",
            ),
        ]}

        tips = price_recipe(recipe, catalog).pricing.savings_opportunities

        assert tips == []

    def test_bigger_package_with_lower_unit_price_is_a_saving(self):
        recipe = create_test_recipe(ingredients=[{"name": "butter", "amount": "4", "unit": "tbsp"}])
        catalog = {"butter": [
            create_test_product("Salted Butter", "8 oz", 3.99, product_id="b1"),
            create_test_product(
                "Butter Family Pack", "32 oz", 9.99, product_id="b2",
                stock_level="TEMPORARILY_OUT_OF_STOCK",
            ),
        ]}

        tips = price_recipe(recipe, catalog).pricing.savings_opportunities

        assert any("Butter Family Pack" in tip for tip in tips)


class TestPriceRecipesIsolation:
    def test_unexpected_error_only_fails_that_recipe(self, pancake_recipe, monkeypatch):
        from platewise import pricing

        real_price_ingredient = pricing.price_ingredient

        def flaky_price_ingredient(ingredient, *args, **kwargs):
            if ingredient.name == "mystery spice":
                raise RuntimeError("pricing backend exploded")
            return real_price_ingredient(ingredient, *args, **kwargs)

        monkeypatch.setattr(pricing, "price_ingredient", flaky_price_ingredient)
        broken = {"title": "Mystery Curry", "servings": 2,
                  "ingredients": [{"name": "mystery spice", "amount": "1", "unit": "tsp"}]}

        result = price_recipes([pancake_recipe, broken], build_catalog({"all-purpose flour": [FLOUR]}))

        assert result.successful_pricing == 1
        assert result.recipes[1].has_pricing is False
        assert result.recipes[1].pricing.error == "Pricing unavailable"

    def test_out_of_range_amount_is_still_priced(self, pancake_recipe):
        huge = {"title": "Huge Batch", "servings": 2,
                "ingredients": [{"name": "all-purpose flour", "amount": 10 ** 400, "unit": "cup"}]}

        result = price_recipes([pancake_recipe, huge], build_catalog({"all-purpose flour": [FLOUR]}))

        assert result.successful_pricing == 2
        assert result.recipes[1].pricing.total_cost == pytest.approx(3.49)
