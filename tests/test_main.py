import pytest

from platewise import main
from platewise.main import app

FLOUR = {"description": "All-Purpose Flour", "size": "5 lb", "price": 3.49, "product_id": "flour-5lb"}


@pytest.fixture
def client(tmp_path, monkeypatch):
    """Create a test client with a temporary price cache file."""
    from platewise import config
    monkeypatch.setattr(config, 'PRICE_CACHE_FILE', str(tmp_path / "price_cache.json"))
    monkeypatch.setattr(main, '_price_cache', None)

    app.config['TESTING'] = True
    with app.test_client() as client:
        yield client


@pytest.fixture
def meal_plan():
    return {
        "recipes": [
            {
                "id": "pancakes",
                "title": "Pancakes",
                "servings": 4,
                "ingredients": [
                    {"name": "all-purpose flour", "amount": "2", "unit": "cup"},
                    {"name": "water", "amount": "1", "unit": "cup"},
                ],
            },
            {"id": "broken", "title": "Broken", "servings": 0, "ingredients": []},
        ],
        "products": {"all-purpose flour": [FLOUR]},
    }


class TestHealth:
    def test_health(self, client):
        response = client.get('/health')
        assert response.status_code == 200
        assert response.get_json() == {"status": "ok"}


class TestParseIngredients:
    def test_parses_lines(self, client):
        response = client.post('/api/ingredients/parse', json={
            "lines": ["1 1/2 cups all-purpose flour, sifted", "2 large eggs"],
        })

        assert response.status_code == 200
        first, second = response.get_json()["ingredients"]
        assert first == {
            "name": "all-purpose flour",
            "amount": 1.5,
            "unit": "cup",
            "category": "pantry",
            "notes": "sifted",
        }
        assert second["name"] == "large eggs"

    def test_lines_must_be_a_list(self, client):
        response = client.post('/api/ingredients/parse', json={"lines": "2 eggs"})

        assert response.status_code == 400
        assert "error" in response.get_json()

    def test_invalid_json(self, client):
        response = client.post('/api/ingredients/parse', data="not json", content_type="text/plain")

        assert response.status_code == 400
        assert response.get_json() == {"error": "Invalid JSON"}


class TestIngredientCost:
    def test_costs_an_ingredient(self, client):
        response = client.post('/api/pricing/ingredient-cost', json={
            "ingredient": {"name": "milk", "amount": "3", "unit": "cups"},
            "product": {"price": 3.00, "size": "16 fl oz"},
        })

        assert response.status_code == 200
        data = response.get_json()
        assert data["excluded"] is False
        assert data["cost"]["package_count"] == 2
        assert data["cost"]["total_cost"] == 6.0

    def test_sale_price_dict(self, client):
        response = client.post('/api/pricing/ingredient-cost', json={
            "ingredient": {"name": "milk", "amount": "1", "unit": "cup"},
            "product": {"price": {"regular": 3.99, "sale": 2.99}, "size": "1 gal"},
        })
        assert response.get_json()["cost"]["total_cost"] == 2.99

    def test_water_is_excluded(self, client):
        response = client.post('/api/pricing/ingredient-cost', json={
            "ingredient": {"name": "water", "amount": "2", "unit": "cups"},
        })

        assert response.status_code == 200
        assert response.get_json()["excluded"] is True
        assert response.get_json()["cost"] is None

    def test_missing_ingredient(self, client):
        response = client.post('/api/pricing/ingredient-cost', json={"product": {"price": 1}})
        assert response.status_code == 400

    def test_unusable_price(self, client):
        response = client.post('/api/pricing/ingredient-cost', json={
            "ingredient": {"name": "milk", "amount": "1", "unit": "cup"},
            "product": {"price": 0, "size": "1 gal"},
        })
        assert response.status_code == 400


class TestPortions:
    def test_portion_costs(self, client):
        response = client.post('/api/pricing/portions', json={
            "ingredients": [
                {"name": "milk", "amount": "1", "unit": "cup"},
                {"name": "vanilla extract", "amount": "1", "unit": "tsp"},
            ],
            "packages": {
                "Milk": {"productName": "Whole Milk", "packageSize": "16 fl oz", "packagePrice": 4.00},
            },
        })

        assert response.status_code == 200
        data = response.get_json()
        assert [r["portion_cost"] for r in data["results"]] == [2.0, 1.5]
        assert data["totals"]["total_portion_cost"] == 3.5

    def test_ingredients_must_be_a_list(self, client):
        response = client.post('/api/pricing/portions', json={"ingredients": {}})
        assert response.status_code == 400

    def test_non_numeric_package_price(self, client):
        response = client.post('/api/pricing/portions', json={
            "ingredients": [{"name": "milk", "amount": "1", "unit": "cup"}],
            "packages": {"milk": {"productName": "Whole Milk", "packageSize": "1 gal", "package_price": "abc"}},
        })

        assert response.status_code == 400
        assert "package_price" in response.get_json()["error"]


class TestAddPricing:
    def test_prices_meal_plan(self, client, meal_plan):
        response = client.post('/api/meal-plans/add-pricing', json=meal_plan)

        assert response.status_code == 200
        data = response.get_json()
        assert data["success"] is True
        assert data["message"] == "Added pricing to 1/2 recipes"
        assert "timestamp" in data
        assert data["data"]["summary"] == {
            "total_recipes": 2,
            "successful_pricing": 1,
            "total_cost": 3.49,
            "average_cost_per_meal": round(3.49 / 2, 2),
        }

        pancakes, broken = data["data"]["recipes"]
        assert pancakes["pricing"]["cost_per_serving"] == round(3.49 / 4, 2)
        assert pancakes["pricing"]["budget_friendly"] is True
        assert pancakes["ingredients"][0]["price"]["product_name"] == "All-Purpose Flour"
        assert broken["has_pricing"] is False
        assert broken["pricing"]["error"] == "Pricing unavailable"

    def test_caches_prices(self, client, meal_plan):
        client.post('/api/meal-plans/add-pricing', json=meal_plan)

        stats = client.get('/api/pricing/cache/stats').get_json()
        assert stats["total_entries"] == 1
        assert stats["fresh_entries"] == 1

    def test_cache_can_be_skipped(self, client, meal_plan):
        client.post('/api/meal-plans/add-pricing', json={**meal_plan, "use_cache": False})

        assert client.get('/api/pricing/cache/stats').get_json()["total_entries"] == 0

    def test_recipes_required(self, client):
        response = client.post('/api/meal-plans/add-pricing', json={"products": {}})

        assert response.status_code == 400
        assert response.get_json() == {"error": "Missing required field: recipes"}


class TestShoppingListRoute:
    def test_builds_priced_list(self, client, meal_plan):
        response = client.post('/api/shopping-list', json={
            "recipes": meal_plan["recipes"][:1],
            "products": meal_plan["products"],
        })

        assert response.status_code == 200
        data = response.get_json()
        assert [i["item"] for i in data["items"]] == ["all-purpose flour"]
        assert data["total_estimated_cost"] == 3.49
        assert "pantry" in data["items_by_category"]

    def test_invalid_recipe(self, client, meal_plan):
        response = client.post('/api/shopping-list', json={"recipes": meal_plan["recipes"]})

        assert response.status_code == 400
        assert "servings" in response.get_json()["error"]

    def test_excluded_must_be_a_list(self, client, meal_plan):
        response = client.post('/api/shopping-list', json={
            "recipes": meal_plan["recipes"][:1],
            "excluded": "water",
        })
        assert response.status_code == 400
