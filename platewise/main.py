import logging
from datetime import datetime, timezone

from flask import Flask, jsonify, request
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address

from platewise import config
from platewise.cost import compute_ingredient_cost, effective_price, is_free_ingredient
from platewise.ingredient_parser import IngredientParser
from platewise.logging_config import configure_logging
from platewise.portion import InvalidPackageError, PackageInfo, PortionCalculator
from platewise.price_cache import PriceCache
from platewise.pricing import build_catalog, price_recipes
from platewise.recipes import InvalidRecipeError, Recipe, RecipeIngredient
from platewise.shopping_list import generate_shopping_list

configure_logging(config.LOG_LEVEL)
logger = logging.getLogger(__name__)

app = Flask(__name__)
limiter = Limiter(
    get_remote_address,
    app=app,
    default_limits=[],          # no global limit; apply per-route only
    storage_uri="memory://",
)

# Module-level service singletons (stateless, created once to avoid per-request overhead)
_parser = IngredientParser()
_portion_calculator = PortionCalculator()

# Created on first use so the cache file path can be configured first
_price_cache: PriceCache | None = None


def _get_price_cache() -> PriceCache:
    global _price_cache
    if _price_cache is None:
        _price_cache = PriceCache(config.PRICE_CACHE_FILE)
    return _price_cache


def _json_body() -> dict | None:
    """Return the request's JSON object, or None if it isn't one."""
    try:
        data = request.get_json()
    except Exception:
        return None
    return data if isinstance(data, dict) else None


def _ingredient_from(data) -> RecipeIngredient | None:
    try:
        return RecipeIngredient.from_dict(data)
    except InvalidRecipeError:
        return None


@app.route("/health")
def health():
    return jsonify({"status": "ok"})


@app.route("/api/ingredients/parse", methods=["POST"])
@limiter.limit(config.PRICING_RATE_LIMIT)
def parse_ingredients():
    """Parse free-text ingredient lines into name/amount/unit/notes."""
    data = _json_body()
    if data is None:
        return jsonify({"error": "Invalid JSON"}), 400

    lines = data.get("lines")
    if not isinstance(lines, list) or not all(isinstance(line, str) for line in lines):
        return jsonify({"error": "lines must be a list of strings"}), 400

    logger.info("Parsing ingredient lines", extra={"line_count": len(lines)})
    return jsonify({"ingredients": [_parser.parse(line).to_dict() for line in lines]})


@app.route("/api/pricing/ingredient-cost", methods=["POST"])
@limiter.limit(config.PRICING_RATE_LIMIT)
def ingredient_cost():
    """Cost one ingredient against one product."""
    data = _json_body()
    if data is None:
        return jsonify({"error": "Invalid JSON"}), 400

    ingredient = _ingredient_from(data.get("ingredient"))
    if ingredient is None:
        return jsonify({"error": "Missing required field: ingredient.name"}), 400
    if is_free_ingredient(ingredient.name):
        return jsonify({"ingredient": ingredient.to_dict(), "excluded": True, "cost": None})

    product = data.get("product")
    if not isinstance(product, dict):
        return jsonify({"error": "Missing required field: product"}), 400

    price = effective_price(product.get("price"))
    if price is None:
        return jsonify({"error": "product.price must be a positive number"}), 400

    cost = compute_ingredient_cost(
        ingredient.amount,
        ingredient.unit,
        price,
        product.get("size"),
        by_package=bool(data.get("by_package", True)),
    )
    return jsonify({
        "ingredient": ingredient.to_dict(),
        "excluded": False,
        "cost": cost.to_dict() if cost else None,
    })


@app.route("/api/pricing/portions", methods=["POST"])
@limiter.limit(config.PRICING_RATE_LIMIT)
def portion_costs():
    """Cost recipe ingredients by the share of each package they use."""
    data = _json_body()
    if data is None:
        return jsonify({"error": "Invalid JSON"}), 400

    raw_ingredients = data.get("ingredients")
    if not isinstance(raw_ingredients, list):
        return jsonify({"error": "ingredients must be a list"}), 400
    ingredients = [_ingredient_from(i) for i in raw_ingredients]
    if any(i is None for i in ingredients):
        return jsonify({"error": "Every ingredient needs a name"}), 400

    packages = data.get("packages") or {}
    if not isinstance(packages, dict):
        return jsonify({"error": "packages must be an object keyed by ingredient name"}), 400
    try:
        package_map = {
            str(name).strip().lower(): PackageInfo.from_dict(info)
            for name, info in packages.items()
            if isinstance(info, dict)
        }
    except InvalidPackageError as e:
        return jsonify({"error": str(e)}), 400

    results = _portion_calculator.calculate_batch(ingredients, package_map)
    totals = _portion_calculator.calculate_total_cost(results)
    return jsonify({
        "results": [r.to_dict() for r in results],
        "totals": totals.to_dict(),
    })


@app.route("/api/meal-plans/add-pricing", methods=["POST"])
@limiter.limit(config.PRICING_RATE_LIMIT)
def add_pricing():
    """Price every recipe of a meal plan against the supplied products."""
    data = _json_body()
    if data is None:
        return jsonify({"error": "Invalid JSON"}), 400

    recipes = data.get("recipes")
    if not isinstance(recipes, list):
        return jsonify({"error": "Missing required field: recipes"}), 400
    products = data.get("products") or {}
    if not isinstance(products, dict):
        return jsonify({"error": "products must be an object keyed by ingredient name"}), 400

    cache = _get_price_cache() if data.get("use_cache", True) else None
    logger.info("Adding pricing to meal plan", extra={"recipe_count": len(recipes)})
    result = price_recipes(recipes, build_catalog(products), cache=cache, location=data.get("location"))

    return jsonify({
        "success": True,
        "message": f"Added pricing to {result.successful_pricing}/{len(result.recipes)} recipes",
        "data": {
            "recipes": [r.to_dict() for r in result.recipes],
            "summary": result.summary(),
        },
        "timestamp": datetime.now(timezone.utc).isoformat(),
    })


@app.route("/api/shopping-list", methods=["POST"])
@limiter.limit(config.PRICING_RATE_LIMIT)
def shopping_list():
    """Build a consolidated, priced shopping list for a set of recipes."""
    data = _json_body()
    if data is None:
        return jsonify({"error": "Invalid JSON"}), 400

    raw_recipes = data.get("recipes")
    if not isinstance(raw_recipes, list):
        return jsonify({"error": "Missing required field: recipes"}), 400
    excluded = data.get("excluded")
    if excluded is not None and not isinstance(excluded, list):
        return jsonify({"error": "excluded must be a list"}), 400

    try:
        recipes = [Recipe.from_dict(r) for r in raw_recipes]
    except InvalidRecipeError as e:
        return jsonify({"error": str(e)}), 400

    products = data.get("products") or {}
    if not isinstance(products, dict):
        return jsonify({"error": "products must be an object keyed by ingredient name"}), 400

    result = generate_shopping_list(
        recipes,
        catalog=build_catalog(products),
        excluded=[str(e) for e in excluded] if excluded is not None else None,
    )
    return jsonify(result.to_dict())


@app.route("/api/pricing/cache/stats")
def price_cache_stats():
    return jsonify(_get_price_cache().stats())


if __name__ == "__main__":
    import os
    port = int(os.environ.get("PORT", 5000))
    debug = os.environ.get("FLASK_ENV") != "production"
    app.run(host="0.0.0.0", port=port, debug=debug)
