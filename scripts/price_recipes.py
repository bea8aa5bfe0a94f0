#!/usr/bin/env python3
"""
Price a recipes file against a product catalog.

The recipes file is a JSON list of recipes (or {"recipes": [...]}); the
catalog maps ingredient names to candidate store products:

    {"all-purpose flour": [{"description": "Flour 5 lb", "size": "5 lb", "price": 3.49}]}

Usage:
    python price_recipes.py recipes.json products.json
    python price_recipes.py recipes.json products.json --json
    python price_recipes.py recipes.json products.json --cache data/price_cache.json
"""

import argparse
import json
import sys
from pathlib import Path

# Add parent directory to path to import platewise modules
sys.path.insert(0, str(Path(__file__).parent.parent))

from platewise import config
from platewise.logging_config import configure_logging
from platewise.price_cache import PriceCache
from platewise.pricing import build_catalog, price_recipes
from platewise.recipes import RecipeLoadError, load_recipes


def load_catalog(file_path: Path) -> dict:
    with open(file_path) as f:
        data = json.load(f)
    if not isinstance(data, dict):
        raise ValueError("Product catalog must be an object keyed by ingredient name")
    return data


def print_report(result) -> None:
    print("=" * 60)
    print("MEAL PLAN PRICING")
    print("=" * 60)
    for recipe in result.recipes:
        if not recipe.has_pricing:
            print(f"❌ {recipe.title}: {recipe.pricing.error}")
            continue
        pricing = recipe.pricing
        badge = " (budget friendly)" if pricing.budget_friendly else ""
        print(f"🍽️  {recipe.title}: ${pricing.total_cost:.2f} total, "
              f"${pricing.cost_per_serving:.2f}/serving{badge}")
        for line in recipe.ingredients:
            if line.excluded:
                print(f"     - {line.ingredient.name}: free")
            elif line.cost is None:
                print(f"     - {line.ingredient.name}: no price")
            else:
                print(f"     - {line.ingredient.name}: ${line.cost.total_cost:.2f} "
                      f"({line.cost.package_count} x {line.product.description})")
        for tip in pricing.savings_opportunities:
            print(f"     💡 {tip}")

    summary = result.summary()
    print("=" * 60)
    print(f"Recipes priced: {summary['successful_pricing']}/{summary['total_recipes']}")
    print(f"Total cost:     ${summary['total_cost']:.2f}")
    print(f"Average/meal:   ${summary['average_cost_per_meal']:.2f}")
    print("=" * 60)


def main():
    parser = argparse.ArgumentParser(
        description="Price recipes against a product catalog"
    )
    parser.add_argument('recipes', type=Path, help='Recipes JSON file')
    parser.add_argument('products', type=Path, help='Product catalog JSON file')
    parser.add_argument(
        '--json',
        action='store_true',
        help='Print the full pricing result as JSON'
    )
    parser.add_argument(
        '--cache',
        type=Path,
        help='Price cache file used as a fallback for ingredients without products'
    )
    parser.add_argument(
        '--location',
        help='Store location key for cached prices'
    )
    args = parser.parse_args()

    configure_logging(config.LOG_LEVEL)

    try:
        recipes = load_recipes(args.recipes)
        catalog = build_catalog(load_catalog(args.products))
    except (RecipeLoadError, ValueError, OSError) as e:
        print(f"❌ Error: {e}", file=sys.stderr)
        return 1

    cache = PriceCache(args.cache) if args.cache else None
    result = price_recipes(recipes, catalog, cache=cache, location=args.location)

    if args.json:
        print(json.dumps({
            "recipes": [r.to_dict() for r in result.recipes],
            "summary": result.summary(),
        }, indent=2))
    else:
        print_report(result)
    return 0


if __name__ == "__main__":
    sys.exit(main())
