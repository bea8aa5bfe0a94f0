"""Recipe and meal-plan pricing.

Each recipe ingredient is matched to a store product, costed in whole
packages, and rolled up into a per-recipe total and cost per serving. A
recipe that can't be priced (bad servings, missing ingredients) is returned
unpriced instead of failing the whole meal plan.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from platewise import config
from platewise.cost import IngredientCost, compute_ingredient_cost, is_free_ingredient
from platewise.matching import Product, select_best_product
from platewise.package_size import resolve_package
from platewise.price_cache import PriceCache, PriceCacheError
from platewise.quantity import parse_mixed_number
from platewise.recipes import Recipe, RecipeIngredient

logger = logging.getLogger(__name__)

# Ingredient name (lowercased) -> candidate products
ProductCatalog = dict[str, list[Product]]


@dataclass
class IngredientPricing:
    ingredient: RecipeIngredient
    excluded: bool = False            # free ingredient (water, ice)
    product: Product | None = None
    cost: IngredientCost | None = None
    confidence: float | None = None
    alternatives: list[dict[str, Any]] = field(default_factory=list)

    @property
    def total_cost(self) -> float:
        return self.cost.total_cost if self.cost else 0.0

    @property
    def on_sale(self) -> bool:
        return bool(self.product and self.product.on_sale)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = self.ingredient.to_dict()
        if self.excluded or self.product is None:
            data["price"] = None
            if self.excluded:
                data["excluded"] = True
            return data

        product = self.product
        data["price"] = {
            "unit_price": self.cost.unit_price if self.cost else product.effective_price,
            "total_cost": self.total_cost,
            "confidence": self.confidence,
            "on_sale": self.on_sale,
            "sale_price": product.effective_price if self.on_sale else None,
            "product_id": product.product_id,
            "product_name": product.description,
            "size": product.size,
            "brand": product.brand,
            "package_count": self.cost.package_count if self.cost else None,
            "base_unit": self.cost.base if self.cost else None,
            "package_size": self.cost.package_size if self.cost else None,
            "required_amount": self.cost.required if self.cost else None,
            "leftover_amount": self.cost.leftover if self.cost else None,
            "adjusted": self.cost.adjusted if self.cost else None,
            "alternatives": self.alternatives,
        }
        return data


@dataclass
class RecipePricing:
    total_cost: float = 0.0
    cost_per_serving: float = 0.0
    budget_friendly: bool = False
    savings_opportunities: list[str] = field(default_factory=list)
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data = {
            "total_cost": round(self.total_cost, 2),
            "cost_per_serving": round(self.cost_per_serving, 2),
            "budget_friendly": self.budget_friendly,
            "savings_opportunities": self.savings_opportunities,
        }
        if self.error:
            data["error"] = self.error
        return data


@dataclass
class PricedRecipe:
    source: dict[str, Any]
    pricing: RecipePricing
    ingredients: list[IngredientPricing] = field(default_factory=list)
    has_pricing: bool = True
    priced_at: datetime | None = None

    @property
    def title(self) -> str:
        return str(self.source.get("title") or self.source.get("name") or "Untitled recipe")

    def to_dict(self) -> dict[str, Any]:
        data = dict(self.source)
        if self.ingredients:
            data["ingredients"] = [i.to_dict() for i in self.ingredients]
        data["pricing"] = self.pricing.to_dict()
        data["has_pricing"] = self.has_pricing
        if self.priced_at:
            data["pricing_updated_at"] = self.priced_at.isoformat()
        return data


@dataclass
class MealPlanPricing:
    recipes: list[PricedRecipe]
    total_cost: float
    average_cost_per_meal: float
    successful_pricing: int

    def summary(self) -> dict[str, Any]:
        return {
            "total_recipes": len(self.recipes),
            "successful_pricing": self.successful_pricing,
            "total_cost": round(self.total_cost, 2),
            "average_cost_per_meal": round(self.average_cost_per_meal, 2),
        }


def build_catalog(raw: dict[str, list[dict[str, Any]]] | None) -> ProductCatalog:
    """Turn {"ingredient name": [product dicts]} into a ProductCatalog."""
    catalog: ProductCatalog = {}
    for name, products in (raw or {}).items():
        if isinstance(products, dict):
            products = [products]
        if not isinstance(products, list):
            continue
        catalog[str(name).strip().lower()] = [
            Product.from_dict(p) for p in products if isinstance(p, dict)
        ]
    return catalog


def _cached_candidates(
    ingredient: RecipeIngredient, cache: PriceCache, location: str | None
) -> list[Product]:
    cached = cache.get(ingredient.name, location) or cache.get_stale(ingredient.name, location)
    if cached is None:
        return []
    logger.debug("Using cached price", extra={"ingredient": ingredient.name, "cached_at": cached.cached_at})
    return [Product(description=cached.product_name or ingredient.name, size=cached.size, price=cached.price)]


def price_ingredient(
    ingredient: RecipeIngredient,
    candidates: list[Product],
    cache: PriceCache | None = None,
    location: str | None = None,
) -> IngredientPricing:
    """Match an ingredient to a product and cost it in whole packages.

    With no candidates, a cached price (fresh, then stale) stands in for the
    product when *cache* is given. Live prices are written back to it.
    """
    if is_free_ingredient(ingredient.name):
        return IngredientPricing(ingredient=ingredient, excluded=True)

    from_cache = False
    if not candidates and cache is not None:
        candidates = _cached_candidates(ingredient, cache, location)
        from_cache = bool(candidates)

    amount = parse_mixed_number(ingredient.amount)
    match = select_best_product(ingredient.name, amount, ingredient.unit, candidates or [])
    if match is None or not match.product.effective_price:
        return IngredientPricing(ingredient=ingredient)

    cost = compute_ingredient_cost(
        ingredient.amount,
        ingredient.unit,
        match.product.effective_price,
        match.product.size,
        by_package=True,
    )
    if cache is not None and not from_cache:
        try:
            cache.put(
                ingredient.name,
                match.product.effective_price,
                location=location,
                product_name=match.product.description,
                size=match.product.size,
                confidence=match.confidence,
            )
        except PriceCacheError as e:
            logger.warning("Could not cache price: %s", e)

    alternatives = [c for c in match.top_candidates if c.get("product_id") != match.product.product_id
                    or c.get("description") != match.product.description]
    return IngredientPricing(
        ingredient=ingredient,
        product=match.product,
        cost=cost,
        confidence=match.confidence,
        alternatives=alternatives[:3],
    )


def _unit_price(candidate: dict[str, Any], base: str) -> float | None:
    """Price per base unit of an alternative, sized against the chosen line's base."""
    price = candidate.get("price")
    if not price:
        return None
    pack, _ = resolve_package(candidate.get("size"), base)
    return price / (pack.value or 1)


def _savings_opportunities(lines: list[IngredientPricing]) -> list[str]:
    tips = []
    for line in lines:
        if line.product is None or line.cost is None:
            continue
        regular = line.product.regular_price
        if line.on_sale and regular and line.product.effective_price:
            saving = regular - line.product.effective_price
            if saving > 0:
                tips.append(f"{line.ingredient.name} is on sale - save ${saving:.2f}!")
        threshold = line.cost.unit_price * config.CHEAPER_ALTERNATIVE_RATIO
        for alt in line.alternatives:
            alt_unit_price = _unit_price(alt, line.cost.base)
            if alt_unit_price is not None and alt_unit_price < threshold:
                cheaper = alt
                break
        else:
            cheaper = None
        if cheaper:
            label = cheaper.get("brand") or cheaper.get("description") or "another brand"
            tips.append(f"Consider {label} {line.ingredient.name} for additional savings")
    return tips


def price_recipe(
    recipe: Recipe,
    catalog: ProductCatalog,
    cache: PriceCache | None = None,
    location: str | None = None,
) -> PricedRecipe:
    """Price every ingredient of *recipe* and total it up."""
    lines = [
        price_ingredient(ingredient, catalog.get(ingredient.name.lower(), []), cache, location)
        for ingredient in recipe.ingredients
    ]
    total = sum(line.total_cost for line in lines)
    per_serving = total / recipe.servings
    pricing = RecipePricing(
        total_cost=total,
        cost_per_serving=per_serving,
        budget_friendly=per_serving <= config.BUDGET_FRIENDLY_PER_SERVING,
        savings_opportunities=_savings_opportunities(lines),
    )
    logger.info(
        "Priced recipe",
        extra={"recipe": recipe.title, "total_cost": round(total, 2), "cost_per_serving": round(per_serving, 2)},
    )
    return PricedRecipe(
        source=recipe.source,
        pricing=pricing,
        ingredients=lines,
        has_pricing=True,
        priced_at=datetime.now(timezone.utc),
    )


def price_recipes(
    recipes: list[dict[str, Any]],
    catalog: ProductCatalog,
    cache: PriceCache | None = None,
    location: str | None = None,
) -> MealPlanPricing:
    """Price a meal plan's recipes; a recipe that fails comes back unpriced."""
    priced: list[PricedRecipe] = []
    for raw in recipes:
        try:
            priced.append(price_recipe(Recipe.from_dict(raw), catalog, cache, location))
        except Exception:
            logger.exception("Failed to price recipe")
            source = raw if isinstance(raw, dict) else {"value": raw}
            priced.append(PricedRecipe(
                source=source,
                pricing=RecipePricing(error="Pricing unavailable"),
                has_pricing=False,
            ))

    total = sum(r.pricing.total_cost for r in priced)
    successful = sum(1 for r in priced if r.has_pricing)
    average = total / len(priced) if priced else 0.0
    logger.info(
        "Priced meal plan",
        extra={"recipe_count": len(priced), "successful_pricing": successful, "total_cost": round(total, 2)},
    )
    return MealPlanPricing(
        recipes=priced,
        total_cost=total,
        average_cost_per_meal=average,
        successful_pricing=successful,
    )
