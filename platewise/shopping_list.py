import logging
import re
import unicodedata
from collections import defaultdict
from dataclasses import dataclass
from typing import Any

from rapidfuzz import fuzz

from platewise import config
from platewise.cost import compute_ingredient_cost, is_free_ingredient
from platewise.matching import Product, classify_category, select_best_product
from platewise.quantity import parse_mixed_number
from platewise.recipes import Recipe
from platewise.units import humanize, normalize_unit, to_base_units

# Similarity threshold (0-100) for fuzzy name merging with fuzz.ratio. Items
# scoring at or above this are treated as the same ingredient. 85 catches
# plural variants that slip through _normalize_name ("tomatoe" vs "tomato")
# while keeping "chicken" and "chicken broth" apart.
_FUZZY_THRESHOLD = 85

logger = logging.getLogger(__name__)

# Units that convey no useful shopping quantity: the item is listed, but
# without an amount.
_QUANTITY_MEANINGLESS_UNITS = {"to taste", "to serve", "as needed", "as required", "pinch"}


@dataclass
class ShoppingListItem:
    item: str
    quantity: float | None  # None = buy it but no meaningful quantity
    unit: str
    category: str
    estimated_cost: float | None = None
    package_count: int | None = None
    product_name: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "item": self.item,
            "quantity": round(self.quantity, 2) if self.quantity is not None else None,
            "unit": self.unit,
            "category": self.category,
            "estimated_cost": round(self.estimated_cost, 2) if self.estimated_cost is not None else None,
            "package_count": self.package_count,
            "product_name": self.product_name,
        }


@dataclass
class ShoppingList:
    items: list[ShoppingListItem]

    @property
    def items_by_category(self) -> dict[str, list[ShoppingListItem]]:
        """Group items by category."""
        grouped = defaultdict(list)
        for item in self.items:
            grouped[item.category].append(item)
        return dict(grouped)

    @property
    def total_estimated_cost(self) -> float:
        return round(sum(i.estimated_cost or 0.0 for i in self.items), 2)

    def to_dict(self) -> dict[str, Any]:
        return {
            "items": [i.to_dict() for i in self.items],
            "items_by_category": {
                category: [i.to_dict() for i in items]
                for category, items in self.items_by_category.items()
            },
            "total_estimated_cost": self.total_estimated_cost,
        }


def _normalize_name(name: str) -> str:
    """Return a canonical grouping key for an ingredient name.

    1. Strip diacritics (jalapeño -> jalapeno).
    2. Lowercase and trim whitespace.
    3. Strip a trailing 's' to handle simple plurals (jalapenos -> jalapeno,
       peppers -> pepper). Words ending in 'ss' are left alone.
    """
    nfkd = unicodedata.normalize("NFKD", name.strip())
    s = "".join(c for c in nfkd if not unicodedata.combining(c)).lower()
    if len(s) > 4 and s.endswith("s") and not s.endswith("ss"):
        s = s[:-1]
    return s


def _fuzzy_merge_items(item_data: dict[str, dict]) -> dict[str, dict]:
    """Merge item_data entries whose normalized names score >= _FUZZY_THRESHOLD.

    Greedy pass: the first key in insertion order becomes the canonical
    representative for its similarity cluster.
    """
    if len(item_data) <= 1:
        return item_data

    keys = list(item_data.keys())
    canonical_for: dict[str, str] = {}

    for i, key in enumerate(keys):
        if key in canonical_for:
            continue
        canonical_for[key] = key
        for other in keys[i + 1:]:
            if other in canonical_for:
                continue
            if fuzz.ratio(key, other) >= _FUZZY_THRESHOLD:
                canonical_for[other] = key

    result: dict[str, dict] = {}
    for key, canonical in canonical_for.items():
        src = item_data[key]
        if canonical not in result:
            result[canonical] = {
                "display_name": item_data[canonical]["display_name"],
                "category": item_data[canonical]["category"],
                "entries": list(src["entries"]),
                "quantity_meaningless": src["quantity_meaningless"],
            }
        else:
            result[canonical]["entries"].extend(src["entries"])
            result[canonical]["quantity_meaningless"] |= src["quantity_meaningless"]

    return result


def _combine_entries(entries: list[tuple[float, str]]) -> list[tuple[float, str, float]]:
    """Sum (amount, unit) entries for one ingredient.

    Mass and volume entries are summed in base units and shown in the most
    readable unit of their family. Count-like units (cloves, heads, cans)
    are summed per unit so "2 cloves" and "1 head" stay separate lines.

    Returns (display_quantity, display_unit, recipe_amount_in_that_unit)
    triples; the third value is what gets priced.
    """
    base_totals: dict[str, float] = defaultdict(float)
    counts: dict[str, float] = defaultdict(float)

    for amount, unit in entries:
        q = to_base_units(amount, unit)
        if q.base in ("g", "ml"):
            base_totals[q.base] += q.value
        else:
            counts[(unit or "").strip().lower()] += amount

    result = []
    for base, total in base_totals.items():
        qty, display_unit = humanize(total, base)
        result.append((qty, display_unit, qty))
    for unit, total in counts.items():
        result.append((total, unit, total))
    return result


def _is_excluded(name: str, excluded: list[str]) -> bool:
    lowered = name.lower()
    if is_free_ingredient(lowered):
        return True
    return any(re.search(r"\b" + re.escape(ex) + r"\b", lowered) for ex in excluded)


def generate_shopping_list(
    recipes: list[Recipe],
    catalog: dict[str, list[Product]] | None = None,
    excluded: list[str] | None = None,
) -> ShoppingList:
    """Build a consolidated, priced shopping list from recipes.

    Ingredients with the same name are combined into one line; compatible
    units are summed in base units. Free ingredients and anything in
    *excluded* (word-boundary match) are dropped. When *catalog* has
    candidates for an item, the line is priced in whole packages.
    """
    catalog = catalog or {}
    excluded_lower = [
        e.lower().strip()
        for e in (excluded if excluded is not None else config.DEFAULT_EXCLUDED_INGREDIENTS)
        if e and e.strip()
    ]
    logger.debug("Generating shopping list", extra={"recipe_count": len(recipes)})

    item_data: dict[str, dict] = {}
    for recipe in recipes:
        for ingredient in recipe.ingredients:
            name = ingredient.name
            if _is_excluded(name, excluded_lower):
                continue
            key = _normalize_name(name)
            if key not in item_data:
                item_data[key] = {
                    "display_name": name,   # first-seen original name for display
                    "category": classify_category(name),
                    "entries": [],
                    "quantity_meaningless": False,
                }
            unit = (ingredient.unit or "").strip()
            if unit.lower() in _QUANTITY_MEANINGLESS_UNITS:
                item_data[key]["quantity_meaningless"] = True
                continue
            amount = parse_mixed_number(ingredient.amount)
            if amount <= 0:
                item_data[key]["quantity_meaningless"] = True
                continue
            item_data[key]["entries"].append((amount, unit))

    item_data = _fuzzy_merge_items(item_data)

    items: list[ShoppingListItem] = []
    for data in item_data.values():
        display = data["display_name"]
        candidates = catalog.get(display.lower(), [])
        if not data["entries"]:
            items.append(_priced_item(display, None, "", data["category"], candidates))
            continue
        for qty, unit, amount in _combine_entries(data["entries"]):
            items.append(_priced_item(display, qty, unit, data["category"], candidates, amount))

    items.sort(key=lambda x: (x.category, x.item))
    shopping_list = ShoppingList(items=items)
    logger.info(
        "Shopping list generated",
        extra={
            "item_count": len(items),
            "category_count": len({i.category for i in items}),
            "total_estimated_cost": shopping_list.total_estimated_cost,
        },
    )
    return shopping_list


def _priced_item(
    name: str,
    quantity: float | None,
    unit: str,
    category: str,
    candidates: list[Product],
    amount: float | None = None,
) -> ShoppingListItem:
    item = ShoppingListItem(item=name, quantity=quantity, unit=unit, category=category)
    if not candidates:
        return item

    # A quantityless line ("salt, to taste") is bought as one package
    priced_amount = amount if amount is not None else 1
    priced_unit = unit if normalize_unit(unit) else "each"
    match = select_best_product(name, priced_amount, priced_unit, candidates)
    if match is None:
        return item

    cost = compute_ingredient_cost(
        priced_amount if amount is not None else 0,
        priced_unit,
        match.product.effective_price,
        match.product.size,
    )
    if cost is not None:
        item.estimated_cost = cost.total_cost
        item.package_count = cost.package_count
        item.product_name = match.product.description
    return item
