"""Grocery product matching: score store products against a recipe ingredient.

Products come from whatever grocery source the caller uses; this module only
ranks them. The score blends title similarity with size proximity and a set
of small boosts and penalties that keep obviously wrong products (soup for
an onion, flavoured crackers for plain ones) from winning.
"""

import logging
import math
import re
from dataclasses import dataclass, field
from typing import Any

from rapidfuzz import fuzz

from platewise.cost import effective_price
from platewise.package_size import parse_size_to_base
from platewise.units import to_base_units

logger = logging.getLogger(__name__)

STOPWORDS = {
    'fresh', 'chopped', 'diced', 'minced', 'organic', 'large', 'small', 'medium',
    'skinless', 'boneless', 'low', 'sodium', 'unsalted', 'salted', 'ground', 'whole',
    'can', 'canned', 'pack', 'package', 'jar', 'cup', 'cups', 'tbsp', 'tablespoon',
    'tsp', 'teaspoon', 'of',
}

SYNONYMS: dict[str, list[str]] = {
    'cilantro': ['coriander', 'fresh cilantro'],
    'coriander': ['cilantro', 'fresh coriander'],
    'coriander leaves': ['cilantro', 'fresh cilantro', 'fresh coriander'],
    'scallion': ['green onion', 'spring onion'],
    'scallions': ['green onions', 'spring onions'],
    'chickpeas': ['garbanzo beans', 'garbanzo'],
    'zucchini': ['courgette'],
    'eggplant': ['aubergine'],
    'bell': ['capsicum'],
    'chili': ['chilli', 'chile'],
    'onion': ['yellow onion', 'white onion'],
    'pine nuts': ['pignoli', 'pignolia', 'pine nut'],
    'pumpkin seeds': ['pepitas', 'pumpkin seed'],
    'sesame seeds': ['sesame seed'],
    'almonds': ['almond'],
    'cashews': ['cashew'],
    'walnuts': ['walnut'],
}

FORM_HINTS = ['canned', 'low sodium', 'unsalted', 'boneless', 'skinless', 'ground', 'whole']

FLAVOR_TOKENS = ['chocolate', 'oreo', 'graham', 'vanilla', 'pumpkin', 'ginger', 'spice', 'strawberry', 'lemon']

STORE_BRANDS = ['kroger', 'simple truth']

CATEGORY_KEYWORDS: dict[str, list[str]] = {
    'produce': [
        'tomato', 'onion', 'garlic', 'pepper', 'bell pepper', 'lettuce', 'spinach',
        'cilantro', 'basil', 'parsley', 'apple', 'banana', 'lemon', 'lime', 'carrot',
        'cucumber', 'potato', 'celery', 'avocado', 'ginger', 'scallion', 'zucchini',
    ],
    'pantry': [
        'flour', 'rice', 'pasta', 'beans', 'chickpea', 'garbanzo', 'oil', 'olive oil',
        'vinegar', 'spice', 'salt', 'sugar', 'canned', 'broth', 'stock', 'tomato paste',
        'tomato sauce', 'soy sauce', 'peanut butter',
    ],
    'dairy': ['milk', 'cheese', 'yogurt', 'butter', 'cream', 'sour cream', 'egg', 'eggs'],
    'meat': ['chicken', 'beef', 'pork', 'turkey', 'fish', 'salmon', 'bacon', 'sausage', 'ground beef'],
    'bakery': ['bread', 'bun', 'roll', 'bagel', 'tortilla'],
    'frozen': ['frozen'],
}

_HERBS = ['cilantro', 'coriander', 'parsley', 'basil', 'oregano', 'thyme', 'rosemary', 'sage', 'mint']
_ONIONS = ['onion', 'shallot']
_LEAFY = ['cilantro', 'coriander', 'parsley', 'basil', 'lettuce', 'spinach']
_ROOTS = ['onion', 'carrot', 'potato', 'turnip', 'radish']


@dataclass
class Product:
    description: str
    size: str | None = None
    price: dict[str, float] | float | None = None  # {"regular", "promo", "sale"} or a number
    product_id: str | None = None
    brand: str = ""
    categories: list[str] = field(default_factory=list)
    stock_level: str = "unknown"

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Product":
        """Build a Product from a flat dict, or one with the store's nested items[0]."""
        item = {}
        items = data.get("items")
        if isinstance(items, list) and items and isinstance(items[0], dict):
            item = items[0]
        inventory = item.get("inventory") or data.get("inventory") or {}
        return cls(
            description=str(data.get("description") or item.get("description") or data.get("name") or ""),
            size=item.get("size") or data.get("size"),
            price=item.get("price") if item.get("price") is not None else data.get("price"),
            product_id=data.get("product_id") or data.get("productId") or data.get("upc"),
            brand=str(data.get("brand") or ""),
            categories=list(data.get("categories") or []),
            stock_level=str(inventory.get("stockLevel") or data.get("stock_level") or "unknown"),
        )

    @property
    def effective_price(self) -> float | None:
        return effective_price(self.price)

    @property
    def on_sale(self) -> bool:
        if not isinstance(self.price, dict):
            return False
        return bool(self.price.get("sale") or self.price.get("promo"))

    @property
    def regular_price(self) -> float | None:
        if isinstance(self.price, dict):
            return effective_price({"regular": self.price.get("regular")}) or self.effective_price
        return self.effective_price

    def to_dict(self) -> dict[str, Any]:
        return {
            "product_id": self.product_id,
            "description": self.description,
            "brand": self.brand,
            "size": self.size,
            "price": self.effective_price,
        }


@dataclass
class ScoreBreakdown:
    title_similarity: float
    size_proximity: float
    category_matched: bool
    category_hint: str | None
    availability: str
    promo: bool
    soup_penalty_applied: bool
    price: float
    score: float


@dataclass
class ProductMatch:
    product: Product
    score: ScoreBreakdown
    confidence: float
    top_candidates: list[dict[str, Any]] = field(default_factory=list)


def normalize_name(text: str) -> str:
    """Lowercase, strip punctuation and drop stop-words."""
    cleaned = re.sub(r'[^a-z0-9\s]', ' ', (text or '').lower())
    return ' '.join(t for t in cleaned.split() if t not in STOPWORDS)


def extract_hints(original: str) -> list[str]:
    lower = (original or '').lower()
    return [hint for hint in FORM_HINTS if hint in lower]


def expand_synonyms(tokens: list[str]) -> list[str]:
    expanded = list(dict.fromkeys(tokens))
    for token in tokens:
        for synonym in SYNONYMS.get(token, []):
            if synonym not in expanded:
                expanded.append(synonym)
    return expanded


def build_search_terms(name: str) -> list[str]:
    """Store search terms for an ingredient, longest first (at most 3)."""
    normalized = normalize_name(name)
    tokens = normalized.split()
    phrase_synonyms = SYNONYMS.get(normalized, [])
    expanded = expand_synonyms(tokens)
    hints = extract_hints(name)

    terms = [
        ' '.join(expanded + hints).strip(),
        ' '.join(expanded).strip(),
        normalized,
        *phrase_synonyms,
    ]
    unique = [t for t in dict.fromkeys(terms) if t]
    return sorted(unique, key=len, reverse=True)[:3]


def classify_category(name: str) -> str:
    """Guess the store aisle for an ingredient (longest keyword wins)."""
    lower = (name or '').lower()
    best_category = 'other'
    best_len = 0
    for category, keywords in CATEGORY_KEYWORDS.items():
        for keyword in keywords:
            if keyword in lower and len(keyword) > best_len:
                best_len = len(keyword)
                best_category = category
    return best_category


def title_similarity(ingredient_name: str, title: str) -> float:
    """Similarity in [0, 1] between an ingredient and a product title."""
    a = normalize_name(ingredient_name)
    b = normalize_name(title)
    if not a or not b:
        return 0.0
    return fuzz.token_set_ratio(a, b) / 100.0


def size_proximity(amount: float, unit: str, size: str | None) -> float:
    """How close a package is to the amount needed: 1.0 is an exact fit.

    Returns 0.2 when either side can't be measured or the units don't compare.
    """
    pack = parse_size_to_base(size)
    if pack is None or pack.value <= 0:
        return 0.2
    needed = to_base_units(amount, unit)
    if needed.base == "each" or needed.base != pack.base or needed.value <= 0:
        return 0.2
    ratio = needed.value / pack.value
    return max(0.0, min(1.0, 1 / (1 + abs(math.log(ratio)))))


def _contains_any(text: str, words: list[str]) -> bool:
    return any(re.search(rf'\b{re.escape(w)}', text) for w in words)


def _wrong_type_penalty(ingredient_name: str, title: str) -> float:
    ingredient = normalize_name(ingredient_name)
    lower_title = title.lower()
    if _contains_any(ingredient, _HERBS) and _contains_any(lower_title, _ONIONS):
        return -0.8
    if _contains_any(ingredient, _ONIONS) and _contains_any(lower_title, _HERBS):
        return -0.8
    return 0.0


def _category_mismatch_penalty(ingredient_name: str, title: str, category_hint: str | None) -> float:
    lower_title = title.lower()
    if category_hint == 'produce' and any(w in lower_title for w in ('sauce', 'seasoning', 'powder')):
        return -0.4
    if _contains_any(normalize_name(ingredient_name), _LEAFY) and _contains_any(lower_title, _ROOTS):
        return -0.6
    return 0.0


def score_product(
    ingredient_name: str,
    amount: float,
    unit: str,
    product: Product,
    category_hint: str | None = None,
) -> ScoreBreakdown:
    """Score how well *product* matches the ingredient (higher is better)."""
    title = product.description or ''
    lower_title = title.lower()
    sim = title_similarity(ingredient_name, title)
    size_score = size_proximity(amount, unit, product.size)
    price = product.effective_price or 0.0
    promo = product.on_sale
    availability = product.stock_level or 'unknown'

    category_matched = bool(
        category_hint and any(category_hint in c.lower() for c in product.categories)
    )
    soup_penalty_applied = category_hint == 'produce' and 'soup' in lower_title

    ingredient_tokens = set(normalize_name(ingredient_name).split())
    flavor_penalty = sum(
        -0.3 for tok in FLAVOR_TOKENS if tok in lower_title and tok not in ingredient_tokens
    )
    brand = product.brand.lower()
    brand_boost = 0.08 if any(b in brand for b in STORE_BRANDS) else 0.0

    score = (
        0.5 * sim
        + 0.2 * size_score
        + (0.2 if category_matched else 0.0)
        + (-0.2 if 'out' in availability.lower() else 0.0)
        + (0.05 if price > 0 else 0.0)
        + (0.05 if promo else 0.0)
        + (-0.5 if soup_penalty_applied else 0.0)
        + flavor_penalty
        + brand_boost
        + _wrong_type_penalty(ingredient_name, title)
        + _category_mismatch_penalty(ingredient_name, title, category_hint)
    )

    return ScoreBreakdown(
        title_similarity=sim,
        size_proximity=size_score,
        category_matched=category_matched,
        category_hint=category_hint,
        availability=availability,
        promo=promo,
        soup_penalty_applied=soup_penalty_applied,
        price=price,
        score=score,
    )


def _dedupe(candidates: list[Product]) -> list[Product]:
    seen: dict[str, Product] = {}
    for product in candidates:
        key = product.product_id or f"{product.description}|{product.size}"
        seen.setdefault(key, product)
    return list(seen.values())


def select_best_product(
    ingredient_name: str,
    amount: float,
    unit: str,
    candidates: list[Product],
) -> ProductMatch | None:
    """Pick the best candidate, preferring one that actually has a price."""
    unique = _dedupe(candidates)
    if not unique:
        return None

    category_hint = classify_category(ingredient_name)
    hint = category_hint if category_hint != 'other' else None
    scored = sorted(
        ((p, score_product(ingredient_name, amount, unit, p, hint)) for p in unique),
        key=lambda pair: pair[1].score,
        reverse=True,
    )
    chosen = next(((p, s) for p, s in scored if p.effective_price), scored[0])

    top = [
        {
            **p.to_dict(),
            "confidence": max(0.0, min(1.0, s.score)),
            "signals": {
                "title_similarity": s.title_similarity,
                "size_proximity": s.size_proximity,
                "category_matched": s.category_matched,
            },
        }
        for p, s in scored[:3]
    ]
    logger.debug(
        "Selected product",
        extra={"ingredient": ingredient_name, "product": chosen[0].description, "score": chosen[1].score},
    )
    return ProductMatch(
        product=chosen[0],
        score=chosen[1],
        confidence=max(0.0, min(1.0, chosen[1].score)),
        top_candidates=top,
    )
