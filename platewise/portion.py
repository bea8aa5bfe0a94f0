"""Recipe-aware portion costing.

Where cost.compute_ingredient_cost answers "how many packages do I buy",
this module answers "how much of the package does the recipe use" so a
recipe can be costed by the share it actually consumes.
"""

import logging
import math
import re
from dataclasses import asdict, dataclass
from typing import Any

from platewise import config
from platewise.package_size import PackageAmount, parse_enhanced_package_size
from platewise.quantity import parse_mixed_number
from platewise.recipes import RecipeIngredient
from platewise.units import MASS_PER_ML, from_base_units, normalize_unit, to_base_units, unit_family

logger = logging.getLogger(__name__)

_WHOLE_INGREDIENT_PATTERNS = [
    re.compile(r"whole\s+(chicken|turkey|fish|onion|garlic)", re.IGNORECASE),
    re.compile(r"^(chicken|turkey|fish|onion|garlic)s?\s*(,\s*(cut|chopped|diced)\b.*)?$", re.IGNORECASE),
]

_WHOLE_UNITS = {"whole", "piece", "pieces", "each", "", "item", "items"}


class InvalidPackageError(Exception):
    """Raised when a package payload has an unusable price."""
    pass


@dataclass
class PackageInfo:
    product_name: str
    package_size: str
    package_price: float
    store_name: str = ""
    store_address: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PackageInfo":
        raw_price = data.get("package_price", data.get("packagePrice"))
        try:
            price = float(raw_price or 0)
        except (TypeError, ValueError, OverflowError):
            raise InvalidPackageError(f"package_price must be a number, got {raw_price!r}")
        if isinstance(raw_price, bool) or not math.isfinite(price):
            raise InvalidPackageError(f"package_price must be a number, got {raw_price!r}")
        return cls(
            product_name=str(data.get("product_name") or data.get("productName") or "Unknown Product"),
            package_size=str(data.get("package_size") or data.get("packageSize") or ""),
            package_price=price,
            store_name=str(data.get("store_name") or data.get("storeName") or ""),
            store_address=data.get("store_address") or data.get("storeAddress"),
        )


@dataclass
class PortionCost:
    portion_cost: float
    utilization_ratio: float
    waste_amount: float


@dataclass
class PortionResult:
    ingredient: str
    package_price: float
    portion_cost: float
    utilization_ratio: float
    waste_amount: float
    waste_unit: str
    is_whole_portion: bool
    confidence: str   # "high" | "medium" | "low"
    explanation: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class PortionTotals:
    total_package_cost: float
    total_portion_cost: float
    average_utilization: float
    total_waste_value: float

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def _to_comparable(amount: float, unit: str, target_base: str | None) -> tuple[float, str]:
    q = to_base_units(amount, unit)
    if target_base == "ml" and q.base == "g":
        return q.value / MASS_PER_ML, "ml"
    if target_base == "g" and q.base == "ml":
        return q.value * MASS_PER_ML, "g"
    return q.value, q.base


def calculate_portion_cost(
    recipe_quantity: float,
    recipe_unit: str,
    package_size: float,
    package_unit: str,
    package_price: float,
) -> PortionCost:
    """Cost of the share of a package that a recipe uses.

    The utilization ratio is capped at 1: a recipe can't use more than the
    whole package here (buying more is cost.compute_ingredient_cost's job).
    """
    recipe_base = to_base_units(recipe_quantity, recipe_unit).base
    package_base = to_base_units(package_size, package_unit).base

    if recipe_base == "each" and package_base == "each":
        if package_size <= 0:
            return PortionCost(package_price * config.UNKNOWN_UNIT_RATIO, config.UNKNOWN_UNIT_RATIO, 0.0)
        ratio = min(recipe_quantity / package_size, 1.0)
        return PortionCost(
            portion_cost=package_price * ratio,
            utilization_ratio=ratio,
            waste_amount=max(0.0, package_size - recipe_quantity),
        )

    if recipe_base != "each" and package_base != "each":
        package_value, base = _to_comparable(package_size, package_unit, None)
        recipe_value, _ = _to_comparable(recipe_quantity, recipe_unit, base)
        if package_value > 0:
            ratio = min(recipe_value / package_value, 1.0)
            waste_base = max(0.0, package_value - recipe_value)
            waste = from_base_units(waste_base, base, package_unit)
            return PortionCost(
                portion_cost=package_price * ratio,
                utilization_ratio=ratio,
                waste_amount=waste if waste is not None else waste_base,
            )

    return PortionCost(
        portion_cost=package_price * config.UNKNOWN_UNIT_RATIO,
        utilization_ratio=config.UNKNOWN_UNIT_RATIO,
        waste_amount=0.0,
    )


class PortionCalculator:
    """Cost recipe ingredients by the share of each package they use."""

    def calculate_ingredient_portion(
        self, ingredient: RecipeIngredient, package_info: PackageInfo
    ) -> PortionResult:
        parsed = parse_enhanced_package_size(package_info.package_size)
        if parsed is None:
            return self._fallback_result(
                ingredient, package_info, "low",
                "Could not parse package size - using estimated portion",
            )

        if self._is_whole_ingredient(ingredient.name, ingredient.unit):
            return self._whole_ingredient_result(ingredient, package_info, parsed)

        amount = parse_mixed_number(ingredient.amount)
        result = calculate_portion_cost(
            recipe_quantity=amount,
            recipe_unit=ingredient.unit,
            package_size=parsed.amount,
            package_unit=parsed.unit,
            package_price=package_info.package_price,
        )
        confidence = self._confidence(ingredient.unit, parsed.unit, result.utilization_ratio)

        return PortionResult(
            ingredient=ingredient.name,
            package_price=package_info.package_price,
            portion_cost=round(result.portion_cost, 2),
            utilization_ratio=result.utilization_ratio,
            waste_amount=round(result.waste_amount, 2),
            waste_unit=parsed.unit,
            is_whole_portion=result.utilization_ratio >= config.WHOLE_PORTION_RATIO,
            confidence=confidence,
            explanation=self._explain(ingredient, amount, parsed, result.utilization_ratio),
        )

    def calculate_batch(
        self,
        ingredients: list[RecipeIngredient],
        package_map: dict[str, PackageInfo],
    ) -> list[PortionResult]:
        """Cost every ingredient; package_map is keyed by lowercased name."""
        results = []
        for ingredient in ingredients:
            package_info = package_map.get(ingredient.name.lower())
            if package_info is None:
                logger.debug("No package info for ingredient", extra={"ingredient": ingredient.name})
                results.append(self._fallback_result(
                    ingredient,
                    PackageInfo(
                        product_name="Unknown Product",
                        package_size="1 unit",
                        package_price=config.DEFAULT_PACKAGE_PRICE,
                        store_name="Unknown Store",
                    ),
                    "low",
                    "No package information available",
                ))
                continue
            results.append(self.calculate_ingredient_portion(ingredient, package_info))
        return results

    def calculate_total_cost(self, results: list[PortionResult]) -> PortionTotals:
        total_package = sum(r.package_price for r in results)
        total_portion = sum(r.portion_cost for r in results)
        total_waste = sum(r.package_price - r.portion_cost for r in results)
        average = sum(r.utilization_ratio for r in results) / len(results) if results else 0.0
        return PortionTotals(
            total_package_cost=round(total_package, 2),
            total_portion_cost=round(total_portion, 2),
            average_utilization=round(average, 2),
            total_waste_value=round(total_waste, 2),
        )

    def _is_whole_ingredient(self, name: str, unit: str) -> bool:
        """Ingredients bought and used whole (a chicken, an onion, "2 each")."""
        if unit_family(unit) in ("g", "ml"):
            return False
        if any(p.search(name) for p in _WHOLE_INGREDIENT_PATTERNS):
            return True
        return (unit or "").lower().strip() in _WHOLE_UNITS

    def _whole_ingredient_result(
        self, ingredient: RecipeIngredient, package_info: PackageInfo, parsed: PackageAmount
    ) -> PortionResult:
        recipe_amount = parse_mixed_number(ingredient.amount) or 1.0
        package_amount = parsed.amount or 1.0
        price = package_info.package_price

        if recipe_amount <= package_amount:
            ratio = recipe_amount / package_amount
            return PortionResult(
                ingredient=ingredient.name,
                package_price=price,
                portion_cost=round(price * ratio, 2),
                utilization_ratio=ratio,
                waste_amount=package_amount - recipe_amount,
                waste_unit="piece",
                is_whole_portion=recipe_amount == package_amount,
                confidence="high",
                explanation=f"Recipe uses {recipe_amount:g} of {package_amount:g} in package",
            )

        # Needs more than one package holds: charge the full package
        return PortionResult(
            ingredient=ingredient.name,
            package_price=price,
            portion_cost=price,
            utilization_ratio=1.0,
            waste_amount=0.0,
            waste_unit="piece",
            is_whole_portion=True,
            confidence="medium",
            explanation="Recipe needs more than package contains - using full package price",
        )

    def _confidence(self, recipe_unit: str, package_unit: str, ratio: float) -> str:
        sane_ratio = 0.05 < ratio <= 1
        if sane_ratio and normalize_unit(recipe_unit) and normalize_unit(package_unit):
            return "high"
        if sane_ratio:
            return "medium"
        return "low"

    def _explain(
        self, ingredient: RecipeIngredient, amount: float, parsed: PackageAmount, ratio: float
    ) -> str:
        recipe_unit = ingredient.unit or "unit"
        percent = round(ratio * 100)
        if recipe_unit == parsed.unit or normalize_unit(recipe_unit) == normalize_unit(parsed.unit):
            return (
                f"Recipe needs {amount:g} {recipe_unit}, package contains "
                f"{parsed.amount:g} {parsed.unit} ({percent}% used)"
            )
        return (
            f"Recipe needs {amount:g} {recipe_unit} from {parsed.amount:g} {parsed.unit} "
            f"package ({percent}% estimated usage)"
        )

    def _fallback_result(
        self,
        ingredient: RecipeIngredient,
        package_info: PackageInfo,
        confidence: str,
        explanation: str,
    ) -> PortionResult:
        ratio = config.PORTION_FALLBACK_RATIO
        return PortionResult(
            ingredient=ingredient.name,
            package_price=package_info.package_price,
            portion_cost=round(package_info.package_price * ratio, 2),
            utilization_ratio=ratio,
            waste_amount=0.0,
            waste_unit="unit",
            is_whole_portion=False,
            confidence=confidence,
            explanation=explanation,
        )
