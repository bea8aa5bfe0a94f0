"""Ingredient cost computation against a purchasable package."""

import logging
import math
import re
from dataclasses import asdict, dataclass
from typing import Any

from platewise import config
from platewise.package_size import resolve_package
from platewise.quantity import parse_mixed_number
from platewise.units import to_base_units

logger = logging.getLogger(__name__)

# Float noise (e.g. 3 cups against a 3-cup package) must not add a package.
_CEIL_TOLERANCE = 1e-9

# Water only as the head noun: "cold water" is free, "water chestnuts" is not
_WATER_RE = re.compile(r"(^|\s)water$")
_ICE_NAMES = {"ice", "ice cube", "ice cubes", "crushed ice", "cubed ice"}


@dataclass
class IngredientCost:
    unit_price: float      # price per base unit
    total_cost: float
    package_count: int
    base: str              # "g", "ml" or "each"
    package_size: float    # in base units
    required: float        # in base units
    leftover: float        # in base units
    adjusted: bool         # a default size or override was applied

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def _package_count(required: float, package_size: float) -> int:
    if package_size <= 0:
        return 1
    return max(1, math.ceil(required / package_size - _CEIL_TOLERANCE))


def compute_ingredient_cost(
    amount,
    unit: str | None,
    price: float | None,
    size: str | None,
    by_package: bool = True,
) -> IngredientCost | None:
    """Compute what an ingredient costs when bought in packages of *size*.

    Args:
        amount: Recipe quantity, as text ("1 1/2", "¾") or a number
        unit: Recipe unit ("cup", "oz", "cloves", ...)
        price: Price of one package
        size: Package size string from the store ("16 oz", "6 ct")
        by_package: Charge whole packages (True) or only the portion used

    Returns:
        IngredientCost, or None when there's no usable price.
    """
    if price is None or isinstance(price, bool):
        return None
    try:
        price = float(price)
    except (TypeError, ValueError, OverflowError):
        return None
    if not math.isfinite(price) or price <= 0:
        return None

    required = to_base_units(parse_mixed_number(amount), unit)
    required_value = required.value if math.isfinite(required.value) and required.value > 0 else 0.0
    pack, adjusted = resolve_package(size, required.base)
    unit_price = price / (pack.value or 1)

    if not by_package:
        return IngredientCost(
            unit_price=unit_price,
            total_cost=required_value * unit_price,
            package_count=1,
            base=pack.base,
            package_size=pack.value,
            required=required_value,
            leftover=max(0.0, pack.value - required_value),
            adjusted=adjusted,
        )

    packages = _package_count(required_value, pack.value)
    if (
        required_value > 0
        and packages > config.MAX_REASONABLE_PACKAGES
        and required_value < config.SMALL_REQUIREMENT_LIMIT
    ):
        logger.info(
            "Implausible package count, charging a single package",
            extra={"packages": packages, "required": required_value, "package_size": pack.value},
        )
        packages = 1
        adjusted = True

    return IngredientCost(
        unit_price=unit_price,
        total_cost=packages * price,
        package_count=packages,
        base=pack.base,
        package_size=pack.value,
        required=required_value,
        leftover=max(0.0, packages * pack.value - required_value),
        adjusted=adjusted,
    )


def is_free_ingredient(name: str | None) -> bool:
    """Return True for tap water and ice, which are never priced.

    Named waters that are bought at the store (coconut water, rose water,
    tonic water, ...) are not free.
    """
    n = (name or "").strip().lower()
    if not n:
        return False
    if any(exception in n for exception in config.FREE_INGREDIENT_EXCEPTIONS):
        return False
    if n in _ICE_NAMES or "ice water" in n:
        return True
    return bool(_WATER_RE.search(n))


def effective_price(price) -> float | None:
    """Pick the price a shopper pays: sale, then promo, then regular.

    Accepts a plain number or a {"sale", "promo", "regular"} dict.
    """
    if price is None or isinstance(price, bool):
        return None
    if isinstance(price, dict):
        for key in ("sale", "promo", "regular"):
            value = _positive_price(price.get(key))
            if value is not None:
                return value
        return None
    return _positive_price(price)


def _positive_price(value) -> float | None:
    if not isinstance(value, (int, float)) or isinstance(value, bool):
        return None
    try:
        value = float(value)
    except OverflowError:
        return None
    return value if math.isfinite(value) and value > 0 else None
