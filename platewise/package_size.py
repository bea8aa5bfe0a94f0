"""Package-size text parsing.

Grocery size strings are messy ("16 OZ", "6 x 16.9 fl oz", "Approx. 3.5 lbs
per chicken", "1/2 gal"). Two parsers live here:

- parse_size_to_base(): strict parse into base units, used for package-count
  pricing. Returns None when nothing usable is found so the caller can apply
  a default package size.
- parse_enhanced_package_size(): lenient parse used by portion costing. It
  always returns something for non-empty input.
"""

import logging
import math
import re
from dataclasses import dataclass

from platewise import config
from platewise.quantity import normalize_vulgar_fractions, parse_mixed_number
from platewise.units import MASS_PER_ML, BaseQuantity, to_base_units

logger = logging.getLogger(__name__)

_NUMBER = r"\d+\s+\d+\s*/\s*\d+|\d+(?:\.\d+)?(?:\s*/\s*\d+)?|\.\d+"

_MEASURE_UNITS = (
    r"floz|oz|ounces?|lbs?|pounds?|kg|kilograms?|g|grams?|ml|milliliters?|millilitres?"
    r"|l|liters?|litres?|gal|gallons?|qt|quarts?|pt|pints?"
)

_MEASURE_RE = re.compile(rf"({_NUMBER})\s*({_MEASURE_UNITS})\b")

# "6 x 16.9 floz", "12 ct / 12 oz", "4 pk 5 oz"
_MULTIPACK_RE = re.compile(
    rf"(\d+)\s*(?:x|ct\s*/|count\s*/|pk|pack)\s*({_NUMBER})\s*({_MEASURE_UNITS})\b"
)

_COUNT_RE = re.compile(r"(\d+)\s*(?:count|ct|pk|pack|pieces?|each|ea)\b")
_DOZEN_RE = re.compile(r"\b(?:dozen|doz)\b")


@dataclass(frozen=True)
class PackageAmount:
    """A package size in its own display unit (fl_oz, lb, oz, kg, g, ml, l or each)."""
    amount: float
    unit: str


def _normalize_size_text(size: str) -> str:
    s = normalize_vulgar_fractions(str(size)).lower()
    s = re.sub(r"fl\.?\s*oz\.?", "floz", s)
    s = re.sub(r"fluid\s*ounces?", "floz", s)
    return s


def _measure_to_base(qty: float, unit: str) -> BaseQuantity:
    if unit == "floz":
        return BaseQuantity(value=qty * 29.5735, base="ml")
    return to_base_units(qty, unit)


def parse_size_to_base(size: str | None) -> BaseQuantity | None:
    """Parse a package size string into base units.

    Returns None if the string has no recognisable weight, volume or count.
    """
    if not size:
        return None
    s = _normalize_size_text(size)

    multi = _MULTIPACK_RE.search(s)
    if multi:
        count = int(multi.group(1))
        per_item = _measure_to_base(parse_mixed_number(multi.group(2)), multi.group(3))
        if count > 0 and per_item.value > 0:
            return BaseQuantity(value=count * per_item.value, base=per_item.base)

    m = _MEASURE_RE.search(s)
    if m:
        qty = parse_mixed_number(m.group(1))
        if qty > 0:
            return _measure_to_base(qty, m.group(2))

    c = _COUNT_RE.search(s)
    if c:
        return BaseQuantity(value=max(1.0, float(c.group(1))), base="each")

    if _DOZEN_RE.search(s):
        return BaseQuantity(value=12.0, base="each")

    return None


_ENHANCED_PATTERNS: list[tuple[re.Pattern, str]] = [
    (re.compile(r"(\d+(?:\.\d+)?)\s*floz\b"), "fl_oz"),
    (re.compile(r"(?:approx\.?\s*)?(\d+(?:\.\d+)?)\s*(?:lbs?|pounds?)\b"), "lb"),
    (re.compile(r"(\d+(?:\.\d+)?)\s*(?:oz|ounces?)\b"), "oz"),
    (re.compile(r"(\d+(?:\.\d+)?)\s*(?:kg|kilograms?)\b"), "kg"),
    (re.compile(r"(\d+(?:\.\d+)?)\s*(?:g|grams?)\b"), "g"),
    (re.compile(r"(\d+(?:\.\d+)?)\s*(?:ml|milliliters?|millilitres?)\b"), "ml"),
    (re.compile(r"(\d+(?:\.\d+)?)\s*(?:l|liters?|litres?)\b"), "l"),
    (re.compile(r"(\d+(?:\.\d+)?)\s*(?:whole|pieces?|each|items?)\b"), "each"),
    (re.compile(r"(\d+(?:\.\d+)?)\s*(?:count|ct)\b"), "each"),
]


def parse_enhanced_package_size(size: str | None) -> PackageAmount | None:
    """Lenient package-size parse for portion costing.

    Tries the known patterns in order, then "dozen", then any number (read
    as a count), and finally assumes a single item. Only empty input
    returns None.
    """
    if not size or not str(size).strip():
        return None
    s = _normalize_size_text(size).strip()

    for pattern, unit in _ENHANCED_PATTERNS:
        m = pattern.search(s)
        if m:
            return PackageAmount(amount=float(m.group(1)), unit=unit)

    if _DOZEN_RE.search(s):
        return PackageAmount(amount=12.0, unit="each")

    number = re.search(r"(\d+(?:\.\d+)?)", s)
    if number:
        return PackageAmount(amount=float(number.group(1)), unit="each")

    return PackageAmount(amount=1.0, unit="each")


def resolve_package(size: str | None, required_base: str) -> tuple[BaseQuantity, bool]:
    """Return the package size to price against, plus whether a heuristic fired.

    - Unparseable size: the default package for the required base unit
      (1 each for count requirements).
    - Count package against a weight/volume requirement: the default package.
    - Weight package against a volume requirement (or the reverse): bridged
      with water density.
    """
    pack = parse_size_to_base(size)
    if pack is not None and not math.isfinite(pack.value):
        pack = None

    if pack is None:
        if required_base == "each":
            resolved = BaseQuantity(value=1.0, base="each")
        else:
            resolved = BaseQuantity(value=config.DEFAULT_PACKAGE_SIZES[required_base], base=required_base)
        logger.debug(
            "Package size unparseable, using default",
            extra={"size": size, "base": resolved.base, "package_size": resolved.value},
        )
        return resolved, True

    if pack.base == "each" and required_base != "each":
        resolved = BaseQuantity(value=config.DEFAULT_PACKAGE_SIZES[required_base], base=required_base)
        logger.debug(
            "Count package for measured ingredient, using default",
            extra={"size": size, "base": resolved.base, "package_size": resolved.value},
        )
        return resolved, True

    if pack.base == "g" and required_base == "ml":
        return BaseQuantity(value=pack.value / MASS_PER_ML, base="ml"), True
    if pack.base == "ml" and required_base == "g":
        return BaseQuantity(value=pack.value * MASS_PER_ML, base="g"), True

    return pack, False
