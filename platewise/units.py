"""Unit aliases and conversion to base units.

Every quantity is normalised into one of three base units before prices are
compared: grams for mass, milliliters for volume, and "each" for counts.
"""

from dataclasses import dataclass

BASE_UNITS = ("g", "ml", "each")

# Water density, used only to bridge a mass requirement and a volume
# package (or vice versa) when nothing better is known.
MASS_PER_ML = 1.0

# ---------------------------------------------------------------------------
# Unit conversion tables
# Volume units are expressed in ml; weight units in grams.
# ---------------------------------------------------------------------------

_VOLUME_TO_ML: dict[str, float] = {
    "ml": 1,
    "l": 1000,
    "tsp": 4.92892,
    "tbsp": 14.7868,
    "fl_oz": 29.5735,
    "cup": 236.588,
    "pint": 473.176,
    "quart": 946.353,
    "gallon": 3785.41,
}

_WEIGHT_TO_G: dict[str, float] = {
    "g": 1,
    "kg": 1000,
    "oz": 28.3495,
    "lb": 453.592,
}

UNIT_ALIASES: dict[str, str] = {
    # volume
    "teaspoon": "tsp", "teaspoons": "tsp", "tsp": "tsp", "tsps": "tsp", "t": "tsp",
    "tablespoon": "tbsp", "tablespoons": "tbsp", "tbsp": "tbsp", "tbsps": "tbsp",
    "tbs": "tbsp", "tbl": "tbsp",
    "cup": "cup", "cups": "cup", "c": "cup",
    "fl oz": "fl_oz", "fl_oz": "fl_oz", "floz": "fl_oz", "fl. oz": "fl_oz",
    "fluid ounce": "fl_oz", "fluid ounces": "fl_oz",
    "pint": "pint", "pints": "pint", "pt": "pint",
    "quart": "quart", "quarts": "quart", "qt": "quart",
    "gallon": "gallon", "gallons": "gallon", "gal": "gallon",
    "milliliter": "ml", "milliliters": "ml", "millilitre": "ml", "millilitres": "ml", "ml": "ml",
    "liter": "l", "liters": "l", "litre": "l", "litres": "l", "l": "l",
    # weight
    "gram": "g", "grams": "g", "g": "g", "gr": "g",
    "kilogram": "kg", "kilograms": "kg", "kg": "kg", "kilo": "kg", "kilos": "kg",
    "ounce": "oz", "ounces": "oz", "oz": "oz",
    "pound": "lb", "pounds": "lb", "lb": "lb", "lbs": "lb",
    # count
    "each": "each", "ea": "each", "unit": "each", "units": "each",
    "piece": "each", "pieces": "each", "pc": "each", "pcs": "each",
    "ct": "each", "count": "each", "whole": "each", "item": "each", "items": "each",
    "clove": "each", "cloves": "each",
    "slice": "each", "slices": "each",
    "can": "each", "cans": "each",
    "package": "each", "packages": "each", "pkg": "each",
    "head": "each", "heads": "each",
    "bunch": "each", "bunches": "each",
    "stalk": "each", "stalks": "each",
    "sprig": "each", "sprigs": "each",
}


@dataclass(frozen=True)
class BaseQuantity:
    """A quantity expressed in one of BASE_UNITS."""
    value: float
    base: str


def normalize_unit(unit: str | None) -> str | None:
    """Return the canonical unit for *unit*, or None if it isn't recognised.

    "T" is the one case-sensitive alias (tablespoon vs "t" teaspoon).
    """
    if not unit:
        return None
    stripped = str(unit).strip()
    if stripped == "T":
        return "tbsp"
    key = stripped.lower().rstrip(".").strip()
    if key in UNIT_ALIASES:
        return UNIT_ALIASES[key]
    # Handle plural forms not in the alias table
    if key.endswith("s") and key[:-1] in UNIT_ALIASES:
        return UNIT_ALIASES[key[:-1]]
    return None


def unit_family(unit: str | None) -> str | None:
    """Return the base unit ("g", "ml" or "each") that *unit* converts into."""
    canonical = normalize_unit(unit)
    if canonical is None:
        return None
    if canonical in _VOLUME_TO_ML:
        return "ml"
    if canonical in _WEIGHT_TO_G:
        return "g"
    return "each"


def _factor(canonical: str) -> tuple[str, float]:
    if canonical in _VOLUME_TO_ML:
        return "ml", _VOLUME_TO_ML[canonical]
    if canonical in _WEIGHT_TO_G:
        return "g", _WEIGHT_TO_G[canonical]
    return "each", 1.0


def to_base_units(amount: float, unit: str | None) -> BaseQuantity:
    """Convert *amount* of *unit* into its base unit.

    Unknown or empty units are treated as a count ("each") with the amount
    unchanged.
    """
    canonical = normalize_unit(unit)
    if canonical is None:
        return BaseQuantity(value=amount, base="each")
    base, factor = _factor(canonical)
    return BaseQuantity(value=amount * factor, base=base)


def from_base_units(value: float, base: str, unit: str) -> float | None:
    """Inverse of to_base_units: express a base quantity in *unit*."""
    canonical = normalize_unit(unit)
    if canonical is None:
        return None
    unit_base, factor = _factor(canonical)
    if unit_base != base:
        return None
    return value / factor


def convert(amount: float, from_unit: str, to_unit: str) -> float | None:
    """Convert between two units of the same family.

    Returns None when either unit is unknown or the families differ
    (e.g. cups to grams).
    """
    if from_unit == to_unit:
        return amount
    source = normalize_unit(from_unit)
    target = normalize_unit(to_unit)
    if source is None or target is None:
        return None
    source_base, source_factor = _factor(source)
    target_base, target_factor = _factor(target)
    if source_base != target_base:
        return None
    return amount * source_factor / target_factor


def _best_volume_unit(total_ml: float) -> tuple[float, str]:
    """Return (quantity, unit) in the most readable volume unit for total_ml."""
    if total_ml >= 1000:
        return total_ml / 1000, "l"
    if total_ml >= 59.1471:   # ≥ ¼ cup (4 tbsp), prefer cups over a pile of tbsp
        return total_ml / 236.588, "cup"
    if total_ml >= 14.7868:   # ≥ 1 tbsp
        return total_ml / 14.7868, "tbsp"
    return total_ml / 4.92892, "tsp"


def _best_weight_unit(total_g: float) -> tuple[float, str]:
    """Return (quantity, unit) in the most readable weight unit for total_g."""
    if total_g >= 1000:
        return total_g / 1000, "kg"
    if total_g >= 453.592:    # ≥ 1 lb
        return total_g / 453.592, "lb"
    if total_g >= 28.3495:    # ≥ 1 oz
        return total_g / 28.3495, "oz"
    return total_g, "g"


def humanize(value: float, base: str) -> tuple[float, str]:
    """Express a base quantity in the most readable display unit."""
    if base == "ml":
        return _best_volume_unit(value)
    if base == "g":
        return _best_weight_unit(value)
    return value, "each"
