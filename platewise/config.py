import os

LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

# Price cache (JSON file, keyed by ingredient + location)
PRICE_CACHE_FILE = os.environ.get("PRICE_CACHE_FILE", "data/price_cache.json")
PRICE_CACHE_TTL_HOURS = float(os.environ.get("PRICE_CACHE_TTL_HOURS", 48))
PRICE_CACHE_STALE_HOURS = 168  # stale entries older than a week are ignored

# Package size assumed when a product's size string can't be used,
# keyed by base unit: 1 lb for weights, 1 US pint for volumes.
DEFAULT_PACKAGE_SIZES: dict[str, float] = {
    "g": 454,
    "ml": 473,
}

# Package-count override: a small requirement (in base units) that would
# need more than MAX_REASONABLE_PACKAGES packages almost always means the
# size string was misread, so a single package is charged instead.
MAX_REASONABLE_PACKAGES = 20
SMALL_REQUIREMENT_LIMIT = 2000

# A recipe is "budget friendly" at or under this cost per serving (USD).
BUDGET_FRIENDLY_PER_SERVING = 8.0

# Portion costing fallbacks
PORTION_FALLBACK_RATIO = 0.30   # package size unparseable
UNKNOWN_UNIT_RATIO = 0.25       # units can't be compared at all
DEFAULT_PACKAGE_PRICE = 5.0     # no package info for the ingredient
WHOLE_PORTION_RATIO = 0.95

# An alternative product counts as a saving when it costs less than this
# fraction of the chosen product's unit price.
CHEAPER_ALTERNATIVE_RATIO = 0.9

# Water-like ingredients that are still bought at the store.
FREE_INGREDIENT_EXCEPTIONS = [
    "coconut water",
    "rose water",
    "orange blossom",
    "tonic water",
    "sparkling water",
    "soda water",
]

# Dropped from consolidated shopping lists unless the caller overrides them.
DEFAULT_EXCLUDED_INGREDIENTS = ["water", "ice"]

PRICING_RATE_LIMIT = os.environ.get("PRICING_RATE_LIMIT", "30 per minute")
