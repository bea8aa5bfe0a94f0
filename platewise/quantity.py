"""Quantity text parsing: mixed numbers, fractions and Unicode vulgar fractions."""

import math
import re

VULGAR_FRACTIONS: dict[str, str] = {
    '¼': '1/4', '½': '1/2', '¾': '3/4',
    '⅐': '1/7', '⅑': '1/9', '⅒': '1/10',
    '⅓': '1/3', '⅔': '2/3',
    '⅕': '1/5', '⅖': '2/5', '⅗': '3/5', '⅘': '4/5',
    '⅙': '1/6', '⅚': '5/6',
    '⅛': '1/8', '⅜': '3/8', '⅝': '5/8', '⅞': '7/8',
}

_VULGAR_CHARS = ''.join(VULGAR_FRACTIONS)

_MIXED_RE = re.compile(r'^(\d+)(?:\s+|\s*-\s*)(\d+)\s*/\s*(\d+)$')
_FRACTION_RE = re.compile(r'^(\d+)\s*/\s*(\d+)$')
_DECIMAL_PREFIX_RE = re.compile(r'^[+-]?(?:\d+\.?\d*|\.\d+)')

# Leading quantity of a free-text line: mixed number, fraction or decimal,
# optionally followed by a range tail ("2-3", "2 to 3") which is dropped
_LEADING_QUANTITY_RE = re.compile(
    r'^\s*(\d+(?:\s+|\s*-\s*)\d+\s*/\s*\d+|\d+\s*/\s*\d+|\d+(?:\.\d+)?|\.\d+)'
    r'(?:\s*(?:-|–|to)\s*\d+(?:\.\d+)?)?'
    r'(?=$|[^\d/])'
)


def normalize_vulgar_fractions(text: str) -> str:
    """Replace Unicode fraction characters with ASCII ``n/d``.

    A fraction glued to a whole number gets a space so it reads as a mixed
    number: ``"1½"`` -> ``"1 1/2"`` (not ``"11/2"``).
    """
    if not text:
        return ''
    s = str(text).replace('⁄', '/')
    if not any(c in s for c in _VULGAR_CHARS):
        return s

    out = []
    for i, ch in enumerate(s):
        frac = VULGAR_FRACTIONS.get(ch)
        if frac is None:
            out.append(ch)
            continue
        if i > 0 and s[i - 1].isdigit():
            out.append(' ')
        out.append(frac)
    return ''.join(out)


def parse_mixed_number(value) -> float:
    """Parse a recipe quantity into a float.

    Handles "1 1/2", "1-1/2", "3/4", "¾", "1½" and plain decimals. Anything
    else is read by its leading decimal prefix ("2-3" -> 2.0, "12 oz" -> 12.0).
    Unparseable, infinite or out-of-range input returns 0.0.
    """
    try:
        number = _parse_number(value)
    except (OverflowError, ValueError):
        return 0.0
    return number if math.isfinite(number) else 0.0


def _parse_number(value) -> float:
    if value is None or isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        return float(value)

    t = normalize_vulgar_fractions(str(value)).strip()
    if not t:
        return 0.0

    m = _MIXED_RE.match(t)
    if m:
        whole, num, denom = (int(g) for g in m.groups())
        if denom == 0:
            return 0.0
        return whole + num / denom

    f = _FRACTION_RE.match(t)
    if f:
        num, denom = int(f.group(1)), int(f.group(2))
        if denom == 0:
            return 0.0
        return num / denom

    n = _DECIMAL_PREFIX_RE.match(t)
    if n:
        return float(n.group(0))
    return 0.0


def split_leading_quantity(text: str) -> tuple[float | None, str]:
    """Split "1 1/2 cups flour" into (1.5, "cups flour").

    Returns (None, text) when the line doesn't start with a quantity.
    """
    normalized = normalize_vulgar_fractions(text or '')
    m = _LEADING_QUANTITY_RE.match(normalized)
    if not m:
        return None, normalized.strip()
    return parse_mixed_number(m.group(1)), normalized[m.end():].strip()
