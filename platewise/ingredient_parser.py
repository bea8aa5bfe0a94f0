"""Ingredient line parsing with quantity extraction, categorization, and notes separation."""

import re
from dataclasses import dataclass

from platewise.matching import classify_category
from platewise.quantity import split_leading_quantity
from platewise.units import normalize_unit


@dataclass
class ParsedIngredient:
    """Structured ingredient data."""
    name: str
    amount: float
    unit: str
    category: str
    notes: str | None = None  # Preparation details like "melted and cooled"

    def to_dict(self) -> dict:
        result = {
            'name': self.name,
            'amount': self.amount,
            'unit': self.unit,
            'category': self.category,
        }
        if self.notes:
            result['notes'] = self.notes
        return result


class IngredientParser:
    """Parse ingredient strings into structured format."""

    # Common preparation words to separate from ingredient name
    PREPARATION_WORDS = [
        'chopped', 'diced', 'minced', 'sliced', 'shredded', 'grated',
        'melted', 'softened', 'cooled', 'room temperature', 'cold',
        'frozen', 'thawed', 'cooked', 'boiled', 'roasted', 'toasted',
        'crushed', 'fresh', 'dried', 'peeled', 'seeded', 'deveined',
        'trimmed', 'halved', 'quartered', 'cubed', 'julienned', 'blanched',
        'sifted', 'beaten', 'whisked', 'packed', 'divided', 'drained', 'rinsed',
        'plus more', 'or more', 'to taste', 'optional', 'for serving',
        'for garnish', 'if desired', 'as needed',
    ]

    # Notes that can trail the name without a comma: "salt to taste"
    TRAILING_NOTES = [
        'season to taste', 'to taste', 'for serving', 'for garnish',
        'if desired', 'as needed', 'optional',
    ]

    # Two-word units have to be tried before the single-word lookup
    _TWO_WORD_UNIT_RE = re.compile(r'^(fl\.?\s*oz|fluid\s+ounces?)\.?\s+', re.IGNORECASE)
    _WORD_RE = re.compile(r'^([A-Za-z]+)\.?(?:\s+|$)')
    _PAREN_MEASURE_RE = re.compile(r'\s*\([^)]*[\d¼½¾⅓⅔⅛⅜⅝⅞][^)]*\)')

    def parse(self, ingredient_str: str) -> ParsedIngredient:
        """Parse ingredient string into structured format.

        Examples:
            "1 1/2 cups all-purpose flour, sifted" → 1.5 cup flour, notes: "sifted"
            "¾ tsp salt" → 0.75 tsp salt
            "2 large eggs" → 2 each "large eggs"
            "salt to taste" → 1 each salt, notes: "to taste"
        """
        text = self._PAREN_MEASURE_RE.sub('', (ingredient_str or '').strip())

        amount, rest = split_leading_quantity(text)
        unit, after_unit = self._extract_unit(rest)
        # Without a quantity a unit word only counts before "of" ("cup of milk");
        # otherwise it belongs to the name ("whole milk")
        if amount is not None or re.match(r'of\s', after_unit, re.IGNORECASE):
            rest = after_unit
        else:
            unit = None
        rest = re.sub(r'^of\s+', '', rest, flags=re.IGNORECASE)

        name, notes = self._extract_name_and_notes(rest)

        return ParsedIngredient(
            name=name,
            amount=amount if amount is not None else 1.0,
            unit=unit or 'each',
            category=classify_category(name),
            notes=notes,
        )

    def _extract_unit(self, text: str) -> tuple[str | None, str]:
        """Pull a leading unit word off *text*: "cups flour" → ("cup", "flour")."""
        m = self._TWO_WORD_UNIT_RE.match(text)
        if m:
            return 'fl_oz', text[m.end():].strip()

        m = self._WORD_RE.match(text)
        if m:
            # Single letters are only units when followed by something ("1 c sugar")
            word = m.group(1)
            unit = normalize_unit(word)
            if unit and (len(word) > 1 or text[m.end():].strip()):
                return unit, text[m.end():].strip()
        return None, text

    def _extract_name_and_notes(self, text: str) -> tuple[str, str | None]:
        """Separate the ingredient name from preparation notes.

        Examples:
            "unsalted butter, melted and cooled" → ("unsalted butter", "melted and cooled")
            "onion - finely chopped" → ("onion", "finely chopped")
            "Lawry's Seasoned Salt season to taste" → ("Lawry's Seasoned Salt", "season to taste")
        """
        clean_text = text.strip()
        item = clean_text
        notes = None

        for sep in (',', ' - '):
            if sep in clean_text:
                potential_item, potential_notes = (p.strip() for p in clean_text.split(sep, 1))
                if any(word in potential_notes.lower() for word in self.PREPARATION_WORDS):
                    item = potential_item
                    notes = potential_notes.rstrip(')')
                    break

        if notes is None:
            lowered = clean_text.lower()
            for phrase in sorted(self.TRAILING_NOTES, key=len, reverse=True):
                idx = lowered.find(phrase)
                if idx > 0:  # Not at the very start
                    item = clean_text[:idx].strip().rstrip(',')
                    notes = clean_text[idx:].strip()
                    break

        # Remove trailing "and" or "or", and any stray parentheses or pipes
        item = re.sub(r'\s+(and|or)\s*$', '', item, flags=re.IGNORECASE)
        item = re.sub(r'[|()]', '', item).strip()

        return item, notes
