import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any


class RecipeLoadError(Exception):
    """Raised when recipes cannot be loaded from file."""
    pass


class InvalidRecipeError(Exception):
    """Raised when a recipe payload can't be priced."""
    pass


@dataclass
class RecipeIngredient:
    name: str
    amount: str | float = ""   # free text ("1 1/2", "¾") or a number
    unit: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "RecipeIngredient":
        if not isinstance(data, dict):
            raise InvalidRecipeError(f"Ingredient must be an object, got {type(data).__name__}")
        name = data.get("name") or data.get("item")
        if not name or not str(name).strip():
            raise InvalidRecipeError("Ingredient is missing a name")
        amount = data.get("amount", data.get("quantity", ""))
        return cls(
            name=str(name).strip(),
            amount="" if amount is None else amount,
            unit=str(data.get("unit") or ""),
        )

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "amount": self.amount, "unit": self.unit}


@dataclass
class Recipe:
    title: str
    servings: float
    ingredients: list[RecipeIngredient] = field(default_factory=list)
    id: str | None = None
    # Caller's original payload, echoed back untouched next to the pricing
    source: dict[str, Any] = field(default_factory=dict, repr=False)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Recipe":
        """Create a Recipe from a request payload.

        Servings may sit at the top level or under "metadata"; the title may
        be "title" or "name".
        """
        if not isinstance(data, dict):
            raise InvalidRecipeError(f"Recipe must be an object, got {type(data).__name__}")

        title = data.get("title") or data.get("name") or "Untitled recipe"

        servings = data.get("servings")
        if servings is None and isinstance(data.get("metadata"), dict):
            servings = data["metadata"].get("servings")
        if isinstance(servings, bool) or not isinstance(servings, (int, float)) or servings <= 0:
            raise InvalidRecipeError(f"Recipe '{title}' needs a positive number of servings")

        ingredients = data.get("ingredients")
        if not isinstance(ingredients, list):
            raise InvalidRecipeError(f"Recipe '{title}' is missing its ingredients list")

        return cls(
            title=str(title),
            servings=servings,
            ingredients=[RecipeIngredient.from_dict(i) for i in ingredients],
            id=data.get("id"),
            source=data,
        )


def load_recipes(file_path: Path | str) -> list[dict[str, Any]]:
    """Load raw recipe payloads from a JSON file.

    Accepts either a bare list or {"recipes": [...]}. Payloads are validated
    later, per recipe, so one bad recipe doesn't sink the whole file.
    """
    file_path = Path(file_path)

    if not file_path.exists():
        raise RecipeLoadError(f"Recipe file not found: {file_path}")

    try:
        with open(file_path) as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise RecipeLoadError(f"Invalid JSON in recipe file: {e}")

    if isinstance(data, list):
        return data
    if isinstance(data, dict) and isinstance(data.get("recipes"), list):
        return data["recipes"]
    raise RecipeLoadError("Recipe file must contain a list or a 'recipes' key")
