"""Pytest configuration and shared builders."""

from datetime import datetime, timedelta, timezone

from platewise.matching import Product
from platewise.recipes import Recipe


def create_test_recipe(
    title: str = "Test Recipe",
    servings: int = 4,
    ingredients: list | None = None,
    recipe_id: str | None = None,
) -> Recipe:
    """Helper to create a test Recipe from plain ingredient dicts."""
    return Recipe.from_dict({
        "id": recipe_id,
        "title": title,
        "servings": servings,
        "ingredients": ingredients or [],
    })


def create_test_product(
    description: str,
    size: str | None = None,
    price=None,
    product_id: str | None = None,
    brand: str = "",
    categories: list | None = None,
    stock_level: str = "HIGH",
) -> Product:
    """Helper to create a test Product."""
    return Product(
        description=description,
        size=size,
        price=price,
        product_id=product_id,
        brand=brand,
        categories=categories or [],
        stock_level=stock_level,
    )


class FakeClock:
    """Callable clock for the price cache; advance() moves time forward."""

    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, hours: float) -> None:
        self.now += timedelta(hours=hours)
