from __future__ import annotations

import pytest

from komi.nlp.cache import clear_cache
from komi.recommendations.models import MenuCandidate, RestaurantRef


@pytest.fixture(autouse=True)
def _fresh_intent_cache():
    clear_cache()
    yield
    clear_cache()


@pytest.fixture
def make_item():
    def _make(
        item_id: str,
        name: str = "Dish",
        *,
        price: float = 10.0,
        cuisine: tuple[str, ...] = (),
        dietary: tuple[str, ...] = (),
        rating: float = 4.0,
        preparation_time: int = 20,
        distance: float | None = 1.0,
        description: str = "",
    ) -> MenuCandidate:
        return MenuCandidate(
            id=item_id,
            name=name,
            description=description,
            price=price,
            cuisine=cuisine,
            dietary=dietary,
            rating=rating,
            preparation_time=preparation_time,
            restaurant=RestaurantRef(id=f"r{item_id}", name=f"Restaurant {item_id}", distance=distance),
        )

    return _make
