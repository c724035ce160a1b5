from __future__ import annotations

import os
import threading
from pathlib import Path
from typing import Iterable, Protocol

import pandas as pd

from .models import MenuCandidate, RestaurantRef

_PROCESSED_DIR = Path(__file__).resolve().parent.parent / "data" / "processed"
_MENU_CSV = Path(os.getenv("MENU_DATA_PATH", str(_PROCESSED_DIR / "menu_items.csv")))


class MenuRepository(Protocol):
    """Read-only access to the menu corpus."""

    def list_items(self) -> list[MenuCandidate]: ...

    def get_item(self, item_id: str) -> MenuCandidate | None: ...


def _split_tags(value: object) -> tuple[str, ...]:
    if not isinstance(value, str):
        return ()
    return tuple(t.strip().lower() for t in value.split(",") if t.strip())


def _optional(value: object) -> object | None:
    return None if pd.isna(value) else value


def _row_to_candidate(row: pd.Series) -> MenuCandidate:
    return MenuCandidate(
        id=str(row["id"]),
        name=row["name"],
        description=row["description"] if pd.notna(row["description"]) else "",
        price=float(row["price"]),
        cuisine=_split_tags(row["cuisine"]),
        dietary=_split_tags(row["dietary"]),
        spice_level=_optional(row["spice_level"]),
        rating=float(row["rating"]) if pd.notna(row["rating"]) else 0.0,
        preparation_time=int(row["preparation_time"]) if pd.notna(row["preparation_time"]) else 0,
        restaurant=RestaurantRef(
            id=str(row["restaurant_id"]),
            name=row["restaurant_name"],
            distance=_optional(row["restaurant_distance"]),
            delivery_fee=float(row["delivery_fee"]) if pd.notna(row["delivery_fee"]) else 0.0,
        ),
    )


class InMemoryMenuRepository:
    def __init__(self, items: Iterable[MenuCandidate]) -> None:
        self._items = tuple(items)
        self._by_id = {item.id: item for item in self._items}

    def list_items(self) -> list[MenuCandidate]:
        return list(self._items)

    def get_item(self, item_id: str) -> MenuCandidate | None:
        return self._by_id.get(item_id)


class CsvMenuRepository:
    """Menu corpus backed by a CSV file, loaded on first use."""

    def __init__(self, path: Path = _MENU_CSV) -> None:
        self.path = path
        self._loaded: InMemoryMenuRepository | None = None
        self._lock = threading.Lock()

    def _load(self) -> InMemoryMenuRepository:
        df = pd.read_csv(self.path, dtype={"id": str, "restaurant_id": str})
        return InMemoryMenuRepository(_row_to_candidate(row) for _, row in df.iterrows())

    def _repository(self) -> InMemoryMenuRepository:
        with self._lock:
            if self._loaded is None:
                self._loaded = self._load()
            return self._loaded

    def list_items(self) -> list[MenuCandidate]:
        return self._repository().list_items()

    def get_item(self, item_id: str) -> MenuCandidate | None:
        return self._repository().get_item(item_id)


_default_repository = CsvMenuRepository()


def get_repository() -> MenuRepository:
    """Return the process-wide menu repository."""
    return _default_repository
