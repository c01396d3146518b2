"""
Collection-page filter and sort state.

The same state can be sent to the API as query parameters or applied to
an already-fetched product list.
"""
from dataclasses import dataclass, field
from decimal import Decimal
from typing import FrozenSet, List, Optional

IN_STOCK = "in-stock"
OUT_OF_STOCK = "out-of-stock"

SORT_OPTIONS = ("newest", "price-asc", "price-desc", "name-asc")


def effective_price(product: dict) -> Decimal:
    price = product.get("discount_price")
    if price is None:
        price = product["price"]
    return Decimal(str(price))


def in_stock(product: dict) -> bool:
    return (product.get("stock") or 0) > 0


@dataclass(frozen=True)
class CatalogFilter:
    categories: FrozenSet[str] = field(default_factory=frozenset)
    min_price: Optional[Decimal] = None
    max_price: Optional[Decimal] = None
    availability: FrozenSet[str] = field(default_factory=frozenset)
    sort: str = "newest"

    def __post_init__(self):
        if self.sort not in SORT_OPTIONS:
            raise ValueError(f"Unknown sort option: {self.sort}")
        unknown = set(self.availability) - {IN_STOCK, OUT_OF_STOCK}
        if unknown:
            raise ValueError(f"Unknown availability: {', '.join(sorted(unknown))}")

    def toggle_category(self, category_id) -> "CatalogFilter":
        return self._toggle("categories", str(category_id))

    def toggle_availability(self, value: str) -> "CatalogFilter":
        return self._toggle("availability", value)

    def _toggle(self, name, value):
        current = getattr(self, name)
        updated = current - {value} if value in current else current | {value}
        return self._replace(**{name: frozenset(updated)})

    def with_price_range(self, min_price=None, max_price=None) -> "CatalogFilter":
        return self._replace(
            min_price=None if min_price is None else Decimal(str(min_price)),
            max_price=None if max_price is None else Decimal(str(max_price)),
        )

    def sorted_by(self, sort: str) -> "CatalogFilter":
        return self._replace(sort=sort)

    def _replace(self, **changes):
        values = {
            "categories": self.categories,
            "min_price": self.min_price,
            "max_price": self.max_price,
            "availability": self.availability,
            "sort": self.sort,
        }
        values.update(changes)
        return CatalogFilter(**values)

    def to_query_params(self) -> dict:
        params = {"ordering": self.sort}
        if self.categories:
            params["category"] = sorted(self.categories)
        if self.min_price is not None:
            params["min_price"] = str(self.min_price)
        if self.max_price is not None:
            params["max_price"] = str(self.max_price)
        if self.availability:
            params["availability"] = sorted(self.availability)
        return params

    def matches(self, product: dict) -> bool:
        price = effective_price(product)
        if self.min_price is not None and price < self.min_price:
            return False
        if self.max_price is not None and price > self.max_price:
            return False

        if self.categories and not self.categories & {str(c) for c in product.get("category_ids") or []}:
            return False

        if self.availability and self.availability != {IN_STOCK, OUT_OF_STOCK}:
            return in_stock(product) == (IN_STOCK in self.availability)
        return True

    def apply(self, products: List[dict]) -> List[dict]:
        result = [p for p in products if self.matches(p)]
        if self.sort == "price-asc":
            result.sort(key=effective_price)
        elif self.sort == "price-desc":
            result.sort(key=effective_price, reverse=True)
        elif self.sort == "name-asc":
            result.sort(key=lambda p: p["title"].lower())
        else:
            result.sort(key=lambda p: p.get("created_at") or "", reverse=True)
        return result


def availability_counts(products: List[dict]) -> dict:
    stocked = sum(1 for p in products if in_stock(p))
    return {"in_stock": stocked, "out_of_stock": len(products) - stocked}
