"""
Client-side shopping cart.

Lines are keyed by product id and carry the stock level captured when the
product was added, so quantity checks happen locally without a round trip.
The server re-checks stock at checkout; the captured value only keeps the
cart from offering more than was available when the buyer last looked.
"""
import logging
from dataclasses import asdict, dataclass, replace
from decimal import Decimal
from typing import List, Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CartLine:
    product_id: str
    title: str
    price: Decimal
    quantity: int
    image: str = ""
    stock: int = 0

    @property
    def subtotal(self) -> Decimal:
        return self.price * self.quantity

    def to_dict(self) -> dict:
        data = asdict(self)
        data["price"] = str(self.price)
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "CartLine":
        return cls(
            product_id=str(data["product_id"]),
            title=str(data.get("title", "")),
            price=Decimal(str(data["price"])),
            quantity=int(data["quantity"]),
            image=str(data.get("image") or ""),
            stock=int(data.get("stock") or 0),
        )

    @classmethod
    def from_product(cls, product: dict, quantity: int = 1) -> "CartLine":
        """Builds a line from a ``/api/products`` payload."""
        price = product.get("discount_price")
        if price is None:
            price = product["price"]
        images = product.get("images") or []
        return cls(
            product_id=str(product["id"]),
            title=product["title"],
            price=Decimal(str(price)),
            quantity=quantity,
            image=images[0] if images else "",
            stock=int(product.get("stock") or 0),
        )


@dataclass(frozen=True)
class CartResult:
    success: bool
    message: str = ""


def _out_of_stock(stock: int) -> CartResult:
    return CartResult(False, f"Only {stock} items available in stock.")


class Cart:
    """
    Every mutation keeps ``1 <= quantity <= captured stock`` for each line
    and, when bound to a storage, persists the new state.
    """

    def __init__(self, lines: Optional[List[CartLine]] = None, storage=None):
        self.storage = storage
        if lines is None and storage is not None:
            lines = storage.load()
        self._lines = [line for line in (lines or []) if 1 <= line.quantity <= line.stock]

    @property
    def lines(self) -> List[CartLine]:
        return list(self._lines)

    def _find(self, product_id) -> Optional[int]:
        product_id = str(product_id)
        for index, line in enumerate(self._lines):
            if line.product_id == product_id:
                return index
        return None

    def _changed(self):
        if self.storage is not None:
            self.storage.save(self._lines)

    def add(self, line: CartLine) -> CartResult:
        """
        Merges with an existing line for the same product. The incoming
        line's stock is the fresher reading, so it replaces the captured one.
        """
        if line.quantity < 1:
            return CartResult(False, "Quantity must be at least 1.")

        index = self._find(line.product_id)
        if index is None:
            if line.quantity > line.stock:
                return _out_of_stock(line.stock)
            self._lines.append(line)
        else:
            existing = self._lines[index]
            new_quantity = existing.quantity + line.quantity
            if new_quantity > line.stock:
                return _out_of_stock(line.stock)
            self._lines[index] = replace(existing, quantity=new_quantity, stock=line.stock)

        self._changed()
        return CartResult(True)

    def remove(self, product_id):
        index = self._find(product_id)
        if index is not None:
            del self._lines[index]
            self._changed()

    def set_quantity(self, product_id, quantity: int):
        # Below 1 is ignored; removal is explicit.
        if quantity < 1:
            return
        index = self._find(product_id)
        if index is None:
            return
        line = self._lines[index]
        self._lines[index] = replace(line, quantity=min(quantity, line.stock))
        self._changed()

    def clear(self):
        self._lines = []
        self._changed()

    @property
    def total(self) -> Decimal:
        return sum((line.subtotal for line in self._lines), Decimal("0"))

    @property
    def count(self) -> int:
        return sum(line.quantity for line in self._lines)

    def is_empty(self) -> bool:
        return not self._lines

    def to_order_items(self) -> List[dict]:
        return [
            {
                "product_id": line.product_id,
                "quantity": line.quantity,
                "price": str(line.price),
                "title": line.title,
            }
            for line in self._lines
        ]

    def __len__(self):
        return len(self._lines)

    def __iter__(self):
        return iter(self.lines)
