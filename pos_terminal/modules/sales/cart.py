"""
In-memory product index and the checkout cart.

ProductIndex is the session's local copy of the catalogue keyed by barcode.
Its stock numbers are an optimistic projection: checkout decrements them,
returns put units back, and a reload from the product store overwrites them.
"""
from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, Optional

from ...database.repositories.products_repo import Product
from ...utils.errors import ValidationError


class ProductIndex:
    def __init__(self, products: Iterable[Product] = ()):
        self._by_barcode: dict[str, Product] = {}
        self._by_id: dict[int, Product] = {}
        self.load(products)

    def load(self, products: Iterable[Product]) -> None:
        self._by_barcode.clear()
        self._by_id.clear()
        for p in products:
            self.add(p)

    def add(self, product: Product) -> None:
        if product.product_id is not None:
            self._by_id[product.product_id] = product
        if product.barcode:
            self._by_barcode[product.barcode] = product

    def get(self, barcode: str) -> Optional[Product]:
        return self._by_barcode.get((barcode or "").strip())

    def by_id(self, product_id: int) -> Optional[Product]:
        return self._by_id.get(product_id)

    def adjust_stock(self, product_id: int, delta: int) -> None:
        p = self._by_id.get(product_id)
        if p is None:
            return
        p.stock = int(p.stock) + int(delta)

    def __contains__(self, barcode) -> bool:
        return barcode in self._by_barcode

    def __len__(self) -> int:
        return len(self._by_id)


@dataclass
class CartLine:
    product_id: int
    name: str
    barcode: str | None
    unit_price: Decimal
    quantity: int = 1

    @property
    def line_total(self) -> Decimal:
        return self.unit_price * self.quantity


class Cart:
    """Ordered cart lines, one per product. Quantities never exceed known stock."""

    def __init__(self, index: Optional[ProductIndex] = None):
        self.index = index
        self._lines: list[CartLine] = []

    @property
    def lines(self) -> list[CartLine]:
        return list(self._lines)

    def is_empty(self) -> bool:
        return not self._lines

    def find(self, product_id: int) -> Optional[CartLine]:
        return next((ln for ln in self._lines if ln.product_id == product_id), None)

    def _stock_for(self, product_id: int, fallback: int | None) -> int | None:
        if self.index is not None:
            p = self.index.by_id(product_id)
            if p is not None:
                return p.stock
        return fallback

    def add_product(self, product: Product, quantity: int = 1) -> CartLine:
        """
        Add `quantity` units (bumps the existing line for the same product).
        Raises ValidationError when the product is out of stock or the cart
        would hold more than what is on hand.
        """
        stock = self._stock_for(product.product_id, product.stock)
        line = self.find(product.product_id)
        wanted = (line.quantity if line else 0) + int(quantity)
        if stock is not None and stock <= 0:
            raise ValidationError(f"{product.name} is out of stock.")
        if stock is not None and wanted > stock:
            raise ValidationError(
                f"Only {stock} of {product.name} in stock."
            )
        if line is None:
            line = CartLine(
                product_id=product.product_id,
                name=product.name,
                barcode=product.barcode,
                unit_price=product.sale_price,
                quantity=int(quantity),
            )
            self._lines.append(line)
        else:
            line.quantity = wanted
        return line

    def set_quantity(self, product_id: int, quantity: int) -> None:
        """quantity <= 0 removes the line."""
        line = self.find(product_id)
        if line is None:
            return
        quantity = int(quantity)
        if quantity <= 0:
            self.remove(product_id)
            return
        stock = self._stock_for(product_id, None)
        if stock is not None and quantity > stock:
            raise ValidationError(f"Only {stock} of {line.name} in stock.")
        line.quantity = quantity

    def remove(self, product_id: int) -> None:
        self._lines = [ln for ln in self._lines if ln.product_id != product_id]

    def clear(self) -> None:
        self._lines = []

    @property
    def total(self) -> Decimal:
        return sum((ln.line_total for ln in self._lines), Decimal("0"))

    @property
    def item_count(self) -> int:
        return sum(ln.quantity for ln in self._lines)
