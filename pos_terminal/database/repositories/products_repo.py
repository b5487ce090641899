# pos_terminal/database/repositories/products_repo.py
from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from ...utils.errors import ValidationError
from ...utils.helpers import to_money
from ...utils.validators import non_empty
from .base import SqliteRepo


@dataclass
class Product:
    product_id: int | None
    name: str
    barcode: str | None
    sale_price: Decimal
    stock: int = 0
    category: str | None = None

    def __post_init__(self):
        self.sale_price = to_money(self.sale_price)
        self.stock = int(self.stock or 0)


_COLS = "product_id, name, barcode, sale_price, stock, category"


class ProductsRepo(SqliteRepo):
    # ---------------------------- Products ----------------------------

    def list_products(self) -> list[Product]:
        rows = self._query(f"SELECT {_COLS} FROM products ORDER BY product_id DESC")
        return [Product(**r) for r in rows]

    def get(self, product_id: int) -> Product | None:
        r = self._query_one(f"SELECT {_COLS} FROM products WHERE product_id=?", (product_id,))
        return Product(**r) if r else None

    def find_by_barcode(self, code: str) -> Optional[Product]:
        code = (code or "").strip()
        if not code:
            return None
        r = self._query_one(f"SELECT {_COLS} FROM products WHERE barcode=?", (code,))
        return Product(**r) if r else None

    def create(
        self,
        name: str,
        barcode: str | None,
        sale_price,
        stock: int = 0,
        category: str | None = None,
    ) -> Product:
        if not non_empty(name):
            raise ValidationError("Product name cannot be empty.")
        price = to_money(sale_price)
        if price < 0:
            raise ValidationError("Sale price cannot be negative.")
        barcode = (barcode or "").strip() or None
        with self._immediate_tx() as cur:
            cur.execute(
                "INSERT INTO products(name, barcode, sale_price, stock, category) "
                "VALUES (?, ?, ?, ?, ?)",
                (name.strip(), barcode, str(price), int(stock), category),
            )
            pid = int(cur.lastrowid)
        return self.get(pid)
