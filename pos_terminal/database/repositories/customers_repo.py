from __future__ import annotations

from dataclasses import dataclass

from ...utils.errors import ValidationError
from ...utils.validators import is_valid_phone
from .base import SqliteRepo


@dataclass
class Customer:
    customer_id: int | None
    name: str
    phone: str | None = None
    address: str | None = None


class CustomersRepo(SqliteRepo):
    # ---- Internal helpers -------------------------------------------------

    @staticmethod
    def _normalize_text(s: str | None) -> str | None:
        if s is None:
            return None
        return s.strip()

    @staticmethod
    def _ensure_non_empty(value: str | None, field_label: str) -> None:
        if value is None or value.strip() == "":
            raise ValidationError(f"{field_label} cannot be empty.")

    # ---- Queries ----------------------------------------------------------

    def get(self, customer_id: int) -> Customer | None:
        r = self._query_one(
            "SELECT customer_id, name, phone, address FROM customers WHERE customer_id=?",
            (customer_id,),
        )
        return Customer(**r) if r else None

    def search(self, term: str, limit: int = 20) -> list[Customer]:
        """
        Case-insensitive match on name or phone. An empty term returns
        nothing; the search box only queries once the cashier types.
        """
        term = (term or "").strip()
        if not term:
            return []
        like = f"%{term}%"
        rows = self._query(
            "SELECT customer_id, name, phone, address "
            "FROM customers "
            "WHERE name LIKE ? COLLATE NOCASE OR phone LIKE ? "
            "ORDER BY name COLLATE NOCASE "
            "LIMIT ?",
            (like, like, int(limit)),
        )
        return [Customer(**r) for r in rows]

    # ---- Commands ---------------------------------------------------------

    def create(self, name: str, phone: str | None = None, address: str | None = None) -> Customer:
        name = self._normalize_text(name)
        phone = self._normalize_text(phone) or None
        self._ensure_non_empty(name, "Customer name")
        if not is_valid_phone(phone):
            raise ValidationError(
                "Phone must be 11 digits starting with 010, 011, 012 or 015."
            )
        with self._immediate_tx() as cur:
            cur.execute(
                "INSERT INTO customers(name, phone, address) VALUES (?, ?, ?)",
                (name, phone, self._normalize_text(address)),
            )
            cid = int(cur.lastrowid)
        return self.get(cid)
