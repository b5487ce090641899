from __future__ import annotations

import logging
import sqlite3
from datetime import datetime
from decimal import Decimal
from typing import Iterable, Optional

from ...modules.sales.ledger import Invoice, LineItem
from ...utils.errors import NotFoundError, ValidationError
from ...utils.helpers import to_decimal, to_money
from .base import SqliteRepo
from .contracts import InvoiceFilter, NewInvoice

_log = logging.getLogger(__name__)

_HEADER_COLS = (
    "invoice_id, invoice_number, created_at, cashier_id, customer_id, customer_name, "
    "phone, payment_method, total_amount, paid_amount, notes"
)
_ITEM_COLS = (
    "line_item_id, invoice_id, product_id, product_name, barcode, quantity, "
    "unit_price, returned_quantity"
)


def _ts(moment: datetime) -> str:
    return moment.isoformat(sep=" ")


class InvoicesRepo(SqliteRepo):
    """
    Invoice store.

    Key behavior:
      - total_amount and every line's quantity/unit_price are frozen at insert
        (schema triggers refuse later edits).
      - paid_amount only grows; record_payment refuses a lower value.
      - creating an invoice moves product stock down by the sold quantities.
      - status is never stored; Invoice.status derives it on read.
    """

    # ---------------------------------------------------------------- mapping
    def _items_for(self, invoice_ids: Iterable[int]) -> dict[int, list[LineItem]]:
        ids = list(invoice_ids)
        out: dict[int, list[LineItem]] = {i: [] for i in ids}
        if not ids:
            return out
        marks = ",".join("?" for _ in ids)
        rows = self._query(
            f"SELECT {_ITEM_COLS} FROM invoice_items "
            f"WHERE invoice_id IN ({marks}) ORDER BY line_item_id",
            ids,
        )
        for r in rows:
            out[r["invoice_id"]].append(
                LineItem(
                    line_item_id=r["line_item_id"],
                    product_id=r["product_id"],
                    quantity=r["quantity"],
                    unit_price=r["unit_price"],
                    returned_quantity=r["returned_quantity"],
                    product_name=r["product_name"] or "",
                    barcode=r["barcode"],
                )
            )
        return out

    @staticmethod
    def _header(r: sqlite3.Row, items: list[LineItem]) -> Invoice:
        return Invoice(
            invoice_id=r["invoice_id"],
            invoice_number=r["invoice_number"],
            created_at=datetime.fromisoformat(r["created_at"]),
            cashier_id=r["cashier_id"],
            total_amount=r["total_amount"],
            paid_amount=r["paid_amount"],
            payment_method=r["payment_method"],
            customer_id=r["customer_id"],
            customer_name=r["customer_name"],
            phone=r["phone"],
            notes=r["notes"],
            items=items,
        )

    def _hydrate(self, rows: list[sqlite3.Row]) -> list[Invoice]:
        items = self._items_for(r["invoice_id"] for r in rows)
        return [self._header(r, items[r["invoice_id"]]) for r in rows]

    # ------------------------------------------------------------------- READ
    def list_invoices(self, flt: Optional[InvoiceFilter] = None) -> list[Invoice]:
        """Newest first."""
        flt = flt or InvoiceFilter()
        where, params = [], []
        if flt.cashier_id is not None:
            where.append("cashier_id = ?")
            params.append(flt.cashier_id)
        if flt.customer_id is not None:
            where.append("customer_id = ?")
            params.append(flt.customer_id)
        if flt.invoice_id is not None:
            where.append("invoice_id = ?")
            params.append(flt.invoice_id)
        if flt.date_from is not None:
            where.append("created_at >= ?")
            params.append(_ts(flt.date_from))
        if flt.date_to is not None:
            where.append("created_at <= ?")
            params.append(_ts(flt.date_to))

        sql = f"SELECT {_HEADER_COLS} FROM invoices"
        if where:
            sql += " WHERE " + " AND ".join(where)
        sql += " ORDER BY created_at DESC, invoice_id DESC"
        if flt.limit:
            sql += " LIMIT ?"
            params.append(int(flt.limit))
        return self._hydrate(self._query(sql, params))

    def get(self, invoice_id: int) -> Invoice | None:
        found = self.list_invoices(InvoiceFilter(invoice_id=invoice_id))
        return found[0] if found else None

    def get_by_number(self, invoice_number: str) -> Invoice | None:
        rows = self._query(
            f"SELECT {_HEADER_COLS} FROM invoices WHERE invoice_number = ?",
            (invoice_number,),
        )
        found = self._hydrate(rows)
        return found[0] if found else None

    def number_exists(self, invoice_number: str) -> bool:
        return self._query_one(
            "SELECT 1 FROM invoices WHERE invoice_number = ?", (invoice_number,)
        ) is not None

    # ------------------------------------------------------------------ WRITE
    def create_invoice(self, payload: NewInvoice) -> Invoice:
        if not payload.lines:
            raise ValidationError("An invoice needs at least one line.")
        total = to_money(payload.total_amount)
        paid = to_decimal(payload.paid_amount)
        if paid < 0:
            raise ValidationError("Paid amount cannot be negative.")

        with self._immediate_tx() as cur:
            cur.execute(
                "INSERT INTO invoices(invoice_number, created_at, cashier_id, customer_id, "
                "customer_name, phone, payment_method, total_amount, paid_amount, notes) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    payload.invoice_number,
                    _ts(payload.created_at),
                    payload.cashier_id,
                    payload.customer_id,
                    payload.customer_name,
                    payload.phone,
                    payload.payment_method,
                    str(total),
                    str(paid),
                    payload.notes,
                ),
            )
            invoice_id = int(cur.lastrowid)
            for ln in payload.lines:
                cur.execute(
                    "INSERT INTO invoice_items(invoice_id, product_id, product_name, barcode, "
                    "quantity, unit_price) VALUES (?, ?, ?, ?, ?, ?)",
                    (
                        invoice_id,
                        ln.product_id,
                        ln.product_name,
                        ln.barcode,
                        int(ln.quantity),
                        str(to_money(ln.unit_price)),
                    ),
                )
                cur.execute(
                    "UPDATE products SET stock = stock - ? WHERE product_id = ?",
                    (int(ln.quantity), ln.product_id),
                )
        _log.info("Invoice %s stored (id=%s, total=%s)", payload.invoice_number, invoice_id, total)
        return self.get(invoice_id)

    def record_payment(self, invoice_id: int, new_paid_amount: Decimal) -> Invoice:
        new_paid = to_decimal(new_paid_amount)
        with self._immediate_tx() as cur:
            row = cur.execute(
                "SELECT paid_amount FROM invoices WHERE invoice_id = ?", (invoice_id,)
            ).fetchone()
            if row is None:
                raise NotFoundError(f"Invoice {invoice_id} not found.")
            if new_paid < to_decimal(row["paid_amount"]):
                raise ValidationError("Paid amount cannot decrease.")
            cur.execute(
                "UPDATE invoices SET paid_amount = ? WHERE invoice_id = ?",
                (str(new_paid), invoice_id),
            )
        return self.get(invoice_id)

    def delete_invoice(self, invoice_id: int) -> None:
        """
        Remove an invoice and put its sold stock back. Invoices that already
        have returns are refused, since return history is never deleted.
        """
        with self._immediate_tx() as cur:
            if cur.execute(
                "SELECT 1 FROM invoices WHERE invoice_id = ?", (invoice_id,)
            ).fetchone() is None:
                raise NotFoundError(f"Invoice {invoice_id} not found.")
            if cur.execute(
                "SELECT 1 FROM sales_returns WHERE invoice_id = ? LIMIT 1", (invoice_id,)
            ).fetchone() is not None:
                raise ValidationError("Invoices with recorded returns cannot be deleted.")
            for r in cur.execute(
                "SELECT product_id, quantity FROM invoice_items WHERE invoice_id = ?",
                (invoice_id,),
            ).fetchall():
                cur.execute(
                    "UPDATE products SET stock = stock + ? WHERE product_id = ?",
                    (r["quantity"], r["product_id"]),
                )
            cur.execute("DELETE FROM invoices WHERE invoice_id = ?", (invoice_id,))
        _log.info("Invoice %s deleted", invoice_id)
