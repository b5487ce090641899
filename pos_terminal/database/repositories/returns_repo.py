from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable, Iterable

from ...modules.sales.ledger import ReturnLine, ReturnResult
from ...utils.errors import EmptyReturn, InvalidReturnQuantity, NotFoundError
from ...utils.validators import try_parse_int
from .base import SqliteRepo

_log = logging.getLogger(__name__)


class ReturnsRepo(SqliteRepo):
    """
    Append-only return store.

    create_return() re-checks every requested quantity against the lines as
    they are *now* in the database, inside the write transaction, so a client
    working from a stale read gets InvalidReturnQuantity instead of corrupting
    returned_quantity. Returned units go back into product stock.
    """

    def __init__(self, conn, now: Callable[[], datetime] = datetime.now):
        super().__init__(conn)
        self._now = now

    def create_return(self, invoice_id: int, lines: Iterable[ReturnLine]) -> ReturnResult:
        requested: dict = {}
        for ln in lines:
            ok, qty = try_parse_int(ln.quantity)
            if not ok or qty < 0:
                raise InvalidReturnQuantity(
                    f"Invalid return quantity {ln.quantity!r} for line {ln.line_item_id}.",
                    line_item_id=ln.line_item_id,
                    requested=ln.quantity,
                )
            if qty:
                requested[ln.line_item_id] = requested.get(ln.line_item_id, 0) + qty
        if not requested:
            raise EmptyReturn()

        created_at = self._now()
        stored: list[ReturnLine] = []
        with self._immediate_tx() as cur:
            if cur.execute(
                "SELECT 1 FROM invoices WHERE invoice_id = ?", (invoice_id,)
            ).fetchone() is None:
                raise NotFoundError(f"Invoice {invoice_id} not found.")

            current = {
                r["line_item_id"]: r
                for r in cur.execute(
                    "SELECT line_item_id, product_id, quantity, returned_quantity, unit_price "
                    "FROM invoice_items WHERE invoice_id = ?",
                    (invoice_id,),
                ).fetchall()
            }
            for line_item_id, qty in requested.items():
                row = current.get(line_item_id)
                if row is None:
                    raise InvalidReturnQuantity(
                        f"Line {line_item_id} does not belong to invoice {invoice_id}.",
                        line_item_id=line_item_id,
                        requested=qty,
                    )
                left = row["quantity"] - row["returned_quantity"]
                if qty > left:
                    raise InvalidReturnQuantity(
                        f"Cannot return {qty} of line {line_item_id}; only {left} left.",
                        line_item_id=line_item_id,
                        requested=qty,
                        max_returnable=left,
                    )

            cur.execute(
                "INSERT INTO sales_returns(invoice_id, created_at) VALUES (?, ?)",
                (invoice_id, created_at.isoformat(sep=" ")),
            )
            return_id = int(cur.lastrowid)
            for line_item_id, qty in requested.items():
                row = current[line_item_id]
                # trigger bumps invoice_items.returned_quantity
                cur.execute(
                    "INSERT INTO return_items(return_id, line_item_id, quantity, unit_price) "
                    "VALUES (?, ?, ?, ?)",
                    (return_id, line_item_id, qty, row["unit_price"]),
                )
                cur.execute(
                    "UPDATE products SET stock = stock + ? WHERE product_id = ?",
                    (qty, row["product_id"]),
                )
                stored.append(ReturnLine(line_item_id, qty, row["unit_price"]))

        result = ReturnResult(
            return_id=return_id, invoice_id=invoice_id, created_at=created_at, lines=stored
        )
        _log.info(
            "Return %s recorded on invoice %s (%s units, refund %s)",
            return_id, invoice_id, result.total_quantity, result.refund_amount,
        )
        return result
