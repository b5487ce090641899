from pathlib import Path
import sqlite3
import sys

SQL = r"""
PRAGMA foreign_keys = ON;

/* ======================== CORE TABLES ======================== */

/* -------- customers -------- */
CREATE TABLE IF NOT EXISTS customers (
    customer_id  INTEGER PRIMARY KEY AUTOINCREMENT,
    name         TEXT NOT NULL,
    phone        TEXT,
    address      TEXT,
    created_at   TEXT NOT NULL DEFAULT (datetime('now','localtime'))
);
CREATE UNIQUE INDEX IF NOT EXISTS idx_customers_phone
ON customers(phone) WHERE phone IS NOT NULL AND phone <> '';

/* -------- products -------- */
/* money as TEXT so Decimal round-trips exactly */
CREATE TABLE IF NOT EXISTS products (
    product_id   INTEGER PRIMARY KEY AUTOINCREMENT,
    name         TEXT NOT NULL,
    barcode      TEXT UNIQUE,
    category     TEXT,
    sale_price   TEXT NOT NULL DEFAULT '0.00',
    stock        INTEGER NOT NULL DEFAULT 0
);

/* ======================== INVOICES ======================== */

CREATE TABLE IF NOT EXISTS invoices (
    invoice_id      INTEGER PRIMARY KEY AUTOINCREMENT,
    invoice_number  TEXT NOT NULL UNIQUE,
    created_at      TEXT NOT NULL,              /* local time, ISO 8601 */
    cashier_id      INTEGER NOT NULL,
    customer_id     INTEGER,
    customer_name   TEXT,
    phone           TEXT,
    payment_method  TEXT NOT NULL DEFAULT 'cash'
                    CHECK (payment_method IN ('cash','vodafone_cash','insta_pay')),
    total_amount    TEXT NOT NULL,
    paid_amount     TEXT NOT NULL DEFAULT '0.00',
    notes           TEXT,
    FOREIGN KEY (customer_id) REFERENCES customers(customer_id)
);
CREATE INDEX IF NOT EXISTS idx_invoices_cashier_created
ON invoices(cashier_id, created_at);

CREATE TABLE IF NOT EXISTS invoice_items (
    line_item_id       INTEGER PRIMARY KEY AUTOINCREMENT,
    invoice_id         INTEGER NOT NULL,
    product_id         INTEGER NOT NULL,
    product_name       TEXT NOT NULL DEFAULT '',
    barcode            TEXT,
    quantity           INTEGER NOT NULL CHECK (quantity > 0),
    unit_price         TEXT NOT NULL,
    returned_quantity  INTEGER NOT NULL DEFAULT 0
                       CHECK (returned_quantity >= 0 AND returned_quantity <= quantity),
    FOREIGN KEY (invoice_id) REFERENCES invoices(invoice_id) ON DELETE CASCADE,
    FOREIGN KEY (product_id) REFERENCES products(product_id)
);
CREATE INDEX IF NOT EXISTS idx_invoice_items_invoice ON invoice_items(invoice_id);

/* ======================== RETURNS (append-only) ======================== */

CREATE TABLE IF NOT EXISTS sales_returns (
    return_id    INTEGER PRIMARY KEY AUTOINCREMENT,
    invoice_id   INTEGER NOT NULL,
    created_at   TEXT NOT NULL,
    FOREIGN KEY (invoice_id) REFERENCES invoices(invoice_id) ON DELETE CASCADE
);

CREATE TABLE IF NOT EXISTS return_items (
    return_item_id  INTEGER PRIMARY KEY AUTOINCREMENT,
    return_id       INTEGER NOT NULL,
    line_item_id    INTEGER NOT NULL,
    quantity        INTEGER NOT NULL CHECK (quantity > 0),
    unit_price      TEXT NOT NULL,
    FOREIGN KEY (return_id) REFERENCES sales_returns(return_id) ON DELETE CASCADE,
    FOREIGN KEY (line_item_id) REFERENCES invoice_items(line_item_id) ON DELETE CASCADE
);

/* ======================== INTEGRITY TRIGGERS ======================== */

/* returned_quantity only grows and never passes quantity */
DROP TRIGGER IF EXISTS trg_invoice_items_returned_guard;
CREATE TRIGGER trg_invoice_items_returned_guard
BEFORE UPDATE OF returned_quantity ON invoice_items
FOR EACH ROW
BEGIN
  SELECT CASE
    WHEN NEW.returned_quantity < OLD.returned_quantity
    THEN RAISE(ABORT, 'returned_quantity cannot decrease')
    WHEN NEW.returned_quantity > NEW.quantity
    THEN RAISE(ABORT, 'returned_quantity cannot exceed quantity')
    ELSE 1
  END;
END;

/* sold quantity and price are frozen at sale time */
DROP TRIGGER IF EXISTS trg_invoice_items_frozen;
CREATE TRIGGER trg_invoice_items_frozen
BEFORE UPDATE OF quantity, unit_price, product_id ON invoice_items
FOR EACH ROW
BEGIN
  SELECT RAISE(ABORT, 'invoice lines are immutable');
END;

/* return history is append-only */
DROP TRIGGER IF EXISTS trg_return_items_no_update;
CREATE TRIGGER trg_return_items_no_update
BEFORE UPDATE ON return_items
FOR EACH ROW
BEGIN
  SELECT RAISE(ABORT, 'return history is append-only');
END;

DROP TRIGGER IF EXISTS trg_return_items_bump_line;
CREATE TRIGGER trg_return_items_bump_line
AFTER INSERT ON return_items
FOR EACH ROW
BEGIN
  UPDATE invoice_items
     SET returned_quantity = returned_quantity + NEW.quantity
   WHERE line_item_id = NEW.line_item_id;
END;

/* total_amount is immutable after creation */
DROP TRIGGER IF EXISTS trg_invoices_total_frozen;
CREATE TRIGGER trg_invoices_total_frozen
BEFORE UPDATE OF total_amount ON invoices
FOR EACH ROW
WHEN NEW.total_amount <> OLD.total_amount
BEGIN
  SELECT RAISE(ABORT, 'invoice total is immutable');
END;
"""


def apply_schema(conn: sqlite3.Connection) -> None:
    """Apply the (idempotent) schema on an open connection."""
    conn.executescript(SQL)


def init_schema(db_path: Path | str) -> None:
    db_path = Path(db_path)
    db_path.parent.mkdir(parents=True, exist_ok=True)
    with sqlite3.connect(db_path) as conn:
        conn.execute("PRAGMA journal_mode=WAL;")
        apply_schema(conn)
        conn.commit()


if __name__ == "__main__":
    target = sys.argv[1] if len(sys.argv) > 1 else Path(__file__).resolve().parents[1] / "data" / "pos_terminal.db"
    init_schema(target)
