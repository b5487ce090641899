from decimal import Decimal

APP_NAME = "POS Terminal"
STYLE_FILE = "resources/style.qss"

DATA_DIR = "data"
DB_FILE_NAME = "pos_terminal.db"

TABLE_SCHEMA_VERSION = "schema_version"
SCHEMA_VERSION = "1.0"

# ---- money ----
MONEY_QUANT = Decimal("0.01")
PAYMENT_TOLERANCE = Decimal("0.01")  # currency rounding slack for paid/partial

# ---- barcode intake ----
AUTO_SUBMIT_LENGTH = 13
BARCODE_SETTLE_MS = 50
MAX_BARCODE_RETRIES = 3
DECODED_BARCODE_MIN_LEN = 8
DECODED_BARCODE_MAX_LEN = 20

# ---- customer search ----
CUSTOMER_SEARCH_DELAY_MS = 300

# ---- daily totals ----
ROLLOVER_REBUILD_DELAY_MS = 1000
DEFAULT_REFRESH_INTERVAL_MIN = 0  # 0 = periodic refresh disabled

# ---- invoices ----
QUICK_INVOICE_PREFIX = "INV-"
WALK_IN_CUSTOMER = "Walk-in customer"
PAYMENT_METHODS = ("cash", "vodafone_cash", "insta_pay")
PAYMENT_METHOD_LABELS = {
    "cash": "Cash",
    "vodafone_cash": "Vodafone Cash",
    "insta_pay": "InstaPay",
}
