"""Point-of-sale counter: invoices, returns and daily totals for one cashier."""

__version__ = "1.0.0"
