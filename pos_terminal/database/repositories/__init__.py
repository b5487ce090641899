# database/repositories/__init__.py
"""
Repository layer public API.

Usage:
    from pos_terminal.database.repositories import (
        # Contracts
        InvoiceStore, ReturnStore, ProductLookup,
        InvoiceFilter, NewInvoice, NewInvoiceLine,
        # SQLite implementations
        InvoicesRepo, ReturnsRepo, ProductsRepo, Product, CustomersRepo, Customer,
    )
"""

# ---------------- Contracts ----------------
from .contracts import (
    InvoiceFilter,
    InvoiceStore,
    NewInvoice,
    NewInvoiceLine,
    ProductLookup,
    ReturnStore,
)

# ---------------- Customers ----------------
from .customers_repo import Customer, CustomersRepo

# ---------------- Invoices / Returns ----------------
from .invoices_repo import InvoicesRepo
from .returns_repo import ReturnsRepo

# ---------------- Products ----------------
from .products_repo import Product, ProductsRepo

__all__ = [
    "InvoiceFilter",
    "InvoiceStore",
    "NewInvoice",
    "NewInvoiceLine",
    "ProductLookup",
    "ReturnStore",
    "Customer",
    "CustomersRepo",
    "InvoicesRepo",
    "ReturnsRepo",
    "Product",
    "ProductsRepo",
]
