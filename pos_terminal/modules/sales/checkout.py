"""
Checkout and the other money-moving actions of a cashier session.

Every action validates first, then calls the store, then updates local
projections (daily totals, in-memory stock). Nothing here retries a store
call; a NetworkError propagates and the cashier resubmits. While one action
is in flight `busy` is set and a second submit is ignored.
"""
from __future__ import annotations

import logging
import random
import time
from contextlib import contextmanager
from datetime import datetime
from decimal import Decimal
from typing import Callable, Iterable, Mapping, Optional

from ...constants import PAYMENT_METHODS, QUICK_INVOICE_PREFIX, WALK_IN_CUSTOMER
from ...database.repositories.contracts import (
    InvoiceStore,
    NewInvoice,
    NewInvoiceLine,
    ReturnStore,
)
from ...database.repositories.customers_repo import Customer
from ...utils.errors import EmptyCart, ValidationError
from ...utils.helpers import to_money
from ...utils.validators import is_valid_phone
from ..payments.calculations import project_after_payment
from .cart import CartLine, ProductIndex
from .daily_totals import DailyAggregateEngine
from .ledger import Invoice
from .returns import ReturnOutcome, apply_return, validate_return

_log = logging.getLogger(__name__)

_NUMBER_ATTEMPTS = 5


def quick_invoice_number(now: Optional[datetime] = None, rng=random) -> str:
    """INV-YYYYMMDD-NNNN with a random 4-digit suffix."""
    now = now or datetime.now()
    return f"{QUICK_INVOICE_PREFIX}{now:%Y%m%d}-{rng.randint(0, 9999):04d}"


def formal_invoice_number(epoch_ms: Optional[int] = None) -> str:
    """INV- plus the last six digits of the epoch milliseconds."""
    ms = int(epoch_ms if epoch_ms is not None else time.time() * 1000)
    return f"{QUICK_INVOICE_PREFIX}{str(ms)[-6:]}"


class CheckoutService:
    def __init__(
        self,
        cashier_id: int,
        invoices: InvoiceStore,
        returns: Optional[ReturnStore],
        aggregate: DailyAggregateEngine,
        index: Optional[ProductIndex] = None,
        *,
        now: Callable[[], datetime] = datetime.now,
    ):
        self.cashier_id = cashier_id
        self.invoices = invoices
        self.returns = returns
        self.aggregate = aggregate
        self.index = index if index is not None else ProductIndex()
        self._now = now
        self._busy = False

    @property
    def busy(self) -> bool:
        return self._busy

    @contextmanager
    def _in_flight(self):
        self._busy = True
        try:
            yield
        finally:
            self._busy = False

    def _ignore_reentry(self, action: str) -> bool:
        if self._busy:
            _log.warning("Ignoring %s while another request is in flight", action)
            return True
        return False

    # ------------------------------------------------------------ helpers
    def _unique_number(self, make: Callable[[], str]) -> str:
        exists = getattr(self.invoices, "number_exists", None)
        number = make()
        for _ in range(_NUMBER_ATTEMPTS):
            if exists is None or not exists(number):
                return number
            number = make()
        return number  # the store's UNIQUE constraint has the final word

    @staticmethod
    def _payload_lines(cart_lines: Iterable[CartLine]) -> list[NewInvoiceLine]:
        lines = []
        for ln in cart_lines:
            qty = int(ln.quantity)
            if qty <= 0:
                raise ValidationError(f"Quantity for {ln.name} must be at least 1.")
            lines.append(
                NewInvoiceLine(
                    product_id=ln.product_id,
                    quantity=qty,
                    unit_price=to_money(ln.unit_price),
                    product_name=ln.name,
                    barcode=ln.barcode,
                )
            )
        if not lines:
            raise EmptyCart()
        return lines

    @staticmethod
    def _check_customer(customer: Optional[Customer], payment_method: str) -> None:
        if payment_method not in PAYMENT_METHODS:
            raise ValidationError(f"Unknown payment method: {payment_method}")
        if customer is not None and not is_valid_phone(customer.phone):
            raise ValidationError(
                "Phone must be 11 digits starting with 010, 011, 012 or 015."
            )

    def _store_sale(
        self,
        number: str,
        lines: list[NewInvoiceLine],
        customer: Optional[Customer],
        payment_method: str,
        paid_in_full: bool,
        notes: Optional[str],
    ) -> Invoice:
        total = sum((ln.unit_price * ln.quantity for ln in lines), Decimal("0"))
        payload = NewInvoice(
            invoice_number=number,
            cashier_id=self.cashier_id,
            created_at=self._now(),
            total_amount=total,
            paid_amount=total if paid_in_full else Decimal("0"),
            payment_method=payment_method,
            customer_id=customer.customer_id if customer else None,
            customer_name=customer.name if customer else WALK_IN_CUSTOMER,
            phone=customer.phone if customer else None,
            notes=notes,
            lines=lines,
        )
        invoice = self.invoices.create_invoice(payload)

        self.aggregate.on_new_sale(invoice)
        for ln in lines:
            self.index.adjust_stock(ln.product_id, -ln.quantity)
        _log.info(
            "Checkout %s: %s units, total %s, paid %s",
            invoice.invoice_number, invoice.item_count, invoice.total_amount, invoice.paid_amount,
        )
        return invoice

    # ------------------------------------------------------------ actions
    def checkout(
        self,
        cart_lines: Iterable[CartLine],
        customer: Optional[Customer] = None,
        payment_method: str = "cash",
        *,
        notes: Optional[str] = None,
    ) -> Optional[Invoice]:
        """
        Quick checkout: paid in full, numbered INV-YYYYMMDD-NNNN.
        Returns None when another request is already in flight.
        """
        if self._ignore_reentry("checkout"):
            return None
        lines = self._payload_lines(cart_lines)
        self._check_customer(customer, payment_method)
        with self._in_flight():
            number = self._unique_number(lambda: quick_invoice_number(self._now()))
            return self._store_sale(number, lines, customer, payment_method, True, notes)

    def create_formal_invoice(
        self,
        cart_lines: Iterable[CartLine],
        customer: Optional[Customer] = None,
        payment_method: str = "cash",
        *,
        notes: Optional[str] = None,
    ) -> Optional[Invoice]:
        """Deferred-payment invoice: paid_amount starts at 0."""
        if self._ignore_reentry("invoice"):
            return None
        lines = self._payload_lines(cart_lines)
        self._check_customer(customer, payment_method)
        with self._in_flight():
            number = self._unique_number(formal_invoice_number)
            return self._store_sale(number, lines, customer, payment_method, False, notes)

    def record_payment(self, invoice: Invoice, amount) -> Optional[Invoice]:
        if self._ignore_reentry("payment"):
            return None
        new_paid, new_status = project_after_payment(
            total_amount=invoice.total_amount,
            current_paid_amount=invoice.paid_amount,
            new_payment_amount=amount,
        )
        with self._in_flight():
            updated = self.invoices.record_payment(invoice.invoice_id, new_paid)
        _log.info(
            "Payment of %s on %s; now %s", to_money(amount), invoice.invoice_number, new_status.value
        )
        return updated

    def delete_invoice(self, invoice: Invoice) -> bool:
        if self._ignore_reentry("delete"):
            return False
        with self._in_flight():
            self.invoices.delete_invoice(invoice.invoice_id)
        self.aggregate.on_invoice_deleted(invoice.invoice_id)
        for it in invoice.items:
            self.index.adjust_stock(it.product_id, it.quantity)
        return True

    def submit_return(self, invoice: Invoice, requested: Mapping) -> Optional[ReturnOutcome]:
        """
        Validate locally, record with the return store, then apply the
        recorded quantities to `invoice`, the daily totals and local stock.
        """
        if self._ignore_reentry("return"):
            return None
        if self.returns is None:
            raise ValidationError("Returns are not available in this session.")
        plan = validate_return(invoice, requested)
        with self._in_flight():
            result = self.returns.create_return(invoice.invoice_id, plan.as_store_lines())
        outcome = apply_return(invoice, result.quantities(), return_id=result.return_id)
        self.aggregate.on_new_return(result)
        for ln in plan.lines:
            self.index.adjust_stock(ln.product_id, ln.quantity)
        return outcome
