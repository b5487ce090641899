"""
Daily sales footer engine.

Holds the running (total, invoice_count, item_count, invoices) for one cashier
and the current local day. Two ways to change it:

  * rebuild()/refresh()          authoritative fold over the invoice history
  * on_new_sale()/on_new_return() cheap incremental updates between rebuilds

A rebuild always overwrites whatever the incremental path produced, so an
invoice seen by both is never counted twice.

Timers (all QTimer, cleared by stop()):
  * midnight  one-shot, re-armed after every rollover
  * rollover  one-shot rebuild shortly after midnight
  * refresh   optional periodic rebuild (interval in minutes, 0 = off)
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Callable, Iterable, Optional

from PySide6.QtCore import QObject, Qt, QTimer, Signal

from ...constants import DEFAULT_REFRESH_INTERVAL_MIN, ROLLOVER_REBUILD_DELAY_MS
from ...database.repositories.contracts import InvoiceFilter, InvoiceStore
from ...utils.errors import DomainError
from ...utils.helpers import end_of_day, msecs_until_midnight, next_midnight, start_of_day
from .ledger import Invoice, ReturnResult

_log = logging.getLogger(__name__)


@dataclass(frozen=True)
class DailySnapshot:
    cashier_id: int
    day: date
    total: Decimal
    invoice_count: int
    item_count: int


class DailyAggregateEngine(QObject):
    changed = Signal(object)       # DailySnapshot
    rolled_over = Signal(object)   # the new day (date)

    def __init__(
        self,
        cashier_id: int,
        store: Optional[InvoiceStore] = None,
        *,
        now: Callable[[], datetime] = datetime.now,
        refresh_interval_min: int = DEFAULT_REFRESH_INTERVAL_MIN,
        rollover_delay_ms: int = ROLLOVER_REBUILD_DELAY_MS,
        parent: QObject | None = None,
    ):
        super().__init__(parent)
        self.cashier_id = cashier_id
        self.store = store
        self._now = now
        self._day: date = now().date()
        self._invoices: list[Invoice] = []
        self._total = Decimal("0")
        self._item_count = 0

        self._midnight_timer = QTimer(self)
        self._midnight_timer.setSingleShot(True)
        self._midnight_timer.setTimerType(Qt.PreciseTimer)
        self._midnight_timer.timeout.connect(self._on_midnight)
        self._midnight_at: Optional[datetime] = None

        self._rollover_timer = QTimer(self)
        self._rollover_timer.setSingleShot(True)
        self._rollover_timer.setInterval(max(0, int(rollover_delay_ms)))
        self._rollover_timer.timeout.connect(self._refresh_quietly)

        self._refresh_timer = QTimer(self)
        self._refresh_timer.timeout.connect(self._refresh_quietly)
        self.set_refresh_interval(refresh_interval_min)

    # ------------------------------------------------------------------ state
    @property
    def total(self) -> Decimal:
        return self._total

    @property
    def invoice_count(self) -> int:
        return len(self._invoices)

    @property
    def item_count(self) -> int:
        return self._item_count

    @property
    def day(self) -> date:
        return self._day

    @property
    def invoices(self) -> list[Invoice]:
        """Copies, newest first. The engine's own list is never handed out."""
        return [inv.copy() for inv in self._invoices]

    def snapshot(self) -> DailySnapshot:
        return DailySnapshot(
            cashier_id=self.cashier_id,
            day=self._day,
            total=self._total,
            invoice_count=self.invoice_count,
            item_count=self._item_count,
        )

    def is_tracking(self, invoice_id) -> bool:
        return any(inv.invoice_id == invoice_id for inv in self._invoices)

    # --------------------------------------------------------------- folding
    def _in_window(self, invoice: Invoice, now: datetime) -> bool:
        return start_of_day(now) <= invoice.created_at <= end_of_day(now)

    def _refold(self) -> None:
        self._total = sum((inv.effective_total for inv in self._invoices), Decimal("0"))
        self._item_count = sum(inv.effective_item_count for inv in self._invoices)

    def _emit(self) -> None:
        self.changed.emit(self.snapshot())

    def rebuild(self, all_invoices: Iterable[Invoice]) -> DailySnapshot:
        """
        Authoritative recomputation from the cashier's invoices. Anything not
        created today (local time) or by another cashier is dropped.
        """
        now = self._now()
        self._day = now.date()
        kept = [
            inv.copy()
            for inv in all_invoices
            if inv.cashier_id == self.cashier_id and self._in_window(inv, now)
        ]
        kept.sort(key=lambda inv: inv.created_at, reverse=True)
        self._invoices = kept
        self._refold()
        _log.debug(
            "Daily totals rebuilt for cashier %s on %s: %s invoices, total %s",
            self.cashier_id, self._day, self.invoice_count, self._total,
        )
        self._emit()
        return self.snapshot()

    def refresh(self) -> DailySnapshot:
        """Manual refresh: full rebuild from the invoice store."""
        if self.store is None:
            return self.rebuild(self._invoices)
        now = self._now()
        flt = InvoiceFilter(
            cashier_id=self.cashier_id,
            date_from=start_of_day(now),
            date_to=end_of_day(now),
        )
        return self.rebuild(self.store.list_invoices(flt))

    def _refresh_quietly(self) -> None:
        try:
            self.refresh()
        except DomainError:
            _log.exception("Scheduled refresh of daily totals failed")

    # ----------------------------------------------------------- incremental
    def on_new_sale(self, invoice: Invoice) -> bool:
        """
        Fold a just-created invoice in. Returns False (and changes nothing)
        when it belongs to another cashier, another day, or is already tracked.
        """
        if invoice.cashier_id != self.cashier_id:
            return False
        if not self._in_window(invoice, self._now()):
            _log.debug("Ignoring sale %s outside today's window", invoice.invoice_number)
            return False
        if invoice.invoice_id is not None and self.is_tracking(invoice.invoice_id):
            return False

        own = invoice.copy()
        self._invoices.insert(0, own)
        self._total += own.effective_total
        self._item_count += own.effective_item_count
        self._emit()
        return True

    def on_new_return(self, result: ReturnResult) -> bool:
        """
        Apply a recorded return to the tracked copy of its invoice and refold.
        Unknown invoices (another day/cashier, not loaded yet) are a no-op.
        """
        target = next(
            (inv for inv in self._invoices if inv.invoice_id == result.invoice_id), None
        )
        if target is None:
            return False
        for line_item_id, qty in result.quantities().items():
            item = target.find_item(line_item_id)
            if item is None:
                continue
            item.returned_quantity = min(item.quantity, item.returned_quantity + max(0, qty))
        self._refold()
        self._emit()
        return True

    def on_invoice_deleted(self, invoice_id) -> bool:
        before = len(self._invoices)
        self._invoices = [inv for inv in self._invoices if inv.invoice_id != invoice_id]
        if len(self._invoices) == before:
            return False
        self._refold()
        self._emit()
        return True

    # ---------------------------------------------------------------- timers
    def set_refresh_interval(self, minutes: int) -> None:
        minutes = max(0, int(minutes or 0))
        self._refresh_interval_min = minutes
        if minutes:
            self._refresh_timer.setInterval(minutes * 60 * 1000)
        elif self._refresh_timer.isActive():
            self._refresh_timer.stop()

    def start(self) -> None:
        self._arm_midnight()
        if self._refresh_interval_min:
            self._refresh_timer.start()

    def stop(self) -> None:
        for t in (self._midnight_timer, self._rollover_timer, self._refresh_timer):
            t.stop()

    def is_running(self) -> bool:
        return self._midnight_timer.isActive()

    def _arm_midnight(self) -> None:
        now = self._now()
        self._midnight_at = next_midnight(now)
        ms = msecs_until_midnight(now)
        self._midnight_timer.start(ms)
        _log.debug("Midnight rollover armed in %s ms", ms)

    def _on_midnight(self) -> None:
        # a timer that fires ahead of the armed midnight must not roll into the old day
        if self._midnight_at is not None and self._now() < self._midnight_at:
            _log.debug("Midnight timer fired early, re-arming")
            self._arm_midnight()
            return
        self.rollover()

    def rollover(self) -> None:
        """Reset to an empty day, rebuild shortly after, re-arm for the next midnight."""
        self._day = self._now().date()
        self._invoices = []
        self._total = Decimal("0")
        self._item_count = 0
        _log.info("Daily totals rolled over to %s for cashier %s", self._day, self.cashier_id)
        self._emit()
        self.rolled_over.emit(self._day)
        self._rollover_timer.start()
        self._arm_midnight()
