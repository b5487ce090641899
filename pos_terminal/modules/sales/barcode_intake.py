"""
Barcode intake state machine.

    Idle --input--> Pending --lookup--> Resolved
                                   `--> Failed --(3rd failure)--> Locked

Input arrives from the scanner/keyboard (set_text/submit) or from a camera or
image decoder (feed_decoded). In auto mode a value of exactly the target
length is resolved after a short settle delay so the whole scanner burst has
landed; in manual mode only submit() resolves.

Failures (unknown barcode, out of stock in sale mode, or a consumer calling
reject()) bump a session retry counter. At MAX_BARCODE_RETRIES the machine
locks; only a non-empty value that is not one of the failed values unlocks it.
Store errors while looking up are reported but not counted.
"""
from __future__ import annotations

import logging
from enum import Enum
from typing import Optional

from PySide6.QtCore import QObject, QTimer, Signal

from ...constants import AUTO_SUBMIT_LENGTH, BARCODE_SETTLE_MS, MAX_BARCODE_RETRIES
from ...database.repositories.contracts import ProductLookup
from ...utils.errors import (
    NetworkError,
    NotFoundError,
    RetryLimitExceeded,
    ValidationError,
)
from ...utils.validators import clean_barcode, is_valid_decoded_barcode
from .cart import ProductIndex

_log = logging.getLogger(__name__)


class IntakeState(str, Enum):
    IDLE = "idle"
    PENDING = "pending"
    RESOLVED = "resolved"
    FAILED = "failed"
    LOCKED = "locked"


class IntakeMode(str, Enum):
    SALE = "sale"
    RETURN = "return"


class BarcodeIntake(QObject):
    state_changed = Signal(str)
    product_resolved = Signal(object)        # sale mode: Product to add to the cart
    return_lookup = Signal(object)           # return mode: Product to look up in history
    failed = Signal(str, str)                # value, message
    locked = Signal(str)                     # message
    create_product_offered = Signal(str)     # unknown barcode
    error = Signal(object)                   # DomainError instance for the UI

    def __init__(
        self,
        lookup: Optional[ProductLookup] = None,
        index: Optional[ProductIndex] = None,
        *,
        target_length: int = AUTO_SUBMIT_LENGTH,
        auto_mode: bool = True,
        settle_ms: int = BARCODE_SETTLE_MS,
        max_retries: int = MAX_BARCODE_RETRIES,
        parent: QObject | None = None,
    ):
        super().__init__(parent)
        self.lookup = lookup
        self.index = index if index is not None else ProductIndex()
        self.target_length = int(target_length)
        self.auto_mode = bool(auto_mode)
        self.max_retries = int(max_retries)
        self.mode = IntakeMode.SALE

        self._state = IntakeState.IDLE
        self._text = ""
        self._generation = 0
        self._retries = 0
        self._last_failed: Optional[str] = None
        self._failed_values: set[str] = set()
        self._settle_value: Optional[str] = None

        self._settle = QTimer(self)
        self._settle.setSingleShot(True)
        self._settle.setInterval(int(settle_ms))
        self._settle.timeout.connect(self._on_settled)

    # ------------------------------------------------------------ properties
    @property
    def state(self) -> IntakeState:
        return self._state

    @property
    def text(self) -> str:
        return self._text

    @property
    def retry_count(self) -> int:
        return self._retries

    @property
    def last_failed(self) -> Optional[str]:
        return self._last_failed

    def is_locked(self) -> bool:
        return self._state == IntakeState.LOCKED

    def _set_state(self, st: IntakeState) -> None:
        if st != self._state:
            _log.debug("Barcode intake %s -> %s", self._state.value, st.value)
            self._state = st
            self.state_changed.emit(st.value)

    # --------------------------------------------------------------- config
    def set_mode(self, mode: IntakeMode | str) -> None:
        self.mode = IntakeMode(getattr(mode, "value", mode))

    def set_auto_mode(self, enabled: bool) -> None:
        self.auto_mode = bool(enabled)
        if not self.auto_mode:
            self._cancel_settle()

    def set_target_length(self, length: int) -> None:
        if int(length) <= 0:
            raise ValidationError("Barcode target length must be positive.")
        self.target_length = int(length)

    def reset(self) -> None:
        """Forget input, failures and the lock."""
        self._cancel_settle()
        self._text = ""
        self._generation += 1
        self._clear_failures()
        self._set_state(IntakeState.IDLE)

    # ----------------------------------------------------------------- input
    def _clear_failures(self) -> None:
        self._retries = 0
        self._last_failed = None
        self._failed_values.clear()

    def _cancel_settle(self) -> None:
        self._settle.stop()
        self._settle_value = None

    def _try_unlock(self, value: str) -> bool:
        if not self.is_locked():
            return True
        if value and value not in self._failed_values:
            _log.info("Barcode intake unlocked by new value %s", value)
            self._clear_failures()
            self._set_state(IntakeState.IDLE)
            return True
        return False

    def set_text(self, value: str) -> None:
        """
        Current contents of the barcode field. Any new value supersedes a
        pending auto-submit; a value of the target length schedules one.
        """
        value = (value or "").strip()
        if value == self._text and self._settle.isActive():
            return
        self._text = value
        self._generation += 1
        self._cancel_settle()

        if not self._try_unlock(value):
            return
        if self._state in (IntakeState.PENDING, IntakeState.RESOLVED, IntakeState.FAILED):
            self._set_state(IntakeState.IDLE)

        if (
            self.auto_mode
            and len(value) == self.target_length
            and value != self._last_failed
        ):
            self._settle_value = value
            self._set_state(IntakeState.PENDING)
            self._settle.start()

    def _on_settled(self) -> None:
        value, self._settle_value = self._settle_value, None
        if value is None or value != self._text:
            # superseded by newer input
            return
        self._resolve(value)

    def submit(self, value: Optional[str] = None) -> bool:
        """
        Explicit submit (Enter / button). Returns True when a product was
        resolved.

        Raises:
            ValidationError: nothing to submit.
            RetryLimitExceeded: locked and the value is one that already failed.
        """
        if value is not None:
            value = value.strip()
            if value != self._text:
                self._text = value
                self._generation += 1
        value = self._text
        if not value:
            raise ValidationError("Please enter a barcode.")
        if not self._try_unlock(value):
            raise RetryLimitExceeded(
                "Too many failed attempts. Scan or type a different barcode."
            )
        self._cancel_settle()
        return self._resolve(value)

    def feed_decoded(self, raw: str) -> bool:
        """
        Entry point for camera/image decoders. The decoded text is untrusted:
        non-digits are stripped and 8..20 digits are required.
        """
        code = clean_barcode(raw)
        if not is_valid_decoded_barcode(code):
            raise ValidationError(f"Unreadable barcode: {raw!r}")
        return self.submit(code)

    # ------------------------------------------------------------ resolution
    def _find(self, value: str):
        product = self.index.get(value)
        if product is None and self.lookup is not None:
            product = self.lookup.find_by_barcode(value)
            if product is not None:
                self.index.add(product)
        return product

    def _resolve(self, value: str) -> bool:
        generation = self._generation
        self._set_state(IntakeState.PENDING)
        try:
            product = self._find(value)
        except NetworkError as e:
            _log.warning("Barcode lookup for %s failed: %s", value, e)
            if generation == self._generation:
                self._set_state(IntakeState.IDLE)
            self.error.emit(e)
            return False

        if generation != self._generation:
            _log.debug("Dropping stale lookup result for %s", value)
            return False

        if product is None:
            self._fail(value, f"No product with barcode {value}.", offer_create=True)
            return False
        if self.mode == IntakeMode.SALE and int(product.stock) <= 0:
            self._fail(value, f"{product.name} is out of stock.")
            return False

        self._clear_failures()
        self._set_state(IntakeState.RESOLVED)
        if self.mode == IntakeMode.RETURN:
            self.return_lookup.emit(product)
        else:
            self.product_resolved.emit(product)
        return True

    def _fail(self, value: str, message: str, *, offer_create: bool = False) -> None:
        self._retries += 1
        self._last_failed = value
        self._failed_values.add(value)
        self._set_state(IntakeState.FAILED)
        self.failed.emit(value, message)
        self.error.emit(NotFoundError(message) if offer_create else ValidationError(message))
        if offer_create:
            self.create_product_offered.emit(value)
        if self._retries >= self.max_retries:
            self._set_state(IntakeState.LOCKED)
            msg = "Too many failed attempts. Scan or type a different barcode."
            _log.info("Barcode intake locked after %s failures", self._retries)
            self.locked.emit(msg)
            self.error.emit(RetryLimitExceeded(msg))

    def reject(self, value: str, message: str) -> None:
        """A consumer refused a resolved value (e.g. nothing left to return)."""
        self._fail(value, message)
