# utils/validators.py
import re

from ..constants import DECODED_BARCODE_MAX_LEN, DECODED_BARCODE_MIN_LEN

_PHONE_RX = re.compile(r"^01[0125]\d{8}$")
_NON_DIGITS = re.compile(r"\D")


def non_empty(text: str) -> bool:
    """
    True if `text` is not None/empty after stripping whitespace.
    """
    return bool(text and str(text).strip())


# ---- Numeric parsing & validators ----

def try_parse_int(x):
    """
    Best-effort parse to int.

    Returns:
        (ok: bool, value: int|None)
    """
    try:
        return True, int(str(x).strip())
    except (TypeError, ValueError):
        return False, None


# ---- Phones & barcodes ----

def is_valid_phone(phone: str | None) -> bool:
    """
    Mobile numbers are 11 digits starting with 010/011/012/015.
    Empty is allowed (walk-in customers have no phone).
    """
    if phone is None:
        return True
    p = str(phone).strip()
    return p == "" or bool(_PHONE_RX.match(p))


def clean_barcode(raw: str | None) -> str:
    """Strip whitespace and every non-digit character."""
    return _NON_DIGITS.sub("", (raw or "").strip())


def is_valid_decoded_barcode(code: str) -> bool:
    """Decoder output is accepted only when numeric and 8..20 digits long."""
    return (
        code.isdigit()
        and DECODED_BARCODE_MIN_LEN <= len(code) <= DECODED_BARCODE_MAX_LEN
    )
