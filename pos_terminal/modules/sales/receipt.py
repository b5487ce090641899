"""
Receipt rendering: Jinja2 HTML, optionally turned into a PDF by WeasyPrint.

Totals must already be final (post-return) when an invoice is handed here;
this module only formats them.
"""
from __future__ import annotations

from pathlib import Path

from jinja2 import Template

from ...constants import APP_NAME, PAYMENT_METHOD_LABELS
from ...utils.helpers import fmt_money
from ..payments.calculations import remaining_due
from ..payments.status import label as status_label, style_tokens
from .ledger import Invoice

RECEIPT_TEMPLATE_PATH = Path(__file__).resolve().parents[2] / "resources" / "templates" / "receipt.html"

RECEIPT_PDF_CSS = """
    @page {
        margin: 8mm;
        size: A5;
    }
    body {
        margin: 0 !important;
        padding: 0 !important;
    }
"""


def render_receipt_html(invoice: Invoice, *, shop_name: str = APP_NAME, template_path: Path | None = None) -> str:
    tpl_path = Path(template_path) if template_path else RECEIPT_TEMPLATE_PATH
    template = Template(tpl_path.read_text(encoding="utf-8"), autoescape=True)
    return template.render(
        invoice=invoice,
        shop_name=shop_name,
        money=fmt_money,
        status_label=status_label(invoice.status),
        status_style=style_tokens(invoice.status),
        payment_method_label=PAYMENT_METHOD_LABELS.get(invoice.payment_method, invoice.payment_method),
        remaining=remaining_due(invoice.total_amount, invoice.paid_amount),
    )


def export_receipt_pdf(invoice: Invoice, out_path: Path | str, **kwargs) -> Path:
    """
    Write the receipt as a PDF. WeasyPrint is imported lazily; an
    ImportError reaches the caller, which tells the cashier to install it.
    """
    from weasyprint import HTML, CSS

    out_path = Path(out_path)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    html = render_receipt_html(invoice, **kwargs)
    HTML(string=html).write_pdf(str(out_path), stylesheets=[CSS(string=RECEIPT_PDF_CSS)])
    return out_path
