"""PDF generation for settlement commission invoices."""

from __future__ import annotations

from decimal import Decimal
from html import escape
from string import Template
from typing import TYPE_CHECKING

from estate_settlement.core.config import settings

if TYPE_CHECKING:
    from estate_settlement.models.settlement_invoice import SettlementInvoice

_INVOICE_TEMPLATE = Template("""\
<!DOCTYPE html>
<html>
<head>
<style>
  body { font-family: Helvetica, Arial, sans-serif; font-size: 12px; color: #333; margin: 40px; }
  h1 { font-size: 24px; margin-bottom: 4px; }
  .header { display: flex; justify-content: space-between; margin-bottom: 30px; }
  .header-left, .header-right { width: 48%; }
  .meta { margin-bottom: 20px; }
  .meta td { padding: 2px 8px 2px 0; }
  table.items { width: 100%; border-collapse: collapse; margin-bottom: 20px; }
  table.items th { text-align: left; border-bottom: 2px solid #333; padding: 6px 8px; }
  table.items td { padding: 6px 8px; border-bottom: 1px solid #ddd; }
  table.items .right { text-align: right; }
  .totals { width: 300px; margin-left: auto; }
  .totals td { padding: 4px 8px; }
  .totals .label { text-align: right; }
  .totals .total-row { font-weight: bold; border-top: 2px solid #333; }
  .status { display: inline-block; padding: 4px 12px; border-radius: 4px; font-weight: bold;
             text-transform: uppercase; font-size: 11px; }
  .status-sent { background: #e8f0fe; color: #1a73e8; }
  .status-paid { background: #e6f4ea; color: #137333; }
</style>
</head>
<body>
<div class="header">
  <div class="header-left">
    <h1>${company_name}</h1>
  </div>
  <div class="header-right" style="text-align: right;">
    <h1>TAX INVOICE</h1>
    <span class="status status-${status}">${status}</span>
  </div>
</div>
<table class="meta">
  <tr><td><strong>Invoice #:</strong></td><td>${invoice_number}</td></tr>
  <tr><td><strong>Issued:</strong></td><td>${invoice_date}</td></tr>
  <tr><td><strong>Due:</strong></td><td>${due_date}</td></tr>
  <tr><td><strong>Settlement:</strong></td><td>${settlement_date}</td></tr>
</table>
<table class="meta">
  <tr><td><strong>Bill To:</strong></td></tr>
  <tr><td>${seller_name}</td></tr>
  <tr><td>${seller_email}</td></tr>
</table>
<table class="items">
  <thead>
    <tr>
      <th>Description</th>
      <th class="right">Sale Price</th>
      <th class="right">Rate</th>
      <th class="right">Amount</th>
    </tr>
  </thead>
  <tbody>
    <tr><td>Sales commission: ${property_title}<br>${property_address}</td>\
<td class="right">${property_value}</td><td class="right">${commission_rate}%</td>\
<td class="right">${commission_amount}</td></tr>
  </tbody>
</table>
<table class="totals">
  <tr><td class="label">Commission:</td><td class="right">${commission_amount}</td></tr>
  <tr><td class="label">GST:</td><td class="right">${gst_amount}</td></tr>
  <tr><td class="label">Paid:</td><td class="right">-${amount_paid}</td></tr>
  <tr class="total-row"><td class="label">Amount Due (${currency}):</td>\
<td class="right">${amount_due}</td></tr>
</table>
<table class="meta">
  <tr><td><strong>Pay to:</strong></td><td>${bank_name}</td></tr>
  <tr><td><strong>Account Name:</strong></td><td>${account_name}</td></tr>
  <tr><td><strong>BSB:</strong></td><td>${bsb}</td></tr>
  <tr><td><strong>Account Number:</strong></td><td>${account_number}</td></tr>
  <tr><td><strong>Reference:</strong></td><td>${reference}</td></tr>
</table>
</body>
</html>
""")


def _format_amount(value: object) -> str:
    """Format a monetary amount to two decimal places."""
    if value is None:
        return "0.00"
    return f"{Decimal(str(value)):,.2f}"


def _format_date(dt: object) -> str:
    """Format a datetime to YYYY-MM-DD, or return empty string if None."""
    if dt is None:
        return ""
    return str(dt)[:10]


def render_settlement_invoice_html(invoice: SettlementInvoice) -> str:
    bank = invoice.bank_details or {}
    return _INVOICE_TEMPLATE.substitute(
        company_name=escape(settings.COMPANY_ACCOUNT_NAME),
        status=escape(str(invoice.status or "")),
        invoice_number=escape(str(invoice.invoice_number or "")),
        invoice_date=_format_date(invoice.invoice_date),
        due_date=_format_date(invoice.due_date),
        settlement_date=_format_date(invoice.settlement_date),
        seller_name=escape(str(invoice.seller_name or "")),
        seller_email=escape(str(invoice.seller_email or "")),
        property_title=escape(str(invoice.property_title or "")),
        property_address=escape(str(invoice.property_address or "")),
        property_value=_format_amount(invoice.property_value),
        commission_rate=invoice.commission_rate,
        commission_amount=_format_amount(invoice.commission_amount),
        gst_amount=_format_amount(invoice.gst_amount),
        amount_paid=_format_amount(invoice.amount_paid),
        amount_due=_format_amount(invoice.amount_due),
        currency=escape(str(invoice.currency or "")),
        bank_name=escape(str(bank.get("bank_name") or settings.COMPANY_BANK_NAME)),
        account_name=escape(str(bank.get("account_name", ""))),
        bsb=escape(str(bank.get("bsb", ""))),
        account_number=escape(str(bank.get("account_number", ""))),
        reference=escape(str(bank.get("reference", ""))),
    )


class PdfService:
    """Service for generating PDF documents."""

    def generate_settlement_invoice_pdf(self, invoice: SettlementInvoice) -> bytes:
        """Render a settlement invoice to PDF bytes."""
        html = render_settlement_invoice_html(invoice)

        import weasyprint

        pdf_bytes: bytes = weasyprint.HTML(string=html).write_pdf()
        return pdf_bytes
