"""Commission, GST and due-date arithmetic for settlement invoices.

All amounts are ``Decimal`` rounded half-up to cents. The rates are fixed
constants rather than organisation settings.
"""

from __future__ import annotations

import random
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal

COMMISSION_RATE = Decimal("1.1")  # percent of the sale price
GST_RATE = Decimal("10")  # percent of the commission
PAYMENT_TERMS_DAYS = 30
INVOICE_NUMBER_PREFIX = "INV"

_CENTS = Decimal("0.01")


@dataclass(frozen=True)
class CommissionBreakdown:
    property_value: Decimal
    commission_rate: Decimal
    commission_amount: Decimal
    gst_amount: Decimal
    total_amount: Decimal


def _to_cents(value: Decimal) -> Decimal:
    return value.quantize(_CENTS, rounding=ROUND_HALF_UP)


def calculate_commission(property_value: Decimal | int | float | str) -> CommissionBreakdown:
    """Compute commission, GST and total for a settlement sale price."""
    value = Decimal(str(property_value))
    if value < 0:
        raise ValueError("Property value cannot be negative")

    commission = _to_cents(value * COMMISSION_RATE / 100)
    gst = _to_cents(commission * GST_RATE / 100)
    return CommissionBreakdown(
        property_value=value,
        commission_rate=COMMISSION_RATE,
        commission_amount=commission,
        gst_amount=gst,
        total_amount=commission + gst,
    )


def generate_invoice_number(today: datetime, rng: random.Random | None = None) -> str:
    """Build an ``INV-YYYYMMDD-NNNN`` number with a random daily suffix.

    Uniqueness is probabilistic only; callers do not check for collisions.
    """
    suffix = (rng or random).randrange(10000)
    return f"{INVOICE_NUMBER_PREFIX}-{today:%Y%m%d}-{suffix:04d}"


def build_payment_reference(invoice_number: str, seller_id: str) -> str:
    return f"{invoice_number}-{seller_id[-6:].upper()}"


def calculate_due_date(invoice_date: datetime) -> datetime:
    return invoice_date + timedelta(days=PAYMENT_TERMS_DAYS)
