"""Tests for commission, GST, invoice number and due-date arithmetic."""

import random
import re
from datetime import UTC, datetime, timedelta
from decimal import Decimal

import pytest

from estate_settlement.services.commission import (
    COMMISSION_RATE,
    PAYMENT_TERMS_DAYS,
    build_payment_reference,
    calculate_commission,
    calculate_due_date,
    generate_invoice_number,
)


class TestCalculateCommission:
    def test_one_million(self) -> None:
        result = calculate_commission(Decimal("1000000"))
        assert result.commission_amount == Decimal("11000.00")
        assert result.gst_amount == Decimal("1100.00")
        assert result.total_amount == Decimal("12100.00")

    def test_four_hundred_fifty_thousand(self) -> None:
        result = calculate_commission(450000)
        assert result.commission_amount == Decimal("4950.00")
        assert result.gst_amount == Decimal("495.00")
        assert result.total_amount == Decimal("5445.00")

    def test_rate_is_fixed(self) -> None:
        result = calculate_commission("825000")
        assert result.commission_rate == COMMISSION_RATE == Decimal("1.1")
        assert result.property_value == Decimal("825000")

    def test_rounds_half_up_to_cents(self) -> None:
        # 12345.45 * 1.1% = 135.79995 -> 135.80; GST 13.58
        result = calculate_commission(Decimal("12345.45"))
        assert result.commission_amount == Decimal("135.80")
        assert result.gst_amount == Decimal("13.58")
        assert result.total_amount == Decimal("149.38")

    def test_total_is_commission_plus_gst(self) -> None:
        result = calculate_commission(Decimal("731999.99"))
        assert result.total_amount == result.commission_amount + result.gst_amount

    def test_zero_price(self) -> None:
        result = calculate_commission(0)
        assert result.total_amount == Decimal("0.00")

    def test_negative_price_rejected(self) -> None:
        with pytest.raises(ValueError, match="negative"):
            calculate_commission(-1)


class TestInvoiceNumber:
    def test_format(self) -> None:
        number = generate_invoice_number(datetime(2025, 10, 13, tzinfo=UTC))
        assert re.fullmatch(r"INV-\d{8}-\d{4}", number)
        assert number.startswith("INV-20251013-")

    def test_suffix_is_zero_padded(self) -> None:
        class _Low(random.Random):
            def randrange(self, *args, **kwargs):  # type: ignore[no-untyped-def]
                return 7

        number = generate_invoice_number(datetime(2025, 1, 2, tzinfo=UTC), _Low())
        assert number == "INV-20250102-0007"

    def test_seeded_rng_is_deterministic(self) -> None:
        today = datetime(2025, 1, 2, tzinfo=UTC)
        assert generate_invoice_number(today, random.Random(42)) == generate_invoice_number(
            today, random.Random(42)
        )


class TestDueDate:
    def test_thirty_days_after_invoice_date(self) -> None:
        invoice_date = datetime(2025, 10, 13, 9, 30, tzinfo=UTC)
        assert calculate_due_date(invoice_date) == datetime(2025, 11, 12, 9, 30, tzinfo=UTC)
        assert calculate_due_date(invoice_date) - invoice_date == timedelta(
            days=PAYMENT_TERMS_DAYS
        )


class TestPaymentReference:
    def test_uses_last_six_characters_upper_cased(self) -> None:
        reference = build_payment_reference("INV-20251013-0042", "64f1c2ab9e77d1")
        assert reference == "INV-20251013-0042-9E77D1"

    def test_short_seller_id(self) -> None:
        assert build_payment_reference("INV-20251013-0042", "ab1") == "INV-20251013-0042-AB1"
