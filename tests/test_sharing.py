"""
Tests for the plain-text share message and WhatsApp link.
"""

import pytest
from datetime import datetime, timezone
from decimal import Decimal
from urllib.parse import unquote

from kulosplit.allocation import calculate_shares
from kulosplit.config import AppSettings
from kulosplit.lifecycle import operations
from kulosplit.sharing import (
    build_whatsapp_url,
    format_currency,
    format_quantity,
    generate_share_message,
)


@pytest.fixture
def bill():
    b = operations.create_bill(
        description="Makan siang kantor",
        created_at=datetime(2024, 12, 15, 12, 30, tzinfo=timezone.utc),
    )
    b = operations.add_participant(b, "Ari")
    b = operations.add_participant(b, "Budi")
    b = operations.add_participant(b, "Citra")
    b = operations.add_item(b, "Nasi Goreng", 1, 20000)
    b = operations.add_item(b, "Es Teh", 2, 30000)
    b = operations.set_tax_amount(b, 5000)
    b = operations.assign_item(b, b.items[0].id, b.participants[0].id)
    return operations.assign_item(b, b.items[1].id, b.participants[1].id)


class TestFormatCurrency:
    """Tests for rupiah formatting."""

    @pytest.mark.parametrize("amount, expected", [
        (Decimal("25000"), "Rp 25.000"),
        (Decimal("1234567"), "Rp 1.234.567"),
        (Decimal("0"), "Rp 0"),
        (Decimal("999.5"), "Rp 1.000"),
        (Decimal("33333.3333"), "Rp 33.333"),
    ])
    def test_idr(self, amount, expected):
        """Test whole rupiah with '.' thousands."""
        assert format_currency(amount, AppSettings()) == expected

    def test_decimals(self):
        """Test ',' is the decimal separator when decimals are shown."""
        settings = AppSettings(currency_symbol="$", currency_decimals=2)
        assert format_currency(Decimal("1234.5"), settings) == "$ 1.234,50"

    def test_amounts_beyond_default_precision(self):
        """Test very large amounts still format instead of raising."""
        expected = "Rp 1" + ".000" * 10
        assert format_currency(Decimal("1e30"), AppSettings()) == expected


class TestFormatQuantity:
    """Tests for quantity display."""

    @pytest.mark.parametrize("quantity, expected", [
        (Decimal("2"), "2"),
        (Decimal("2.0"), "2"),
        (Decimal("10"), "10"),
        (Decimal("1.50"), "1.5"),
    ])
    def test_trailing_zeros_dropped(self, quantity, expected):
        assert format_quantity(quantity) == expected


class TestShareMessage:
    """Tests for the summary text."""

    def test_header_and_footer(self, bill):
        """Test title, date, description and footer."""
        message = generate_share_message(bill, calculate_shares(bill), AppSettings())
        lines = message.splitlines()

        assert lines[0] == "*KuloSplit Bill Summary*"
        assert "🗓️ *Bill Date:* 15/12/2024" in lines
        assert "📝 *Description:* Makan siang kantor" in lines
        assert lines[-1] == "Shared via KuloSplit"

    def test_participant_lines(self, bill):
        """Test each participant's total, items and breakdown."""
        message = generate_share_message(bill, calculate_shares(bill), AppSettings())

        assert "👤 *Ari* owes *Rp 22.000*" in message
        assert "    - Nasi Goreng (x1): Rp 20.000" in message
        assert "👤 *Budi* owes *Rp 33.000*" in message
        assert "    - Es Teh (x2): Rp 30.000" in message
        assert "  Tax: Rp 3.000" in message
        assert "  Service Fee: Rp 0" in message

    def test_participant_without_items(self, bill):
        """Test a participant with nothing assigned."""
        message = generate_share_message(bill, calculate_shares(bill), AppSettings())

        assert "👤 *Citra* owes *Rp 0*" in message
        assert "  _No items assigned directly_" in message

    def test_grand_total(self, bill):
        """Test the grand total is the sum of shares."""
        message = generate_share_message(bill, calculate_shares(bill), AppSettings())
        assert "💰 *Grand Total: Rp 55.000*" in message

    def test_no_description(self, bill):
        """Test the description line is omitted when empty."""
        bill = operations.set_description(bill, "")
        message = generate_share_message(bill, calculate_shares(bill), AppSettings())
        assert "Description" not in message

    def test_huge_item_price(self):
        """Test a bill with an enormous price still produces a message."""
        bill = operations.create_bill(description="Yacht")
        bill = operations.add_participant(bill, "Ari")
        bill = operations.add_item(bill, "Yacht", 1, "1e30")
        bill = operations.assign_item(bill, bill.items[0].id, bill.participants[0].id)

        message = generate_share_message(bill, calculate_shares(bill), AppSettings())

        assert "    - Yacht (x1): Rp 1" + ".000" * 10 in message


class TestWhatsAppUrl:
    """Tests for the share link."""

    def test_message_is_url_encoded(self):
        """Test every reserved character is encoded."""
        url = build_whatsapp_url("Total: Rp 5.000 & more\n👤")

        assert url.startswith("https://wa.me/?text=")
        encoded = url[len("https://wa.me/?text="):]
        assert " " not in encoded
        assert "&" not in encoded
        assert "\n" not in encoded
        assert unquote(encoded) == "Total: Rp 5.000 & more\n👤"


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
