"""
Plain-text Bill Sharing

Builds the human-readable summary that users paste into chat apps, plus
a WhatsApp share link. Pure string formatting over the allocation result.
"""

from decimal import ROUND_HALF_UP, Decimal, localcontext
from typing import Iterable, Optional
from urllib.parse import quote

from kulosplit.allocation import shares_grand_total
from kulosplit.config import AppSettings
from kulosplit.models.bill import Bill, ParticipantShare


WHATSAPP_SHARE_URL = "https://wa.me/?text="
SEPARATOR = "-" * 30


def format_currency(amount: Decimal, settings: Optional[AppSettings] = None) -> str:
    """
    Format an amount for display, e.g. Rp 25.000.

    Uses '.' for thousands and ',' for decimals, as Indonesian receipts do.
    """
    settings = settings or AppSettings()
    places = settings.currency_decimals
    amount = Decimal(amount)
    quantum = Decimal(1).scaleb(-places)
    with localcontext() as ctx:
        # Room for every integer digit plus the decimals
        ctx.prec = max(ctx.prec, amount.adjusted() + places + 2)
        rounded = amount.quantize(quantum, rounding=ROUND_HALF_UP)
    if rounded == 0:
        rounded = abs(rounded)

    text = f"{rounded:,.{places}f}"
    text = text.replace(",", "\x00").replace(".", ",").replace("\x00", ".")
    return f"{settings.currency_symbol} {text}"


def format_quantity(quantity: Decimal) -> str:
    """Drop trailing zeros: 2.0 -> 2, 1.50 -> 1.5."""
    normalized = quantity.normalize()
    if normalized == normalized.to_integral_value():
        return format(normalized.to_integral_value(), "f")
    return format(normalized, "f")


def generate_share_message(
    bill: Bill,
    shares: Iterable[ParticipantShare],
    settings: Optional[AppSettings] = None,
) -> str:
    """Plain-text summary of who owes what."""
    settings = settings or AppSettings()
    shares = list(shares)

    def money(amount: Decimal) -> str:
        return format_currency(amount, settings)

    lines = [
        f"*{settings.app_name} Bill Summary*",
        "",
        f"🗓️ *Bill Date:* {bill.created_at.strftime('%d/%m/%Y')}",
    ]
    if bill.description:
        lines.append(f"📝 *Description:* {bill.description}")
    lines += ["", SEPARATOR, ""]

    for share in shares:
        lines.append(f"👤 *{share.participant_name}* owes *{money(share.total_owed)}*")
        if share.items:
            lines.append("  Items:")
            for item in share.items:
                lines.append(
                    f"    - {item.name} (x{format_quantity(item.quantity)}): {money(item.price)}"
                )
        else:
            lines.append("  _No items assigned directly_")
        lines += [
            f"  Subtotal: {money(share.subtotal)}",
            f"  Tax: {money(share.tax_share)}",
            f"  Service Fee: {money(share.service_fee_share)}",
            "",
            SEPARATOR,
            "",
        ]

    lines += [
        f"💰 *Grand Total: {money(shares_grand_total(shares))}*",
        "",
        f"Shared via {settings.app_name}",
    ]
    return "\n".join(lines)


def build_whatsapp_url(message: str) -> str:
    """Link that opens WhatsApp with `message` prefilled."""
    return WHATSAPP_SHARE_URL + quote(message, safe="")
