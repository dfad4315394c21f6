"""Bill sharing package."""

from kulosplit.sharing.formatter import (
    build_whatsapp_url,
    format_currency,
    format_quantity,
    generate_share_message,
)

__all__ = [
    "build_whatsapp_url",
    "format_currency",
    "format_quantity",
    "generate_share_message",
]
