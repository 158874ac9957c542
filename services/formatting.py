"""
Money and date helpers for Brazilian Portuguese (pt-BR) output.

parse_money_to_cents() is the only place where user-typed prices are turned
into integer centavos; every write path goes through it.
"""

import re
from datetime import datetime, timedelta, timezone
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Optional, Union

# Brazil has no daylight saving time since 2019
BRASILIA_TZ = timezone(timedelta(hours=-3), "BRT")

_THOUSANDS_ONLY = re.compile(r"^\d{1,3}(\.\d{3})+$")


def parse_money_to_cents(value: Optional[str]) -> Optional[int]:
    """
    Parse a price typed in pt-BR or plain decimal notation into centavos.

    Accepted: "2850", "2850,00", "2.850,00", "2.850", "2850.5", "R$ 1.234,56".
    Returns None for empty, malformed, non-finite or negative input.
    """
    if value is None:
        return None

    text = str(value).strip()
    if text.upper().startswith("R$"):
        text = text[2:].strip()
    text = text.replace(" ", "")
    if not text:
        return None

    if "," in text:
        text = text.replace(".", "").replace(",", ".", 1)
    elif _THOUSANDS_ONLY.match(text):
        text = text.replace(".", "")

    try:
        amount = Decimal(text)
    except InvalidOperation:
        return None

    if not amount.is_finite() or amount < 0:
        return None

    try:
        return int((amount * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
    except InvalidOperation:
        # More digits than the decimal context can hold
        return None


def format_brl_from_cents(cents) -> str:
    """Format centavos as Brazilian reais: 285000 -> 'R$ 2.850,00'"""
    try:
        amount = Decimal(int(cents)) / 100
    except (TypeError, ValueError, OverflowError):
        amount = Decimal(0)

    sign = "-" if amount < 0 else ""
    formatted = f"{abs(amount):,.2f}"
    # 1,234.56 -> 1.234,56
    formatted = formatted.replace(",", "_").replace(".", ",").replace("_", ".")
    return f"{sign}R$ {formatted}"


def format_date_br(value: Union[str, datetime, None]) -> str:
    """Format a timestamp as DD/MM/YYYY in Brasília time"""
    if value is None or value == "":
        return ""

    dt = value
    if isinstance(value, str):
        try:
            dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return value

    if not isinstance(dt, datetime):
        return str(value)

    if dt.tzinfo is not None:
        dt = dt.astimezone(BRASILIA_TZ)
    return dt.strftime("%d/%m/%Y")


def truncate_text(text: Optional[str], limit: int = 90) -> str:
    """Trim text and cut it at `limit` characters with an ellipsis"""
    text = (text or "").strip()
    if len(text) > limit:
        return text[:limit] + "…"
    return text
