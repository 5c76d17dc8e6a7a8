"""Display formatting for currency, percentages and markup values."""

from typing import Any

from estimator.services.numeric import to_number


def format_currency(amount: Any) -> str:
    """USD with thousands separators and two decimals: $1,234.56, -$5.00."""
    value = round(to_number(amount), 2) + 0.0
    if value < 0:
        return f"-${abs(value):,.2f}"
    return f"${value:,.2f}"


def format_percent(value: Any) -> str:
    """Literal percent suffix with no scaling: 10 -> "10%", 7.5 -> "7.5%"."""
    number = to_number(value) + 0.0
    text = f"{number:.2f}".rstrip("0").rstrip(".")
    return f"{text or '0'}%"


def normalize_markup(raw: Any) -> str:
    """Markup as stored on the estimate: "10", 10 and "10%" all become "10%"."""
    return format_percent(raw)
