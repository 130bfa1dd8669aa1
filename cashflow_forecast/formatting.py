"""Formatting utilities for currency and percentage display."""

from __future__ import annotations

from typing import Union


def escape_dollar_for_markdown(text: str) -> str:
    """Escape dollar signs so Streamlit markdown does not read them as LaTeX."""
    return text.replace("$", "\\$")


def format_currency(amount: Union[float, int], include_sign: bool = True) -> str:
    """Format a currency amount, keeping the minus sign before the symbol.

    Example:
        >>> format_currency(-1234.5)
        '-$1,234.50'
        >>> format_currency(1234.56, include_sign=False)
        '1,234.56'
    """
    formatted = f"{abs(amount):,.2f}"
    prefix = "-" if amount < 0 else ""
    return f"{prefix}${formatted}" if include_sign else f"{prefix}{formatted}"


def format_percent(value: float, decimals: int = 1) -> str:
    """Signed percentage, e.g. ``+12.5%`` or ``-3.0%``."""
    return f"{value:+.{decimals}f}%"
