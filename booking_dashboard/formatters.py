from datetime import date, datetime
from typing import Optional, Union

import pandas as pd

from .config import DATE_FORMAT, GERMAN_MONTHS

DateLike = Union[date, datetime, pd.Timestamp, None]


def _german_separators(text: str) -> str:
    # "1,234.56" -> "1.234,56"
    return text.replace(",", "_").replace(".", ",").replace("_", ".")


def format_decimal(value: float, digits: int = 2, grouping: bool = False) -> str:
    """Comma-decimal number, e.g. 100.5 -> '100,50'."""
    if value is None or pd.isna(value):
        return ""
    pattern = f"{{:{',' if grouping else ''}.{digits}f}}"
    return _german_separators(pattern.format(float(value)))


def format_currency(value: float) -> str:
    return f"{format_decimal(value or 0.0, 2, grouping=True)} €"


def format_number(value: float) -> str:
    return _german_separators(f"{round(value or 0):,}")


def format_percentage(fraction: Optional[float], digits: int = 1) -> str:
    """0.125 -> '12,5 %'."""
    if fraction is None or pd.isna(fraction):
        return ""
    return f"{format_decimal(fraction * 100, digits)} %"


def format_change(percent: Optional[float], digits: int = 1) -> str:
    """Signed percent change, e.g. 12.5 -> '+12,5 %'; None -> ''."""
    if percent is None or pd.isna(percent):
        return ""
    sign = "+" if percent > 0 else ""
    return f"{sign}{format_decimal(percent, digits)} %"


def format_date(value: DateLike) -> str:
    if value is None or pd.isna(value):
        return ""
    return value.strftime(DATE_FORMAT)


def format_datetime(value: DateLike) -> str:
    """'DD.MM.YYYY HH:MM', with seconds only when they are not zero."""
    if value is None or pd.isna(value):
        return ""
    if getattr(value, "second", 0):
        return value.strftime(f"{DATE_FORMAT} %H:%M:%S")
    return value.strftime(f"{DATE_FORMAT} %H:%M")


def german_month_name(month: int) -> str:
    if not 1 <= month <= 12:
        raise ValueError(f"month out of range: {month}")
    return GERMAN_MONTHS[month - 1]
