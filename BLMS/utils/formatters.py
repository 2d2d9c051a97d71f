"""
Formatting helpers shared across Streamlit pages.
Currency formatting, status badges, date helpers.
"""

from decimal import Decimal, InvalidOperation
from datetime import datetime, date
from enum import Enum
from typing import Union


def format_currency(amount: Union[int, float, Decimal, str, None]) -> str:
    """Format amount as Indian Rupee currency string."""
    if amount is None:
        return "₹0.00"
    try:
        if isinstance(amount, str):
            amount = Decimal(amount)
        elif isinstance(amount, (int, float)):
            amount = Decimal(str(amount))
        return f"₹{amount:,.2f}"
    except (InvalidOperation, ValueError):
        return f"₹{amount}"


def format_date(dt: Union[datetime, date, None]) -> str:
    """Format date for display."""
    if dt is None:
        return "N/A"
    if isinstance(dt, datetime):
        return dt.strftime("%d %b %Y, %I:%M %p")
    return dt.strftime("%d %b %Y")


def status_badge(status: Union[str, Enum]) -> str:
    """Return a text badge for obligation and customer status values."""
    if isinstance(status, Enum):
        status = status.value
    badges = {
        "due": "Due",
        "partial": "Partially Paid",
        "paid": "Paid",
        "overdue": "Overdue",
        "active": "Active",
        "inactive": "Inactive",
    }
    return badges.get(status, str(status).replace("_", " ").title())


def to_decimal(value: Union[float, int, str]) -> Decimal:
    """Safely convert a Streamlit number_input value to Decimal."""
    return Decimal(str(value))


def to_rows(records) -> list:
    """Flatten dataclass records into dicts with enum values for st.dataframe."""
    rows = []
    for record in records:
        row = {}
        for key, value in vars(record).items():
            row[key] = value.value if isinstance(value, Enum) else value
        rows.append(row)
    return rows
