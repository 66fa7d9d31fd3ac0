# ================================
# INVOICE UTILITIES (utils/invoice_utils.py)
# ================================

"""
Invoice arithmetic, invoice numbering and recurrence dates.

All money values are Decimals rounded half-up to cents. Totals are always
derived from line items:

    grand_total = subtotal + subtotal * tax_rate / 100
"""

from decimal import Decimal, ROUND_HALF_UP
from datetime import date
from typing import Iterable, Any, Dict, Optional
from dateutil.relativedelta import relativedelta
from sqlalchemy.orm import Session

CENTS = Decimal("0.01")
INVOICE_NUMBER_PREFIX = "INV"

def to_decimal(value: Any) -> Decimal:
    if value is None:
        return Decimal("0")
    if isinstance(value, Decimal):
        return value
    # str() keeps float inputs like 0.1 from turning into binary noise
    return Decimal(str(value))

def money(value: Any) -> Decimal:
    """Round a value to cents"""
    return to_decimal(value).quantize(CENTS, rounding=ROUND_HALF_UP)

def _get(item: Any, key: str) -> Any:
    if isinstance(item, dict):
        return item.get(key)
    return getattr(item, key)

def calculate_line_total(quantity: Any, unit_price: Any) -> Decimal:
    return money(to_decimal(quantity) * to_decimal(unit_price))

def calculate_totals(line_items: Iterable[Any], tax_rate: Any) -> Dict[str, Decimal]:
    """
    Compute subtotal, tax and grand total for a set of line items

    Args:
        line_items: ORM line items, schemas or dicts with quantity and unit_price
        tax_rate: percentage, e.g. 8.25

    Returns:
        Dict with subtotal, tax_amount and grand_total
    """
    subtotal = sum(
        (calculate_line_total(_get(item, "quantity"), _get(item, "unit_price")) for item in line_items),
        Decimal("0.00")
    )
    subtotal = money(subtotal)
    tax_amount = money(subtotal * to_decimal(tax_rate) / Decimal("100"))
    return {
        "subtotal": subtotal,
        "tax_amount": tax_amount,
        "grand_total": money(subtotal + tax_amount),
    }

def apply_totals(invoice) -> None:
    """Refresh line totals and the cached invoice totals from the line items"""
    for item in invoice.line_items:
        item.line_total = calculate_line_total(item.quantity, item.unit_price)
    totals = calculate_totals(invoice.line_items, invoice.tax_rate)
    invoice.subtotal = totals["subtotal"]
    invoice.tax_amount = totals["tax_amount"]
    invoice.grand_total = totals["grand_total"]

# ================================
# INVOICE NUMBERS
# ================================

def format_invoice_number(year: int, sequence: int) -> str:
    return f"{INVOICE_NUMBER_PREFIX}-{year}-{sequence:04d}"

def parse_invoice_sequence(invoice_number: str) -> Optional[int]:
    """Trailing sequence of an INV-YYYY-NNNN number, None for foreign formats"""
    parts = invoice_number.rsplit("-", 1)
    if len(parts) != 2 or not parts[1].isdigit():
        return None
    return int(parts[1])

def generate_invoice_number(db: Session, year: Optional[int] = None) -> str:
    """Next free invoice number for the given year (default: current year)"""
    from app.models.business import Invoice

    year = year or date.today().year
    prefix = f"{INVOICE_NUMBER_PREFIX}-{year}-"

    numbers = db.query(Invoice.invoice_number).filter(
        Invoice.invoice_number.like(f"{prefix}%")
    ).all()

    sequences = [parse_invoice_sequence(number) for (number,) in numbers]
    highest = max((s for s in sequences if s is not None), default=0)

    return format_invoice_number(year, highest + 1)

# ================================
# RECURRENCE
# ================================

FREQUENCY_DELTAS = {
    "WEEKLY": relativedelta(weeks=1),
    "MONTHLY": relativedelta(months=1),
    "QUARTERLY": relativedelta(months=3),
    "YEARLY": relativedelta(years=1),
}

def calculate_next_run_date(current: date, frequency: str) -> date:
    """
    Advance a date by one recurrence period.

    Month arithmetic clamps to the end of the month (Jan 31 + 1 month = Feb 28/29).
    """
    try:
        delta = FREQUENCY_DELTAS[frequency]
    except KeyError:
        raise ValueError(f"Unknown frequency: {frequency}")
    return current + delta

# ================================
# OVERDUE HELPERS
# ================================

OPEN_STATUSES = ("Unpaid", "Overdue")

def days_overdue(due_date: date, status: str, today: Optional[date] = None) -> int:
    """Days past due for an open invoice, 0 otherwise"""
    today = today or date.today()
    if status not in OPEN_STATUSES or due_date >= today:
        return 0
    return (today - due_date).days

def is_overdue(due_date: date, status: str, today: Optional[date] = None) -> bool:
    return days_overdue(due_date, status, today) > 0
