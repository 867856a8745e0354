"""
Fixed-format field extraction from OCR text of a telecom bill.

Every pattern is applied independently to the whole text and the first
match wins. A miss leaves the field as None; extraction never raises.
"""

import re
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from .bill_types import BillingRecord

# Amount reported in the ledger "Difference" column is total minus this plan fee
PLAN_FEE = Decimal("399.00")

_AMOUNT = r"(\d[\d,]*(?:\.\d+)?)"
_DATE = r"\d{2}/\d{2}/\d{2}"

CORPORATE_ID_RE = re.compile(r"ABCD\d{6}")
ACCOUNT_NUMBER_RE = re.compile(r"ABCD\d{6}\s*(\d{10})")
PRIMARY_NUMBER_RE = re.compile(r"\d{10}(?=Php)")
BILL_NUMBER_RE = re.compile(r"Bill no\. (\d+)")
# Period end and due date may be printed back to back with no separator
BILLING_DATES_RE = re.compile(rf"({_DATE}) to ({_DATE})\s*({_DATE})")
SUBTOTAL_RE = re.compile(rf"Subtotal Php {_AMOUNT}")
VAT_RE = re.compile(rf"ADD\s*(?:\d+(?:\.\d+)?\s*)?% VAT \(Value Added Tax\) Php {_AMOUNT}")
TOTAL_RE = re.compile(rf"Total Php {_AMOUNT}")


def _first(pattern: re.Pattern, text: str, group: int = 0) -> str | None:
    match = pattern.search(text)
    if not match:
        return None
    return match.group(group)


def compute_difference(total: str | None) -> str | None:
    """
    Return ``total - 399`` formatted with exactly two decimals.

    None when total is missing or not a finite number.
    """
    if total is None:
        return None
    try:
        value = Decimal(str(total).replace(",", "").strip())
    except (InvalidOperation, ValueError):
        return None
    if not value.is_finite():
        return None
    difference = (value - PLAN_FEE).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    return f"{difference:.2f}"


def extract_billing_fields(text: str | None) -> BillingRecord:
    text = text or ""

    billing_period = None
    due_date = None
    dates = BILLING_DATES_RE.search(text)
    if dates:
        billing_period = f"{dates.group(1)} to {dates.group(2)}"
        due_date = dates.group(3)

    total = _first(TOTAL_RE, text, 1)

    return BillingRecord(
        corporate_id=_first(CORPORATE_ID_RE, text),
        account_number=_first(ACCOUNT_NUMBER_RE, text, 1),
        primary_number=_first(PRIMARY_NUMBER_RE, text),
        bill_number=_first(BILL_NUMBER_RE, text, 1),
        billing_period=billing_period,
        due_date=due_date,
        subtotal=_first(SUBTOTAL_RE, text, 1),
        vat=_first(VAT_RE, text, 1),
        total=total,
        difference=compute_difference(total),
    )
