import os
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

from fastapi import HTTPException

from ..storage.provider import RECEIPTS_BUCKET, bucket_key


DEFAULT_EXPENSE_CATEGORY = "Expense"

DEFAULT_CATEGORIES = (
    "Office Supplies",
    "Travel",
    "Meals & Entertainment",
    "Professional Services",
    "Marketing",
    "Utilities",
    "Equipment",
    "Software",
    "Insurance",
    "Other",
)


def compute_tax(amount, tax_rate, manual_override: bool = False, manual_amount=None) -> Decimal:
    """Tax for an expense: amount * rate / 100 rounded to cents, unless entered by hand."""
    if manual_override:
        return Decimal(str(manual_amount or 0)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    raw = Decimal(str(amount or 0)) * Decimal(str(tax_rate or 0)) / Decimal("100")
    return raw.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def resolve_payment_method(method: Optional[str], custom: Optional[str]) -> str:
    method = (method or "").strip()
    if not method:
        raise HTTPException(status_code=400, detail="Payment method is required")
    if method == "Other":
        custom = (custom or "").strip()
        if not custom:
            raise HTTPException(status_code=400, detail="Describe the payment method when choosing Other")
        return custom
    return method


def receipt_key(owner_id, expense_id, filename: str) -> str:
    ext = os.path.splitext(filename or "")[1].lstrip(".").lower() or "bin"
    return bucket_key(RECEIPTS_BUCKET, str(owner_id), str(expense_id), f"receipt.{ext}")
