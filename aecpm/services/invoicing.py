"""
Invoice bookkeeping.

Keeps the derived money columns consistent (line totals, invoice total, paid
amount, balance) and prorates invoice payments back onto the services that
were billed, which drives the draft lines and the printable statement.
"""
import time
import uuid
from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, Iterable, List, Optional

from sqlalchemy.orm import Session

from ..models.models import Invoice, InvoiceItem, Payment, Project, Service


CENT = Decimal("0.01")


def to_money(value) -> Decimal:
    if value is None:
        return Decimal("0.00")
    return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)


def generate_invoice_number() -> str:
    # INV- + last 6 digits of the epoch in milliseconds
    return f"INV-{str(int(time.time() * 1000))[-6:]}"


def build_item(description: str, quantity, unit_price, service_id: Optional[uuid.UUID] = None) -> InvoiceItem:
    qty = Decimal(str(quantity if quantity is not None else 1))
    price = to_money(unit_price)
    return InvoiceItem(
        service_id=service_id,
        description=description,
        quantity=qty,
        unit_price=price,
        total_price=to_money(qty * price),
    )


def recompute_invoice(invoice: Invoice) -> Invoice:
    """Refresh total, paid and balance from the invoice's items and payments."""
    invoice.total_amount = to_money(sum((to_money(i.total_price) for i in invoice.items), Decimal("0")))
    invoice.paid_amount = to_money(sum((to_money(p.amount) for p in invoice.payments), Decimal("0")))
    invoice.balance_due = invoice.total_amount - invoice.paid_amount
    return invoice


def add_payment(invoice: Invoice, amount, payment_date: Optional[date] = None, payment_method: Optional[str] = None, notes: Optional[str] = None) -> Payment:
    payment = Payment(
        amount=to_money(amount),
        payment_date=payment_date or date.today(),
        payment_method=payment_method or "cash",
        notes=notes,
    )
    invoice.payments.append(payment)
    recompute_invoice(invoice)
    return payment


def project_invoices(db: Session, project: Project) -> List[Invoice]:
    return (
        db.query(Invoice)
        .filter(Invoice.project_id == project.id, Invoice.organization_id == project.organization_id)
        .order_by(Invoice.created_at.desc())
        .all()
    )


def project_services(db: Session, project: Project) -> List[Service]:
    return (
        db.query(Service)
        .filter(Service.project_id == project.id, Service.organization_id == project.organization_id)
        .order_by(Service.name.asc())
        .all()
    )


def available_services(db: Session, project: Project) -> List[Service]:
    """Project services not yet referenced by any of the project's invoice items."""
    billed = {
        item.service_id
        for inv in project_invoices(db, project)
        for item in inv.items
        if item.service_id
    }
    return [s for s in project_services(db, project) if s.id not in billed]


def service_payment_states(invoices: Iterable[Invoice]) -> Dict[uuid.UUID, dict]:
    """Split each invoice's payments across its service lines by line-total share.

    Returns service_id -> {"amount_paid", "last_payment_date"} accumulated across
    every invoice that bills the service.
    """
    states: Dict[uuid.UUID, dict] = {}
    for inv in invoices:
        total_payments = sum(float(p.amount or 0) for p in inv.payments)
        latest = max((p.payment_date for p in inv.payments if p.payment_date), default=None)
        items_total = sum(float(i.total_price or 0) for i in inv.items) or 1
        for item in inv.items:
            if not item.service_id:
                continue
            state = states.setdefault(item.service_id, {"amount_paid": 0.0, "last_payment_date": None})
            state["amount_paid"] += total_payments * (float(item.total_price or 0) / items_total)
            if latest and (state["last_payment_date"] is None or latest > state["last_payment_date"]):
                state["last_payment_date"] = latest
    return states


def classify_services(services: Iterable[Service], states: Dict[uuid.UUID, dict]) -> dict:
    """Bucket services into paid / current / future for the printable statement."""
    paid, current, future = [], [], []
    total_cost = 0.0
    total_paid = 0.0
    for s in services:
        state = states.get(s.id) or {"amount_paid": 0.0, "last_payment_date": None}
        price = float(s.unit_price or 0)
        amount_paid = state["amount_paid"]
        total_cost += price
        total_paid += amount_paid
        row = {
            "service_id": str(s.id),
            "name": s.name,
            "unit_price": price,
            "amount_paid": amount_paid,
            "payment_date": state["last_payment_date"],
        }
        if amount_paid >= price:
            paid.append(row)
        elif amount_paid > 0:
            row["balance_due"] = price - amount_paid
            current.append(row)
        else:
            future.append(row)
    current_due = sum(r["balance_due"] for r in current)
    return {
        "paid": paid,
        "current": current,
        "future": future,
        "total_project_cost": total_cost,
        "total_paid": total_paid,
        "current_due": current_due,
        "balance_to_finish": total_cost - total_paid - current_due,
    }


def draft_items(db: Session, project: Project) -> List[dict]:
    """Every project service as a one-unit draft line with its prorated payment state."""
    states = service_payment_states(project_invoices(db, project))
    rows = []
    for s in project_services(db, project):
        state = states.get(s.id) or {"amount_paid": 0.0, "last_payment_date": None}
        price = float(s.unit_price or 0)
        rows.append({
            "service_id": str(s.id),
            "description": s.name,
            "quantity": 1,
            "unit_price": price,
            "total_price": price,
            "payment_status": "paid" if state["amount_paid"] >= price else "unpaid",
            "payment_date": state["last_payment_date"].isoformat() if state["last_payment_date"] else None,
            "amount_paid": round(state["amount_paid"], 2),
        })
    return rows
