import uuid
from datetime import date
from typing import Optional, List
from pydantic import BaseModel, Field


class InvoiceItemInput(BaseModel):
    description: str
    quantity: float = 1
    unit_price: float
    service_id: Optional[uuid.UUID] = None


class InvoiceCreate(BaseModel):
    invoice_number: Optional[str] = None
    status: str = "draft"
    issue_date: Optional[date] = None
    due_date: Optional[date] = None
    notes: Optional[str] = None
    items: List[InvoiceItemInput] = Field(default_factory=list)


class InvoiceUpdate(BaseModel):
    invoice_number: Optional[str] = None
    status: Optional[str] = None
    issue_date: Optional[date] = None
    due_date: Optional[date] = None
    notes: Optional[str] = None
    items: Optional[List[InvoiceItemInput]] = None


class InvoiceStatusUpdate(BaseModel):
    status: str


class InvoiceFromServices(BaseModel):
    service_ids: List[uuid.UUID]
    due_date: Optional[date] = None
    notes: Optional[str] = None


class PaymentCreate(BaseModel):
    amount: float
    payment_date: Optional[date] = None
    payment_method: Optional[str] = "cash"
    notes: Optional[str] = None
