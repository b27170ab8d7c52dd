import uuid
from datetime import date
from typing import Optional
from pydantic import BaseModel, EmailStr, field_validator


class ExpenseBase(BaseModel):
    description: str
    amount: float
    payment_method: str
    custom_payment_method: Optional[str] = None
    category: Optional[str] = None
    expense_date: Optional[date] = None
    vendor_id: Optional[uuid.UUID] = None
    tax_rate: Optional[float] = 0
    tax_amount: Optional[float] = None
    manual_tax_override: bool = False

    @field_validator('category', 'custom_payment_method', mode='before')
    @classmethod
    def empty_to_none(cls, v):
        if v is None:
            return None
        v = str(v).strip()
        return v or None


class ExpenseCreate(ExpenseBase):
    pass


class ExpenseUpdate(BaseModel):
    description: Optional[str] = None
    amount: Optional[float] = None
    payment_method: Optional[str] = None
    custom_payment_method: Optional[str] = None
    category: Optional[str] = None
    expense_date: Optional[date] = None
    vendor_id: Optional[uuid.UUID] = None
    tax_rate: Optional[float] = None
    tax_amount: Optional[float] = None
    manual_tax_override: Optional[bool] = None


class CategoryCreate(BaseModel):
    name: str
    description: Optional[str] = None


class CategoryUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None


class VendorCreate(BaseModel):
    name: str
    default_category_id: Optional[uuid.UUID] = None
    new_category_name: Optional[str] = None
    email: Optional[EmailStr] = None
    phone: Optional[str] = None
    address: Optional[str] = None

    @field_validator('email', 'phone', 'address', 'new_category_name', mode='before')
    @classmethod
    def empty_to_none(cls, v):
        if v is None:
            return None
        v = str(v).strip()
        return v or None


class VendorUpdate(BaseModel):
    name: Optional[str] = None
    default_category_id: Optional[uuid.UUID] = None
    email: Optional[EmailStr] = None
    phone: Optional[str] = None
    address: Optional[str] = None
