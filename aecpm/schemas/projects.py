import uuid
from datetime import date
from typing import Optional
from pydantic import BaseModel, field_validator


class ProjectBase(BaseModel):
    name: str
    client_name: str
    description: Optional[str] = None
    project_type: str = "residential_construction"
    status: str = "planning"
    client_email: Optional[str] = None
    client_phone: Optional[str] = None
    project_address: Optional[str] = None
    estimated_budget: Optional[float] = None
    actual_budget: Optional[float] = None
    start_date: Optional[date] = None
    estimated_completion_date: Optional[date] = None
    actual_completion_date: Optional[date] = None
    project_manager_id: Optional[uuid.UUID] = None

    @field_validator('description', 'client_email', 'client_phone', 'project_address', mode='before')
    @classmethod
    def empty_to_none(cls, v):
        if v is None:
            return None
        v = str(v).strip()
        return v or None

    @field_validator('estimated_budget', 'actual_budget', 'start_date', 'estimated_completion_date', 'actual_completion_date', 'project_manager_id', mode='before')
    @classmethod
    def blank_to_none(cls, v):
        # Form fields arrive as "" when left empty
        if isinstance(v, str) and not v.strip():
            return None
        return v


class ProjectCreate(ProjectBase):
    pass


class ProjectUpdate(BaseModel):
    name: Optional[str] = None
    client_name: Optional[str] = None
    description: Optional[str] = None
    project_type: Optional[str] = None
    status: Optional[str] = None
    client_email: Optional[str] = None
    client_phone: Optional[str] = None
    project_address: Optional[str] = None
    estimated_budget: Optional[float] = None
    actual_budget: Optional[float] = None
    start_date: Optional[date] = None
    estimated_completion_date: Optional[date] = None
    actual_completion_date: Optional[date] = None
    project_manager_id: Optional[uuid.UUID] = None


class TaskCreate(BaseModel):
    name: str
    description: Optional[str] = None
    status: str = "pending"
    estimated_hours: Optional[float] = None
    estimated_cost: Optional[float] = None


class TaskUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    status: Optional[str] = None
    estimated_hours: Optional[float] = None
    estimated_cost: Optional[float] = None


class AssignmentCreate(BaseModel):
    user_id: uuid.UUID
    hours_spent: float
    cost_incurred: float = 0
    notes: Optional[str] = None
    date_worked: Optional[date] = None


class ServiceCreate(BaseModel):
    name: str
    unit_price: float
    description: Optional[str] = None
    unit: str = "hour"
    payment_status: str = "unpaid"


class ServiceUpdate(BaseModel):
    name: Optional[str] = None
    unit_price: Optional[float] = None
    description: Optional[str] = None
    unit: Optional[str] = None
    payment_status: Optional[str] = None


class PaymentStatusUpdate(BaseModel):
    payment_status: str
