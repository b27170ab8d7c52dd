from datetime import date
from typing import Optional, List
from pydantic import BaseModel


class ProposalUpsert(BaseModel):
    title: Optional[str] = None
    work_summary: Optional[str] = None
    scope_of_work: Optional[List[str]] = None
    project_lead: Optional[str] = None
    site_engineer: Optional[str] = None
    supervisor: Optional[str] = None
    additional_notes: Optional[str] = None
    approval_status: Optional[str] = None
    approved_by: Optional[str] = None
    approval_date: Optional[date] = None
