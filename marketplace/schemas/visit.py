"""
Schemas for visit requests and listing reports.
"""

from pydantic import BaseModel, Field, field_validator
from typing import List, Optional
from datetime import datetime
from marketplace.models.visit import ReportStatus, VisitStatus

REPORT_REASONS = ("fraud", "incorrect_details", "already_sold", "duplicate", "offensive", "other")


class VisitCreate(BaseModel):
    visit_date: datetime = Field(..., description="Requested date and time, must be in the future")
    message: Optional[str] = Field(None, max_length=1000)


class VisitStatusUpdate(BaseModel):
    status: VisitStatus = Field(..., description="approved or rejected by the owner, cancelled by the requester")


class VisitResponse(BaseModel):
    id: str
    property_id: str
    user_id: str
    visit_date: datetime
    message: Optional[str] = None
    status: VisitStatus
    created_at: datetime
    updated_at: datetime


class ReportCreate(BaseModel):
    reason: str = Field(..., description=f"One of: {', '.join(REPORT_REASONS)}")
    description: Optional[str] = Field(None, max_length=2000)

    @field_validator('reason')
    @classmethod
    def validate_reason(cls, v):
        v = v.strip().lower()
        if v not in REPORT_REASONS:
            raise ValueError(f"Reason must be one of: {', '.join(REPORT_REASONS)}")
        return v


class ReportResolve(BaseModel):
    status: ReportStatus = Field(..., description="resolved or dismissed")

    @field_validator('status')
    @classmethod
    def validate_status(cls, v):
        if v == ReportStatus.OPEN:
            raise ValueError("A report can only be resolved or dismissed")
        return v


class ReportResponse(BaseModel):
    id: str
    property_id: str
    user_id: str
    reason: str
    description: Optional[str] = None
    status: ReportStatus
    resolved_by_id: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class ReportListResponse(BaseModel):
    reports: List[ReportResponse]
    total: int
    page: int
    page_size: int
