# ========================================
# staffhub/schemas/application.py
# ========================================

from pydantic import BaseModel, Field
from typing import Optional, Any, List
from datetime import datetime

from staffhub.models.application import Availability, ProposedRate
from staffhub.models.application_history import DecisionReason

# 1. Input: Create Application
class ApplicationCreate(BaseModel):
    requirement_id: str
    resource_id: str
    notes: Optional[str] = Field(default=None, max_length=1000)
    proposed_rate: Optional[ProposedRate] = None
    availability: Optional[Availability] = None

# 2. Input: Update Status (target is checked against the full status list by the lifecycle)
class ApplicationStatusUpdate(BaseModel):
    status: str
    notes: Optional[str] = Field(default=None, max_length=1000)
    decision_reason: Optional[DecisionReason] = None
    notify_candidate: Optional[bool] = None
    notify_client: Optional[bool] = None
    follow_up_required: Optional[bool] = None
    follow_up_date: Optional[datetime] = None
    follow_up_notes: Optional[str] = Field(default=None, max_length=500)

# 3. Input: Update Details
class ApplicationUpdate(BaseModel):
    """Only these fields can change outside of a status transition"""
    notes: Optional[str] = Field(default=None, max_length=1000)
    proposed_rate: Optional[ProposedRate] = None
    availability: Optional[Availability] = None

# 4. Output: Application
class ApplicationResponse(BaseModel):
    id: str
    requirement_id: str
    resource_id: str
    status: str
    notes: Optional[str] = None
    proposed_rate: Optional[ProposedRate] = None
    availability: Optional[Availability] = None
    organization_id: str
    workflow_instance_id: Optional[str] = None
    workflow_status: str
    current_workflow_step: int
    created_by: str
    updated_by: str
    created_at: datetime
    updated_at: datetime

    # Populated summaries
    requirement: Optional[dict] = None
    resource: Optional[dict] = None

# 5. Output: Paginated list
class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    pages: int

class ApplicationListResponse(BaseModel):
    applications: List[ApplicationResponse]
    pagination: Pagination

# 6. Output: Status change
class StatusChangeResponse(BaseModel):
    message: str
    application: ApplicationResponse
    status_category: str
    previous_status: str
    new_status: str

# 7. History entry
class HistoryEntryResponse(BaseModel):
    id: str
    application_id: str
    previous_status: Optional[str] = None
    status: str
    notes: Optional[str] = None
    decision_reason: Optional[DecisionReason] = None
    notify_candidate: bool = False
    notify_client: bool = False
    follow_up_required: bool = False
    follow_up_date: Optional[datetime] = None
    follow_up_notes: Optional[str] = None
    organization_id: Optional[str] = None
    created_by: str
    created_at: datetime

class ApplicationHistoryResponse(BaseModel):
    application: dict[str, Any]
    history: List[HistoryEntryResponse]

# 8. Status mapping
class StatusMappingResponse(BaseModel):
    active: List[str]
    inactive: List[str]
    all: List[str]
