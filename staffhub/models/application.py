from typing import Optional
from datetime import datetime
from pydantic import Field

from .base import EmbeddedModel, MongoBaseModel, PyObjectId
from .enums import ApplicationStatus, RateType, WorkflowStatus


class ProposedRate(EmbeddedModel):
    amount: Optional[float] = Field(default=None, ge=0)
    currency: str = "USD"
    type: RateType = RateType.HOURLY


class Availability(EmbeddedModel):
    start_date: Optional[datetime] = None
    hours_per_week: Optional[float] = Field(default=None, ge=0, le=168)


class Application(MongoBaseModel):
    requirement_id: PyObjectId
    resource_id: PyObjectId
    status: ApplicationStatus = ApplicationStatus.APPLIED
    notes: Optional[str] = Field(default=None, max_length=1000)
    proposed_rate: Optional[ProposedRate] = None
    availability: Optional[Availability] = None
    organization_id: PyObjectId

    # Weak link to the workflow instance plus a denormalized copy of its progress
    workflow_instance_id: Optional[PyObjectId] = None
    workflow_status: WorkflowStatus = WorkflowStatus.NOT_STARTED
    current_workflow_step: int = Field(default=1, ge=1)

    created_by: PyObjectId
    updated_by: PyObjectId
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)
