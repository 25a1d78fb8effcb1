from typing import Any, Dict, List, Optional
from datetime import datetime
from bson import ObjectId
from pydantic import Field, field_validator

from .base import EmbeddedModel, MongoBaseModel, PyObjectId
from .enums import ApplicationType, InstanceStatus, RoleTag, StepAction, StepStatus


def _new_step_id() -> str:
    return str(ObjectId())


# ===========================
# TEMPLATE (admin-authored)
# ===========================

class WorkflowStep(EmbeddedModel):
    step_id: str = Field(default_factory=_new_step_id)
    name: str = Field(min_length=1, max_length=100)
    order: int = Field(ge=1)
    role: RoleTag
    action: StepAction
    required: bool = True
    auto_advance: bool = False
    description: Optional[str] = Field(default=None, max_length=500)


class WorkflowSettings(EmbeddedModel):
    allow_parallel_processing: bool = False
    max_processing_time: int = 72  # hours
    auto_escalate_after: int = 24  # hours
    require_comments: bool = True


def validate_step_orders(steps: List[WorkflowStep]) -> List[WorkflowStep]:
    """Steps are kept sorted; orders must be unique and run 1..n."""
    ordered = sorted(steps, key=lambda step: step.order)
    orders = [step.order for step in ordered]
    if orders != list(range(1, len(ordered) + 1)):
        raise ValueError(f"Step orders must be unique and consecutive from 1, got {orders}")
    return ordered


class WorkflowConfiguration(MongoBaseModel):
    name: str = Field(min_length=1, max_length=100)
    description: Optional[str] = Field(default=None, max_length=500)
    is_active: bool = True
    is_default: bool = False
    application_types: List[ApplicationType] = Field(min_length=1)
    steps: List[WorkflowStep] = []
    settings: WorkflowSettings = Field(default_factory=WorkflowSettings)
    created_by: PyObjectId
    updated_by: PyObjectId
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    @field_validator("steps")
    @classmethod
    def sort_steps(cls, steps):
        return validate_step_orders(steps)


# ===========================
# INSTANCE (one per application)
# ===========================

class WorkflowStepInstance(EmbeddedModel):
    step_id: str
    step_name: str
    order: int
    role: str
    action: str
    status: StepStatus = StepStatus.PENDING
    required: bool = True
    auto_advance: bool = False
    completed_at: Optional[datetime] = None
    performed_by: Optional[PyObjectId] = None
    action_taken: Optional[str] = None
    comments: Optional[str] = Field(default=None, max_length=1000)
    metadata: Dict[str, Any] = {}


class WorkflowInstance(MongoBaseModel):
    application_id: PyObjectId
    workflow_configuration_id: PyObjectId
    current_step: int = 1
    status: InstanceStatus = InstanceStatus.ACTIVE
    steps: List[WorkflowStepInstance] = []
    started_at: datetime = Field(default_factory=datetime.utcnow)
    completed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    def step_at(self, order: int) -> Optional[WorkflowStepInstance]:
        for step in self.steps:
            if step.order == order:
                return step
        return None
