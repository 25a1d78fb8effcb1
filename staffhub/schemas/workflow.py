# ========================================
# staffhub/schemas/workflow.py
# ========================================

from pydantic import BaseModel, Field, field_validator
from typing import Optional, Any, Dict, List
from datetime import datetime

from staffhub.models.enums import ApplicationType
from staffhub.models.workflow import WorkflowSettings, WorkflowStep, WorkflowStepInstance, validate_step_orders

# 1. Input: Create Workflow Configuration
class WorkflowConfigurationCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    description: Optional[str] = Field(default=None, max_length=500)
    application_types: List[ApplicationType] = Field(min_length=1)
    steps: List[WorkflowStep] = []
    settings: Optional[WorkflowSettings] = None
    is_active: bool = True
    is_default: bool = False

    @field_validator("steps")
    @classmethod
    def check_step_orders(cls, steps):
        return validate_step_orders(steps)

# 2. Input: Update Workflow Configuration
class WorkflowConfigurationUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    description: Optional[str] = Field(default=None, max_length=500)
    application_types: Optional[List[ApplicationType]] = Field(default=None, min_length=1)
    steps: Optional[List[WorkflowStep]] = None
    settings: Optional[WorkflowSettings] = None
    is_active: Optional[bool] = None
    is_default: Optional[bool] = None

    @field_validator("steps")
    @classmethod
    def check_step_orders(cls, steps):
        if steps is None:
            return steps
        return validate_step_orders(steps)

# 3. Input: Process a step explicitly
class ProcessStepRequest(BaseModel):
    step_order: int = Field(ge=1)
    action: str = Field(min_length=1, max_length=50)
    comments: Optional[str] = Field(default=None, max_length=1000)
    metadata: Dict[str, Any] = {}

# 4. Output: Configuration
class WorkflowConfigurationResponse(BaseModel):
    id: str
    name: str
    description: Optional[str] = None
    is_active: bool
    is_default: bool
    application_types: List[str]
    steps: List[WorkflowStep]
    settings: WorkflowSettings
    created_by: str
    updated_by: str
    created_at: datetime
    updated_at: datetime

# 5. Output: Instance
class WorkflowInstanceResponse(BaseModel):
    id: str
    application_id: str
    workflow_configuration_id: str
    current_step: int
    status: str
    steps: List[WorkflowStepInstance]
    started_at: datetime
    completed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime
