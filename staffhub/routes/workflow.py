# ========================================
# staffhub/routes/workflow.py
# ========================================

from fastapi import APIRouter, Depends, HTTPException, Query
from typing import Literal, Optional

from staffhub.config import DEFAULT_PAGE_LIMIT, MAX_PAGE_LIMIT
from staffhub.database import get_db
from staffhub.exceptions import ValidationError
from staffhub.models.enums import ApplicationType, InstanceStatus
from staffhub.models.principal import Principal
from staffhub.models.workflow import WorkflowConfiguration
from staffhub.schemas.workflow import (
    WorkflowConfigurationCreate,
    WorkflowConfigurationUpdate,
    WorkflowConfigurationResponse,
    WorkflowInstanceResponse,
    ProcessStepRequest
)
from staffhub.services.application_queries import paginate
from staffhub.services.permissions import can_manage_workflows, can_operate_workflows
from staffhub.services.workflow_engine import WorkflowEngine
from staffhub.services.workflow_templates import WorkflowTemplates
from staffhub.utils.auth import get_current_user

router = APIRouter(prefix="/workflows", tags=["Workflows"])

CLEARABLE_FIELDS = ("description",)


# ---------- ROLE GUARDS ----------
def require_workflow_manager(current_user: Principal = Depends(get_current_user)) -> Principal:
    if not can_manage_workflows(current_user):
        raise HTTPException(status_code=403, detail="Only organization owners can manage workflow configurations")
    return current_user


def require_workflow_operator(current_user: Principal = Depends(get_current_user)) -> Principal:
    if not can_operate_workflows(current_user):
        raise HTTPException(status_code=403, detail="Only organization administrators can process workflows")
    return current_user


# ===========================
# INSTANCES
# ===========================

# ✅ 1. LIST INSTANCES
@router.get("/instances")
async def list_workflow_instances(
    status: Optional[InstanceStatus] = Query(None),
    application_id: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_PAGE_LIMIT, ge=1, le=MAX_PAGE_LIMIT),
    sort_order: Literal["asc", "desc"] = Query("desc"),
    current_user: Principal = Depends(require_workflow_operator)
):
    engine = WorkflowEngine(get_db())
    instances, total = await engine.list(
        status=status.value if status else None,
        application_id=application_id,
        page=page,
        limit=limit,
        sort_order=sort_order
    )
    return {
        "instances": [instance.model_dump() for instance in instances],
        "pagination": paginate(page, limit, total)
    }


# ✅ 2. GET ONE INSTANCE
@router.get("/instances/{instance_id}", response_model=WorkflowInstanceResponse)
async def get_workflow_instance(
    instance_id: str,
    current_user: Principal = Depends(require_workflow_operator)
):
    engine = WorkflowEngine(get_db())
    return (await engine.get(instance_id)).model_dump()


# ✅ 3. PROCESS A STEP
@router.post("/instances/{instance_id}/process-step", response_model=WorkflowInstanceResponse)
async def process_workflow_step(
    instance_id: str,
    request: ProcessStepRequest,
    current_user: Principal = Depends(require_workflow_operator)
):
    """Complete the current step. Only the step at `current_step` can be processed."""

    engine = WorkflowEngine(get_db())
    instance = await engine.process_step(
        instance_id,
        current_user,
        request.step_order,
        request.action,
        comments=request.comments,
        metadata=request.metadata
    )
    return instance.model_dump()


# ✅ 4. CANCEL AN INSTANCE
@router.post("/instances/{instance_id}/cancel", response_model=WorkflowInstanceResponse)
async def cancel_workflow_instance(
    instance_id: str,
    current_user: Principal = Depends(require_workflow_operator)
):
    engine = WorkflowEngine(get_db())
    return (await engine.cancel(instance_id, current_user)).model_dump()


# ===========================
# CONFIGURATIONS
# ===========================

# ✅ 5. LIST CONFIGURATIONS
@router.get("")
async def list_workflow_configurations(
    is_active: Optional[bool] = Query(None),
    application_types: Optional[str] = Query(None, description="Comma-separated application types"),
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_PAGE_LIMIT, ge=1, le=MAX_PAGE_LIMIT),
    sort_by: Literal["created_at", "updated_at", "name"] = Query("created_at"),
    sort_order: Literal["asc", "desc"] = Query("desc"),
    current_user: Principal = Depends(require_workflow_manager)
):
    types = None
    if application_types:
        try:
            types = [ApplicationType(t.strip()).value for t in application_types.split(",") if t.strip()]
        except ValueError:
            raise ValidationError(
                f"Invalid application type. Valid types are: {', '.join(t.value for t in ApplicationType)}"
            )

    templates = WorkflowTemplates(get_db())
    configurations, total = await templates.list(
        is_active=is_active,
        application_types=types,
        page=page,
        limit=limit,
        sort_by=sort_by,
        sort_order=sort_order
    )
    return {
        "configurations": [configuration.model_dump() for configuration in configurations],
        "pagination": paginate(page, limit, total)
    }


# ✅ 6. CREATE CONFIGURATION
@router.post("", response_model=WorkflowConfigurationResponse, status_code=201)
async def create_workflow_configuration(
    configuration: WorkflowConfigurationCreate,
    current_user: Principal = Depends(require_workflow_manager)
):
    """Create a template. Marking it default clears the flag on overlapping templates."""

    template = WorkflowConfiguration(
        **configuration.model_dump(exclude_none=True),
        created_by=current_user.id,
        updated_by=current_user.id
    )
    templates = WorkflowTemplates(get_db())
    return (await templates.create(template)).model_dump()


# ✅ 7. GET ONE CONFIGURATION
@router.get("/{configuration_id}", response_model=WorkflowConfigurationResponse)
async def get_workflow_configuration(
    configuration_id: str,
    current_user: Principal = Depends(require_workflow_manager)
):
    templates = WorkflowTemplates(get_db())
    return (await templates.get(configuration_id)).model_dump()


# ✅ 8. UPDATE CONFIGURATION
@router.put("/{configuration_id}", response_model=WorkflowConfigurationResponse)
async def update_workflow_configuration(
    configuration_id: str,
    changes: WorkflowConfigurationUpdate,
    current_user: Principal = Depends(require_workflow_manager)
):
    """Running instances keep the steps they were created with."""

    # Only the description can be cleared with null
    fields = {
        key: value
        for key, value in changes.model_dump(exclude_unset=True).items()
        if value is not None or key in CLEARABLE_FIELDS
    }
    templates = WorkflowTemplates(get_db())
    updated = await templates.update(configuration_id, fields, current_user.id)
    return updated.model_dump()


# ✅ 9. DELETE CONFIGURATION
@router.delete("/{configuration_id}")
async def delete_workflow_configuration(
    configuration_id: str,
    current_user: Principal = Depends(require_workflow_manager)
):
    templates = WorkflowTemplates(get_db())
    await templates.delete(configuration_id)
    return {"message": "Workflow configuration deleted successfully"}
