"""
Workflow instances: one running copy of a template bound to an application.

The template's steps are deep-copied into the instance when it is created,
so later edits to the template never reach running instances. The
application only keeps a weak pointer plus a denormalized status/step.

Two ways to move an instance forward:
  * advance_step: the soft path used by status changes; a missing step or a
    principal without the step's role is a logged no-op.
  * process_step: explicit processing by workflow operators; the same
    problems are reported as errors.

Every step write is a compare-and-set on (current_step, status=active), so
current_step only ever grows and completion is recorded once.
"""

import asyncio
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional

from loguru import logger
from pymongo import DESCENDING

from staffhub.exceptions import AuthorizationError, ConflictError, NotFoundError
from staffhub.models.enums import InstanceStatus, StepStatus, WorkflowStatus
from staffhub.models.principal import Principal
from staffhub.models.workflow import WorkflowConfiguration, WorkflowInstance, WorkflowStepInstance
from staffhub.services.collaborators import to_object_id
from staffhub.services.permissions import can_act

# Step writes still running after their caller was cancelled
_pending_writes = set()


@dataclass
class AdvanceResult:
    advanced: bool
    instance: Optional[WorkflowInstance] = None
    reason: Optional[str] = None

    @property
    def completed(self) -> bool:
        return self.instance is not None and self.instance.status == InstanceStatus.COMPLETED.value


class WorkflowEngine:
    def __init__(self, db):
        self.collection = db.workflow_instances
        self.applications = db.applications

    # ===========================
    # LOOKUPS
    # ===========================

    async def get(self, instance_id: str) -> WorkflowInstance:
        oid = to_object_id(instance_id)
        document = await self.collection.find_one({"_id": oid}) if oid else None
        if not document:
            raise NotFoundError("Workflow instance not found")
        return WorkflowInstance.from_mongo(document)

    async def find(self, instance_id: str) -> Optional[WorkflowInstance]:
        oid = to_object_id(instance_id)
        if oid is None:
            return None
        return WorkflowInstance.from_mongo(await self.collection.find_one({"_id": oid}))

    async def list(
        self,
        status: Optional[str] = None,
        application_id: Optional[str] = None,
        page: int = 1,
        limit: int = 10,
        sort_by: str = "created_at",
        sort_order: str = "desc",
    ):
        query = {}
        if status:
            query["status"] = status
        if application_id:
            query["application_id"] = str(application_id)

        direction = DESCENDING if sort_order == "desc" else 1
        cursor = (
            self.collection.find(query)
            .sort(sort_by, direction)
            .skip((page - 1) * limit)
            .limit(limit)
        )
        instances = [WorkflowInstance.from_mongo(doc) for doc in await cursor.to_list(limit)]
        total = await self.collection.count_documents(query)
        return instances, total

    # ===========================
    # INSTANTIATION
    # ===========================

    async def instantiate(self, application_id: str, template: WorkflowConfiguration) -> WorkflowInstance:
        instance = WorkflowInstance(
            application_id=str(application_id),
            workflow_configuration_id=template.id,
            current_step=1,
            status=InstanceStatus.ACTIVE,
            steps=[
                WorkflowStepInstance(
                    step_id=step.step_id or f"step_{step.order}",
                    step_name=step.name,
                    order=step.order,
                    role=step.role,
                    action=step.action,
                    status=StepStatus.PENDING,
                    required=step.required,
                    auto_advance=step.auto_advance,
                )
                for step in template.steps
            ],
        )
        # A template without steps has nothing to wait for
        if not instance.steps:
            instance = instance.model_copy(update={
                "status": InstanceStatus.COMPLETED.value,
                "completed_at": instance.started_at,
            })

        result = await self.collection.insert_one(instance.to_mongo())
        instance = instance.model_copy(update={"id": str(result.inserted_id)})

        workflow_status = WorkflowStatus.IN_PROGRESS
        if instance.status == InstanceStatus.COMPLETED.value:
            workflow_status = WorkflowStatus.COMPLETED

        await self.applications.update_one(
            {"_id": to_object_id(application_id)},
            {"$set": {
                "workflow_instance_id": instance.id,
                "workflow_status": workflow_status.value,
                "current_workflow_step": 1,
            }},
        )
        logger.info(f"Workflow started for application {application_id}: {template.name}")
        return instance

    # ===========================
    # STEP TRANSITIONS
    # ===========================

    async def advance_step(
        self,
        instance_id: str,
        principal: Principal,
        action: str,
        comments: Optional[str] = None,
    ) -> AdvanceResult:
        instance = await self.find(instance_id)
        if instance is None:
            logger.info(f"Workflow instance {instance_id} no longer exists, nothing to advance")
            return AdvanceResult(advanced=False, reason="instance_missing")

        if instance.status != InstanceStatus.ACTIVE.value:
            return AdvanceResult(advanced=False, instance=instance, reason="instance_not_active")

        step = instance.step_at(instance.current_step)
        if step is None:
            logger.info(f"No current step found for workflow instance {instance.id}")
            return AdvanceResult(advanced=False, instance=instance, reason="no_current_step")

        if not can_act(principal, step.role):
            logger.info(
                f"User {principal.id} does not have permission for step "
                f"'{step.step_name}' (role={step.role}) of workflow instance {instance.id}"
            )
            return AdvanceResult(advanced=False, instance=instance, reason="permission_denied")

        updated = await self._complete_current_step(instance, principal, action, comments, {})
        if updated is None:
            return AdvanceResult(advanced=False, instance=instance, reason="concurrent_update")
        return AdvanceResult(advanced=True, instance=updated)

    async def process_step(
        self,
        instance_id: str,
        principal: Principal,
        step_order: int,
        action: str,
        comments: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> WorkflowInstance:
        instance = await self.get(instance_id)

        step = instance.step_at(step_order)
        if step is None:
            raise NotFoundError("Workflow step not found")

        if not can_act(principal, step.role):
            raise AuthorizationError(
                f"Insufficient permissions for workflow step '{step.step_name}' "
                f"(requires role {step.role})"
            )

        if instance.status != InstanceStatus.ACTIVE.value:
            raise ConflictError(f"Workflow instance is {instance.status}")

        if step_order != instance.current_step:
            raise ConflictError(
                f"Step {step_order} is not the current step (current step is {instance.current_step})"
            )

        updated = await self._complete_current_step(instance, principal, action, comments, metadata or {})
        if updated is None:
            raise ConflictError("Workflow instance was updated concurrently, reload and retry")
        return updated

    async def cancel(self, instance_id: str, principal: Principal) -> WorkflowInstance:
        instance = await self.get(instance_id)
        if instance.status != InstanceStatus.ACTIVE.value:
            raise ConflictError(f"Workflow instance is {instance.status}")

        now = datetime.utcnow()
        result = await self.collection.update_one(
            {"_id": to_object_id(instance.id), "status": InstanceStatus.ACTIVE.value},
            {"$set": {
                "status": InstanceStatus.CANCELLED.value,
                "cancelled_at": now,
                "updated_at": now,
            }},
        )
        if result.modified_count == 0:
            raise ConflictError("Workflow instance was updated concurrently, reload and retry")

        await self.applications.update_one(
            {"_id": to_object_id(instance.application_id), "workflow_instance_id": instance.id},
            {"$set": {"workflow_status": WorkflowStatus.CANCELLED.value}},
        )
        logger.info(f"Workflow instance {instance.id} cancelled by {principal.id}")
        return await self.get(instance.id)

    async def _complete_current_step(
        self,
        instance: WorkflowInstance,
        principal: Principal,
        action: str,
        comments: Optional[str],
        metadata: Dict[str, Any],
    ) -> Optional[WorkflowInstance]:
        now = datetime.utcnow()
        expected_step = instance.current_step

        steps: List[dict] = []
        for step in instance.steps:
            data = step.model_dump()
            if step.order == expected_step:
                data.update({
                    "status": StepStatus.COMPLETED.value,
                    "completed_at": now,
                    "performed_by": principal.id,
                    "action_taken": action,
                    "comments": comments,
                    "metadata": {**step.metadata, **metadata},
                })
            steps.append(data)

        next_step = expected_step + 1
        changes = {"steps": steps, "current_step": next_step, "updated_at": now}
        finished = next_step > len(instance.steps)
        if finished:
            changes["status"] = InstanceStatus.COMPLETED.value
            changes["completed_at"] = now

        application_changes = {"current_workflow_step": next_step}
        if finished:
            application_changes["workflow_status"] = WorkflowStatus.COMPLETED.value

        # A cancelled caller must not leave the application behind the instance
        write = asyncio.ensure_future(self._write_step(instance, expected_step, changes, application_changes))
        _pending_writes.add(write)
        write.add_done_callback(_pending_writes.discard)
        if not await asyncio.shield(write):
            logger.warning(f"Workflow instance {instance.id} changed underneath step {expected_step}")
            return None

        step = instance.step_at(expected_step)
        logger.info(
            f"Workflow step '{step.step_name}' completed for application {instance.application_id}"
            + (" (workflow completed)" if finished else "")
        )
        return await self.find(instance.id)

    async def _write_step(
        self,
        instance: WorkflowInstance,
        expected_step: int,
        changes: dict,
        application_changes: dict,
    ) -> bool:
        result = await self.collection.update_one(
            {
                "_id": to_object_id(instance.id),
                "current_step": expected_step,
                "status": InstanceStatus.ACTIVE.value,
            },
            {"$set": changes},
        )
        if result.modified_count == 0:
            return False

        await self.applications.update_one(
            {"_id": to_object_id(instance.application_id)},
            {"$set": application_changes},
        )
        return True
