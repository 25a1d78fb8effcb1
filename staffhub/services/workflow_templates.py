"""
Workflow templates (admin-authored step sequences per application type).

At most one active default template may apply to an application type; writing
a default clears the flag on every other template whose types overlap.
"""

from datetime import datetime
from typing import Iterable, List, Optional, Set

from loguru import logger
from pymongo import DESCENDING

from staffhub.exceptions import ConflictError, NotFoundError
from staffhub.models.enums import ApplicationType, InstanceStatus
from staffhub.models.workflow import WorkflowConfiguration
from staffhub.services.collaborators import to_object_id

ALL_APPLICATION_TYPES = [t.value for t in ApplicationType]

# Instances in these states pin their template
BLOCKING_INSTANCE_STATUSES = [InstanceStatus.ACTIVE.value, "in_progress"]


def overlapping_types(application_types: Iterable) -> List[str]:
    """Every stored type value that competes with the given ones for 'default'.

    'both' applies to every type, so it overlaps with everything.
    """
    types: Set[str] = {ApplicationType(t).value for t in application_types}
    if ApplicationType.BOTH.value in types:
        return list(ALL_APPLICATION_TYPES)
    types.add(ApplicationType.BOTH.value)
    return sorted(types)


class WorkflowTemplates:
    def __init__(self, db):
        self.collection = db.workflow_configurations
        self.instances = db.workflow_instances

    async def get(self, template_id: str) -> WorkflowConfiguration:
        oid = to_object_id(template_id)
        document = await self.collection.find_one({"_id": oid}) if oid else None
        if not document:
            raise NotFoundError("Workflow configuration not found")
        return WorkflowConfiguration.from_mongo(document)

    async def find_default_for(self, application_type) -> Optional[WorkflowConfiguration]:
        """Active default template for the type (or for 'both'); None when absent."""
        application_type = ApplicationType(application_type).value
        document = await self.collection.find_one(
            {
                "application_types": {"$in": [application_type, ApplicationType.BOTH.value]},
                "is_active": True,
                "is_default": True,
            },
            sort=[("updated_at", DESCENDING)],
        )
        return WorkflowConfiguration.from_mongo(document)

    async def list(
        self,
        is_active: Optional[bool] = None,
        application_types: Optional[List[str]] = None,
        page: int = 1,
        limit: int = 10,
        sort_by: str = "created_at",
        sort_order: str = "desc",
    ):
        query = {}
        if is_active is not None:
            query["is_active"] = is_active
        if application_types:
            query["application_types"] = {"$in": application_types}

        direction = DESCENDING if sort_order == "desc" else 1
        cursor = (
            self.collection.find(query)
            .sort(sort_by, direction)
            .skip((page - 1) * limit)
            .limit(limit)
        )
        templates = [WorkflowConfiguration.from_mongo(doc) for doc in await cursor.to_list(limit)]
        total = await self.collection.count_documents(query)
        return templates, total

    async def create(self, template: WorkflowConfiguration) -> WorkflowConfiguration:
        if template.is_default:
            await self._clear_defaults(template.application_types)

        result = await self.collection.insert_one(template.to_mongo())
        logger.info(f"Workflow configuration created: {template.name} ({result.inserted_id})")
        return template.model_copy(update={"id": str(result.inserted_id)})

    async def update(self, template_id: str, changes: dict, actor_id: str) -> WorkflowConfiguration:
        current = await self.get(template_id)

        # Re-validate the merged document so step ordering and enums still hold
        merged = WorkflowConfiguration.model_validate({
            **current.model_dump(),
            **changes,
            "updated_by": actor_id,
            "updated_at": datetime.utcnow(),
        })

        if merged.is_default:
            await self._clear_defaults(merged.application_types, exclude_id=template_id)

        await self.collection.update_one(
            {"_id": to_object_id(template_id)},
            {"$set": merged.to_mongo()},
        )
        logger.info(f"Workflow configuration updated: {merged.name} ({template_id})")
        return merged

    async def delete(self, template_id: str) -> None:
        await self.get(template_id)

        active_instances = await self.instances.count_documents({
            "workflow_configuration_id": str(template_id),
            "status": {"$in": BLOCKING_INSTANCE_STATUSES},
        })
        if active_instances > 0:
            raise ConflictError("Cannot delete workflow configuration that has active instances")

        await self.collection.delete_one({"_id": to_object_id(template_id)})
        logger.info(f"Workflow configuration deleted: {template_id}")

    async def _clear_defaults(self, application_types, exclude_id: Optional[str] = None):
        query = {
            "application_types": {"$in": overlapping_types(application_types)},
            "is_default": True,
        }
        if exclude_id is not None:
            query["_id"] = {"$ne": to_object_id(exclude_id)}

        result = await self.collection.update_many(
            query,
            {"$set": {"is_default": False, "updated_at": datetime.utcnow()}},
        )
        if result.modified_count:
            logger.info(f"Cleared default flag on {result.modified_count} workflow configuration(s)")
