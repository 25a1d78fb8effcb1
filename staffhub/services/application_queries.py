"""
Read models over applications and their history: filtered, paginated lists,
per-requirement/per-resource counts and the vendor/client scoping rules.
"""

import math
from typing import Iterable, List, Optional

from bson import ObjectId
from pymongo import ASCENDING, DESCENDING

from staffhub.exceptions import NotFoundError, ValidationError
from staffhub.models.application import Application
from staffhub.models.principal import Principal
from staffhub.services.collaborators import RequirementStore, ResourceStore, to_object_id
from staffhub.services.history import HistoryLedger
from staffhub.services.status_mapping import get_active_applications_query

REQUIREMENT_SUMMARY_FIELDS = ("title", "status", "priority", "created_by")
RESOURCE_SUMMARY_FIELDS = ("name", "status", "category", "created_by")


def build_status_filter(status):
    """A single status matches exactly; a list or comma-separated string matches any."""
    if not status:
        return None
    if isinstance(status, str):
        if "," not in status:
            return status.strip()
        status = status.split(",")
    values = [s.strip() for s in status if s and s.strip()]
    return {"$in": values}


def split_ids(value) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        value = value.split(",")
    return [v.strip() for v in value if v and v.strip()]


def paginate(page: int, limit: int, total: int) -> dict:
    return {
        "page": page,
        "limit": limit,
        "total": total,
        "pages": math.ceil(total / limit) if limit else 0,
    }


def _summary(document: Optional[dict], fields: Iterable[str]) -> Optional[dict]:
    if not document:
        return None
    summary = {"id": str(document["_id"])}
    for name in fields:
        value = document.get(name)
        summary[name] = str(value) if isinstance(value, ObjectId) else value
    return summary


class ApplicationQueries:
    def __init__(self, db):
        self.collection = db.applications
        self.users = db.users
        self.requirements = RequirementStore(db)
        self.resources = ResourceStore(db)
        self.history = HistoryLedger(db)

    # ===========================
    # SCOPES
    # ===========================

    async def vendor_resource_ids(self, user_id: str, organization_id: Optional[str], ids=None) -> List[str]:
        """Resources of the vendor's organization, else the ones the vendor created."""
        if organization_id:
            return await self.resources.find_ids(organization_id=organization_id, ids=ids)
        return await self.resources.find_ids(created_by=user_id, ids=ids)

    async def client_requirement_ids(self, user_id: str, organization_id: Optional[str], ids=None) -> List[str]:
        """Requirements of the client's organization, else the ones the client created."""
        if organization_id:
            return await self.requirements.find_ids(organization_id=organization_id, ids=ids)
        return await self.requirements.find_ids(created_by=user_id, ids=ids)

    # ===========================
    # LISTS
    # ===========================

    async def list_applications(
        self,
        status=None,
        requirement_id: Optional[str] = None,
        resource_id: Optional[str] = None,
        vendor_id: Optional[str] = None,
        client_id: Optional[str] = None,
        page: int = 1,
        limit: int = 10,
        sort_by: str = "created_at",
        sort_order: str = "desc",
    ):
        query = {}
        status_filter = build_status_filter(status)
        if status_filter:
            query["status"] = status_filter
        if requirement_id:
            query["requirement_id"] = requirement_id
        if resource_id:
            query["resource_id"] = resource_id

        if vendor_id:
            oid = to_object_id(vendor_id)
            vendor = await self.users.find_one({"_id": oid}) if oid else None
            if vendor and vendor.get("user_type") == "vendor":
                org_id = vendor.get("organization_id")
                query["resource_id"] = {
                    "$in": await self.vendor_resource_ids(vendor_id, str(org_id) if org_id else None)
                }

        if client_id:
            query["requirement_id"] = {"$in": await self.requirements.find_ids(created_by=client_id)}

        return await self._page(query, page, limit, sort_by, sort_order)

    async def list_for_vendor(self, principal: Principal, status=None, page=1, limit=10, sort_by="created_at", sort_order="desc"):
        query = {}
        if principal.user_type == "vendor":
            query["resource_id"] = {
                "$in": await self.vendor_resource_ids(principal.id, principal.organization_id)
            }
        status_filter = build_status_filter(status)
        if status_filter:
            query["status"] = status_filter
        return await self._page(query, page, limit, sort_by, sort_order)

    async def list_for_client(
        self, principal: Principal, status=None, requirement_id=None, page=1, limit=10, sort_by="created_at", sort_order="desc"
    ):
        query = {}
        if principal.user_type == "client":
            query["requirement_id"] = {
                "$in": await self.client_requirement_ids(principal.id, principal.organization_id)
            }
        status_filter = build_status_filter(status)
        if status_filter:
            query["status"] = status_filter
        if requirement_id:
            query["requirement_id"] = requirement_id
        return await self._page(query, page, limit, sort_by, sort_order)

    async def list_for_vendor_resource(
        self, principal: Principal, resource_id: str, status=None, page=1, limit=10, sort_by="created_at", sort_order="desc"
    ):
        owned = await self.vendor_resource_ids(principal.id, principal.organization_id, ids=[resource_id])
        if not owned:
            raise NotFoundError("Resource not found or access denied")

        query = {"resource_id": owned[0]}
        status_filter = build_status_filter(status)
        if status_filter:
            query["status"] = status_filter
        return await self._page(query, page, limit, sort_by, sort_order)

    async def _page(self, query: dict, page: int, limit: int, sort_by: str, sort_order: str):
        direction = DESCENDING if sort_order == "desc" else ASCENDING
        cursor = (
            self.collection.find(query)
            .sort([(sort_by, direction), ("_id", direction)])
            .skip((page - 1) * limit)
            .limit(limit)
        )
        documents = await cursor.to_list(limit)
        total = await self.collection.count_documents(query)
        items = await self._populate([Application.from_mongo(doc) for doc in documents])
        return items, paginate(page, limit, total)

    async def _populate(self, applications: List[Application]) -> List[dict]:
        requirement_ids = {to_object_id(a.requirement_id) for a in applications}
        resource_ids = {to_object_id(a.resource_id) for a in applications}

        requirements = {
            str(doc["_id"]): doc
            for doc in await self.requirements.collection.find({"_id": {"$in": list(requirement_ids)}}).to_list(None)
        }
        resources = {
            str(doc["_id"]): doc
            for doc in await self.resources.collection.find({"_id": {"$in": list(resource_ids)}}).to_list(None)
        }

        return [
            {
                **application.model_dump(),
                "requirement": _summary(requirements.get(application.requirement_id), REQUIREMENT_SUMMARY_FIELDS),
                "resource": _summary(resources.get(application.resource_id), RESOURCE_SUMMARY_FIELDS),
            }
            for application in applications
        ]

    # ===========================
    # SINGLE APPLICATION
    # ===========================

    async def get_application(self, application_id: str) -> dict:
        oid = to_object_id(application_id)
        document = await self.collection.find_one({"_id": oid}) if oid else None
        if not document:
            raise NotFoundError("Application not found")
        populated = await self._populate([Application.from_mongo(document)])
        return populated[0]

    async def get_history(self, application_id: str) -> dict:
        application = await self.get_application(application_id)
        entries = await self.history.list_for(application["id"])
        return {
            "application": {
                "id": application["id"],
                "status": application["status"],
                "requirement": application["requirement"],
                "resource": application["resource"],
                "created_by": application["created_by"],
                "created_at": application["created_at"],
            },
            "history": [entry.model_dump() for entry in entries],
        }

    # ===========================
    # COUNTS
    # ===========================

    async def counts_for_requirements(self, principal: Principal, requirement_ids) -> dict:
        requested = split_ids(requirement_ids)
        if not requested:
            raise ValidationError("Requirement IDs are required")

        query = {"requirement_id": {"$in": requested}}
        if principal.user_type == "client":
            query["requirement_id"] = {
                "$in": await self.client_requirement_ids(principal.id, principal.organization_id, ids=requested)
            }
        if principal.user_type == "vendor":
            query["resource_id"] = {
                "$in": await self.vendor_resource_ids(principal.id, principal.organization_id)
            }
        return await self._grouped_counts(query, "requirement_id", requested)

    async def counts_for_resources(self, principal: Principal, resource_ids) -> dict:
        requested = split_ids(resource_ids)
        if not requested:
            raise ValidationError("Resource IDs are required")

        query = {"resource_id": {"$in": requested}}
        if principal.user_type == "vendor":
            query["resource_id"] = {
                "$in": await self.vendor_resource_ids(principal.id, principal.organization_id, ids=requested)
            }
        if principal.user_type == "client":
            query["requirement_id"] = {
                "$in": await self.client_requirement_ids(principal.id, principal.organization_id)
            }
        return await self._grouped_counts(query, "resource_id", requested)

    async def _grouped_counts(self, query: dict, key: str, requested: List[str]) -> dict:
        pipeline = [
            {"$match": query},
            {"$group": {"_id": f"${key}", "count": {"$sum": 1}}},
        ]
        rows = await self.collection.aggregate(pipeline).to_list(None)
        counts = {str(row["_id"]): row["count"] for row in rows}
        for item_id in requested:
            counts.setdefault(item_id, 0)
        return counts

    async def active_count_for_resource(self, principal: Principal, resource_id: str) -> int:
        query = {"resource_id": resource_id, **get_active_applications_query()}

        if principal.user_type == "vendor":
            owned = await self.vendor_resource_ids(principal.id, principal.organization_id, ids=[resource_id])
            if not owned:
                raise NotFoundError("Resource not found or access denied")
        if principal.user_type == "client":
            query["requirement_id"] = {
                "$in": await self.client_requirement_ids(principal.id, principal.organization_id)
            }
        return await self.collection.count_documents(query)

    async def active_count_for_requirement(self, principal: Principal, requirement_id: str) -> int:
        query = {"requirement_id": requirement_id, **get_active_applications_query()}

        if principal.user_type == "client":
            owned = await self.client_requirement_ids(principal.id, principal.organization_id, ids=[requirement_id])
            if not owned:
                raise NotFoundError("Requirement not found or access denied")
        if principal.user_type == "vendor":
            query["resource_id"] = {
                "$in": await self.vendor_resource_ids(principal.id, principal.organization_id)
            }
        return await self.collection.count_documents(query)
