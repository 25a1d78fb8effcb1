"""
Read access to documents owned by other parts of the platform.
Only the fields the lifecycle needs are relied on: _id, title/name,
created_by and organization_id.
"""

from typing import Iterable, List, Optional
from bson import ObjectId


def to_object_id(value) -> Optional[ObjectId]:
    if isinstance(value, ObjectId):
        return value
    if value is not None and ObjectId.is_valid(str(value)):
        return ObjectId(str(value))
    return None


class _OwnedDocumentStore:
    collection_name = ""

    def __init__(self, db):
        self.collection = db[self.collection_name]

    async def find_by_id(self, document_id) -> Optional[dict]:
        oid = to_object_id(document_id)
        if oid is None:
            return None
        return await self.collection.find_one({"_id": oid})

    async def find_ids(
        self,
        created_by: Optional[str] = None,
        organization_id: Optional[str] = None,
        ids: Optional[Iterable[str]] = None,
    ) -> List[str]:
        query = {}
        if created_by is not None:
            query["created_by"] = str(created_by)
        if organization_id is not None:
            query["organization_id"] = str(organization_id)
        if ids is not None:
            query["_id"] = {"$in": [oid for oid in map(to_object_id, ids) if oid is not None]}

        documents = await self.collection.find(query, {"_id": 1}).to_list(None)
        return [str(doc["_id"]) for doc in documents]


class RequirementStore(_OwnedDocumentStore):
    collection_name = "requirements"


class ResourceStore(_OwnedDocumentStore):
    collection_name = "resources"
