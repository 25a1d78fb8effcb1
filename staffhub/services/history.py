"""
Append-only application history.

One entry per status transition or detail update. Entries are never updated
or deleted; newest-first by creation time is the canonical reading order.
"""

from typing import List, Optional
from pymongo import DESCENDING

from staffhub.models.application_history import ApplicationHistory, DecisionReason


def status_change_note(previous_status, new_status) -> str:
    return f"Status changed from {previous_status} to {new_status}"


class HistoryLedger:
    def __init__(self, db):
        self.collection = db.application_history

    async def append(self, entry: ApplicationHistory) -> ApplicationHistory:
        result = await self.collection.insert_one(entry.to_mongo())
        return entry.model_copy(update={"id": str(result.inserted_id)})

    async def record(self, **fields) -> ApplicationHistory:
        """Build and append in one awaitable, so a bad entry fails as a side effect."""
        return await self.append(ApplicationHistory(**fields))

    async def record_transition(self, **fields) -> ApplicationHistory:
        return await self.append(build_transition_entry(**fields))

    async def list_for(self, application_id: str) -> List[ApplicationHistory]:
        cursor = self.collection.find({"application_id": str(application_id)}).sort(
            [("created_at", DESCENDING), ("_id", DESCENDING)]
        )
        return [ApplicationHistory.from_mongo(doc) for doc in await cursor.to_list(None)]

    async def count_for(self, application_id: str) -> int:
        return await self.collection.count_documents({"application_id": str(application_id)})


def build_transition_entry(
    application_id: str,
    previous_status,
    new_status,
    actor_id: str,
    organization_id: Optional[str],
    notes: Optional[str] = None,
    decision_reason: Optional[DecisionReason] = None,
    notify_candidate: Optional[bool] = None,
    notify_client: Optional[bool] = None,
    follow_up_required: Optional[bool] = None,
    follow_up_date=None,
    follow_up_notes: Optional[str] = None,
) -> ApplicationHistory:
    """Entry for a status change; optional decision data is passed through as given."""
    data = {
        "application_id": application_id,
        "previous_status": previous_status,
        "status": new_status,
        "notes": notes or status_change_note(previous_status, new_status),
        "organization_id": organization_id,
        "created_by": actor_id,
    }
    if decision_reason is not None:
        data["decision_reason"] = decision_reason
    if notify_candidate is not None:
        data["notify_candidate"] = notify_candidate
    if notify_client is not None:
        data["notify_client"] = notify_client
    if follow_up_required is not None:
        data["follow_up_required"] = follow_up_required
    if follow_up_date is not None:
        data["follow_up_date"] = follow_up_date
    if follow_up_notes:
        data["follow_up_notes"] = follow_up_notes
    return ApplicationHistory(**data)
