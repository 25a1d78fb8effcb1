from typing import List, Literal, Optional, Union
from datetime import datetime
from pydantic import ConfigDict, Field

from .base import EmbeddedModel, MongoBaseModel, PyObjectId
from .enums import ApplicationStatus, DecisionCategory, DecisionCriterion

HistoryStatus = Union[ApplicationStatus, Literal["deleted"]]


class DecisionReason(EmbeddedModel):
    category: Optional[DecisionCategory] = None
    details: Optional[str] = Field(default=None, max_length=500)
    rating: Optional[int] = Field(default=None, ge=1, le=5)
    criteria: List[DecisionCriterion] = []
    notes: Optional[str] = Field(default=None, max_length=1000)


class ApplicationHistory(MongoBaseModel):
    """One ledger entry. Entries are written once and never modified."""

    model_config = ConfigDict(populate_by_name=True, use_enum_values=True, validate_default=True, frozen=True)

    application_id: PyObjectId
    previous_status: Optional[HistoryStatus] = None
    status: HistoryStatus
    notes: Optional[str] = Field(default=None, max_length=1000)
    decision_reason: Optional[DecisionReason] = None

    notify_candidate: bool = False
    notify_client: bool = False

    follow_up_required: bool = False
    follow_up_date: Optional[datetime] = None
    follow_up_notes: Optional[str] = Field(default=None, max_length=500)

    organization_id: Optional[PyObjectId] = None
    created_by: PyObjectId
    created_at: datetime = Field(default_factory=datetime.utcnow)
