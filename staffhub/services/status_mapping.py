"""
Application status mapping.

Classifies application statuses as "active" (the application still occupies
its requirement/resource slot) or "inactive". Shared by the lifecycle and by
read-only reporting code.
"""

from typing import List

from staffhub.exceptions import ValidationError
from staffhub.models.enums import ApplicationStatus

ACTIVE_STATUSES = (
    ApplicationStatus.APPLIED.value,
    ApplicationStatus.PENDING.value,
    ApplicationStatus.SHORTLISTED.value,
    ApplicationStatus.INTERVIEW.value,
    ApplicationStatus.ACCEPTED.value,
    ApplicationStatus.OFFER_CREATED.value,
    ApplicationStatus.OFFER_ACCEPTED.value,
    ApplicationStatus.ONBOARDED.value,
)

INACTIVE_STATUSES = (
    ApplicationStatus.REJECTED.value,
    ApplicationStatus.WITHDRAWN.value,
    ApplicationStatus.DID_NOT_JOIN.value,
    ApplicationStatus.CANCELLED.value,
)

ALL_STATUSES = ACTIVE_STATUSES + INACTIVE_STATUSES

# No transition leaves these, other than a same-status no-op
TERMINAL_STATUSES = frozenset({
    ApplicationStatus.ONBOARDED.value,
    ApplicationStatus.DID_NOT_JOIN.value,
    ApplicationStatus.REJECTED.value,
    ApplicationStatus.WITHDRAWN.value,
})


def is_active_status(status) -> bool:
    return _value(status) in ACTIVE_STATUSES


def is_inactive_status(status) -> bool:
    return _value(status) in INACTIVE_STATUSES


def is_terminal_status(status) -> bool:
    return _value(status) in TERMINAL_STATUSES


def get_active_statuses() -> List[str]:
    return list(ACTIVE_STATUSES)


def get_inactive_statuses() -> List[str]:
    return list(INACTIVE_STATUSES)


def get_all_statuses() -> List[str]:
    return list(ALL_STATUSES)


def get_status_category(status) -> str:
    """'active' or 'inactive'. Unknown statuses count as inactive."""
    if is_active_status(status):
        return "active"
    return "inactive"


def get_active_applications_query() -> dict:
    return {"status": {"$in": get_active_statuses()}}


def get_inactive_applications_query() -> dict:
    return {"status": {"$in": get_inactive_statuses()}}


def get_status_mapping() -> dict:
    return {
        "active": get_active_statuses(),
        "inactive": get_inactive_statuses(),
        "all": get_all_statuses(),
    }


def parse_status(value) -> ApplicationStatus:
    """Turn a requested status into the enum, or fail listing the valid ones."""
    if not value:
        raise ValidationError("Status is required")
    try:
        return ApplicationStatus(_value(value))
    except ValueError:
        raise ValidationError(f"Invalid status. Valid statuses are: {', '.join(ALL_STATUSES)}")


def _value(status):
    if isinstance(status, ApplicationStatus):
        return status.value
    return status
