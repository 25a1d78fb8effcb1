"""
Single authority for "may this principal act on a step tagged with role X".

Used both by status changes (soft workflow advance) and by explicit workflow
step processing.
"""

from typing import Dict, FrozenSet

from staffhub.models.enums import RoleTag
from staffhub.models.principal import Principal

ACCEPTED_ROLES: Dict[str, FrozenSet[str]] = {
    RoleTag.SUPER_ADMIN.value: frozenset({"admin_owner", "superadmin"}),
    RoleTag.ADMIN.value: frozenset({"admin_owner", "admin_employee", "superadmin", "admin"}),
    RoleTag.HR_ADMIN.value: frozenset({"admin_owner", "admin_employee", "superadmin", "admin", "hr_admin"}),
    RoleTag.CLIENT.value: frozenset({"client_owner", "client_employee", "client"}),
    RoleTag.VENDOR.value: frozenset({"vendor_owner", "vendor_employee", "vendor"}),
}


def can_act(principal: Principal, required_role) -> bool:
    """Unknown role tags always deny."""
    if isinstance(required_role, RoleTag):
        required_role = required_role.value
    accepted = ACCEPTED_ROLES.get(required_role)
    if not accepted:
        return False
    return principal.effective_role in accepted


# Workflow administration (templates) is reserved for admin owners;
# instances may also be handled by admin employees.
WORKFLOW_MANAGERS = frozenset({"admin_owner"})
WORKFLOW_OPERATORS = frozenset({"admin_owner", "admin_employee"})


def can_manage_workflows(principal: Principal) -> bool:
    return principal.organization_role in WORKFLOW_MANAGERS


def can_operate_workflows(principal: Principal) -> bool:
    return principal.organization_role in WORKFLOW_OPERATORS
