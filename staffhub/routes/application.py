# ========================================
# staffhub/routes/application.py
# ========================================

from fastapi import APIRouter, Depends, HTTPException, Query
from typing import Literal, Optional

from staffhub.config import DEFAULT_PAGE_LIMIT, MAX_PAGE_LIMIT
from staffhub.database import get_db
from staffhub.models.principal import Principal
from staffhub.schemas.application import (
    ApplicationCreate,
    ApplicationUpdate,
    ApplicationStatusUpdate,
    ApplicationResponse,
    ApplicationListResponse,
    ApplicationHistoryResponse,
    StatusChangeResponse,
    StatusMappingResponse
)
from staffhub.services.application_lifecycle import ApplicationLifecycle
from staffhub.services.application_queries import ApplicationQueries
from staffhub.services.status_mapping import get_status_mapping
from staffhub.utils.auth import get_current_user

router = APIRouter(prefix="/applications", tags=["Applications"])

SortOrder = Literal["asc", "desc"]


def require_user_type(*user_types: str):
    """Dependency factory: only principals of these user types pass"""
    def checker(current_user: Principal = Depends(get_current_user)) -> Principal:
        if current_user.user_type not in user_types:
            raise HTTPException(
                status_code=403,
                detail=f"User type '{current_user.user_type}' is not authorized to access this route"
            )
        return current_user
    return checker


# ===========================
# LISTS & LOOKUPS
# ===========================

# ✅ 1. LIST APPLICATIONS
@router.get("", response_model=ApplicationListResponse)
async def get_applications(
    status: Optional[str] = Query(None, description="Single status or comma-separated list"),
    requirement_id: Optional[str] = Query(None),
    resource_id: Optional[str] = Query(None),
    vendor_id: Optional[str] = Query(None, description="Applications for this vendor's resources"),
    client_id: Optional[str] = Query(None, description="Applications for this client's requirements"),
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_PAGE_LIMIT, ge=1, le=MAX_PAGE_LIMIT),
    sort_by: str = Query("created_at"),
    sort_order: SortOrder = Query("desc"),
    current_user: Principal = Depends(get_current_user)
):
    """List applications with filters and pagination."""

    queries = ApplicationQueries(get_db())
    applications, pagination = await queries.list_applications(
        status=status,
        requirement_id=requirement_id,
        resource_id=resource_id,
        vendor_id=vendor_id,
        client_id=client_id,
        page=page,
        limit=limit,
        sort_by=sort_by,
        sort_order=sort_order
    )
    return {"applications": applications, "pagination": pagination}


# ✅ 2. STATUS MAPPING (active / inactive / all)
@router.get("/status-mapping", response_model=StatusMappingResponse)
async def get_application_status_mapping(current_user: Principal = Depends(get_current_user)):
    """Active and inactive status lists plus the full status enumeration."""
    return get_status_mapping()


# ✅ 3. VENDOR APPLICATIONS (applications for the vendor's resources)
@router.get("/vendor", response_model=ApplicationListResponse)
async def get_vendor_applications(
    status: Optional[str] = Query(None, description="Single status or comma-separated list"),
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_PAGE_LIMIT, ge=1, le=MAX_PAGE_LIMIT),
    sort_by: str = Query("created_at"),
    sort_order: SortOrder = Query("desc"),
    current_user: Principal = Depends(require_user_type("vendor"))
):
    queries = ApplicationQueries(get_db())
    applications, pagination = await queries.list_for_vendor(
        current_user, status=status, page=page, limit=limit, sort_by=sort_by, sort_order=sort_order
    )
    return {"applications": applications, "pagination": pagination}


# ✅ 4. VENDOR APPLICATIONS FOR ONE RESOURCE
@router.get("/vendor/resource/{resource_id}", response_model=ApplicationListResponse)
async def get_vendor_applications_by_resource(
    resource_id: str,
    status: Optional[str] = Query(None, description="Single status or comma-separated list"),
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_PAGE_LIMIT, ge=1, le=MAX_PAGE_LIMIT),
    sort_by: str = Query("created_at"),
    sort_order: SortOrder = Query("desc"),
    current_user: Principal = Depends(require_user_type("vendor"))
):
    queries = ApplicationQueries(get_db())
    applications, pagination = await queries.list_for_vendor_resource(
        current_user, resource_id, status=status, page=page, limit=limit, sort_by=sort_by, sort_order=sort_order
    )
    return {"applications": applications, "pagination": pagination}


# ✅ 5. CLIENT APPLICATIONS (applications for the client's requirements)
@router.get("/client", response_model=ApplicationListResponse)
async def get_client_applications(
    status: Optional[str] = Query(None, description="Single status or comma-separated list"),
    requirement_id: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_PAGE_LIMIT, ge=1, le=MAX_PAGE_LIMIT),
    sort_by: str = Query("created_at"),
    sort_order: SortOrder = Query("desc"),
    current_user: Principal = Depends(require_user_type("client"))
):
    queries = ApplicationQueries(get_db())
    applications, pagination = await queries.list_for_client(
        current_user,
        status=status,
        requirement_id=requirement_id,
        page=page,
        limit=limit,
        sort_by=sort_by,
        sort_order=sort_order
    )
    return {"applications": applications, "pagination": pagination}


# ✅ 6. COUNTS PER REQUIREMENT
@router.get("/counts/requirements")
async def get_application_counts_for_requirements(
    requirement_ids: Optional[str] = Query(None, description="Comma-separated requirement IDs"),
    current_user: Principal = Depends(get_current_user)
):
    """Number of applications per requirement; every requested ID is present."""
    queries = ApplicationQueries(get_db())
    return await queries.counts_for_requirements(current_user, requirement_ids)


# ✅ 7. COUNTS PER RESOURCE
@router.get("/counts/resources")
async def get_application_counts_for_resources(
    resource_ids: Optional[str] = Query(None, description="Comma-separated resource IDs"),
    current_user: Principal = Depends(get_current_user)
):
    queries = ApplicationQueries(get_db())
    return await queries.counts_for_resources(current_user, resource_ids)


# ✅ 8. ACTIVE APPLICATIONS FOR A RESOURCE
@router.get("/active/resource/{resource_id}")
async def get_active_applications_count_for_resource(
    resource_id: str,
    current_user: Principal = Depends(get_current_user)
):
    """Count of applications still occupying the resource."""
    queries = ApplicationQueries(get_db())
    return {"count": await queries.active_count_for_resource(current_user, resource_id)}


# ✅ 9. ACTIVE APPLICATIONS FOR A REQUIREMENT
@router.get("/active/requirement/{requirement_id}")
async def get_active_applications_count_for_requirement(
    requirement_id: str,
    current_user: Principal = Depends(get_current_user)
):
    queries = ApplicationQueries(get_db())
    return {"count": await queries.active_count_for_requirement(current_user, requirement_id)}


# ✅ 10. GET ONE APPLICATION
@router.get("/{application_id}", response_model=ApplicationResponse)
async def get_application(
    application_id: str,
    current_user: Principal = Depends(get_current_user)
):
    queries = ApplicationQueries(get_db())
    return await queries.get_application(application_id)


# ✅ 11. APPLICATION HISTORY (newest first)
@router.get("/{application_id}/history", response_model=ApplicationHistoryResponse)
async def get_application_history(
    application_id: str,
    current_user: Principal = Depends(get_current_user)
):
    queries = ApplicationQueries(get_db())
    return await queries.get_history(application_id)


# ===========================
# LIFECYCLE
# ===========================

# ✅ 12. SUBMIT APPLICATION
@router.post("", response_model=ApplicationResponse, status_code=201)
async def create_application(
    application: ApplicationCreate,
    current_user: Principal = Depends(get_current_user)
):
    """Submit a resource against a requirement. Starts the default workflow when one exists."""

    db = get_db()
    lifecycle = ApplicationLifecycle(db)
    result = await lifecycle.submit(
        application.requirement_id,
        application.resource_id,
        current_user,
        notes=application.notes,
        proposed_rate=application.proposed_rate,
        availability=application.availability
    )
    return await ApplicationQueries(db).get_application(result.application.id)


# ✅ 13. CHANGE STATUS
@router.put("/{application_id}/status", response_model=StatusChangeResponse)
async def update_application_status(
    application_id: str,
    status_update: ApplicationStatusUpdate,
    current_user: Principal = Depends(get_current_user)
):
    """Move an application to a new status, subject to role and current-status rules."""

    db = get_db()
    lifecycle = ApplicationLifecycle(db)
    change = await lifecycle.change_status(
        application_id,
        status_update.status,
        current_user,
        notes=status_update.notes,
        decision_reason=status_update.decision_reason,
        notify_candidate=status_update.notify_candidate,
        notify_client=status_update.notify_client,
        follow_up_required=status_update.follow_up_required,
        follow_up_date=status_update.follow_up_date,
        follow_up_notes=status_update.follow_up_notes
    )
    return {
        "message": "Application status updated successfully" if change.changed else "Application status unchanged",
        "application": await ApplicationQueries(db).get_application(change.application.id),
        "status_category": change.status_category,
        "previous_status": change.previous_status,
        "new_status": change.new_status
    }


# ✅ 14. UPDATE DETAILS
@router.put("/{application_id}", response_model=ApplicationResponse)
async def update_application(
    application_id: str,
    application_update: ApplicationUpdate,
    current_user: Principal = Depends(get_current_user)
):
    """Update notes, proposed rate or availability. Creator or admin only."""

    db = get_db()
    lifecycle = ApplicationLifecycle(db)
    result = await lifecycle.update_details(
        application_id,
        current_user,
        application_update.model_dump(exclude_unset=True)
    )
    return await ApplicationQueries(db).get_application(result.application.id)


# ✅ 15. DELETE APPLICATION
@router.delete("/{application_id}")
async def delete_application(
    application_id: str,
    current_user: Principal = Depends(get_current_user)
):
    """Delete an application after recording a final history entry. Creator or admin only."""

    lifecycle = ApplicationLifecycle(get_db())
    await lifecycle.delete(application_id, current_user)
    return {"message": "Application deleted successfully", "deleted_application_id": application_id}
