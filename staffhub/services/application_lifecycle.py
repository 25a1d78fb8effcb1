"""
Application lifecycle: submission, status transitions, detail updates and
deletion of resource-to-requirement applications.

Every operation validates and authorizes first, then performs one primary
write on the application document. History, notifications and workflow
updates follow as best-effort side effects (see services.effects): their
failures are logged and reported on the returned outcome, never raised.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from loguru import logger
from pymongo.errors import DuplicateKeyError

from staffhub.exceptions import AuthorizationError, ConflictError, NotFoundError, ValidationError
from staffhub.models.application import Application, Availability, ProposedRate
from staffhub.models.application_history import DecisionReason
from staffhub.models.enums import (
    DELETED_STATUS,
    ApplicationStatus,
    ApplicationType,
    NotificationType,
)
from staffhub.models.principal import Principal
from staffhub.services.collaborators import RequirementStore, ResourceStore, to_object_id
from staffhub.services.effects import EffectLog, run_effect
from staffhub.services.history import HistoryLedger
from staffhub.services.notifications import NotificationSink
from staffhub.services.status_mapping import get_status_category, is_terminal_status, parse_status
from staffhub.services.workflow_engine import WorkflowEngine
from staffhub.services.workflow_templates import WorkflowTemplates

# Statuses a requirement-owning client may set outside the gated states
CLIENT_ALLOWED_STATUSES = frozenset({
    ApplicationStatus.SHORTLISTED,
    ApplicationStatus.INTERVIEW,
    ApplicationStatus.ACCEPTED,
    ApplicationStatus.OFFER_CREATED,
    ApplicationStatus.REJECTED,
})

DETAIL_FIELDS = ("notes", "proposed_rate", "availability")

# Matches the limits on the stored documents
NOTES_MAX_LENGTH = 1000
FOLLOW_UP_NOTES_MAX_LENGTH = 500


@dataclass
class LifecycleResult:
    application: Optional[Application]
    effects: EffectLog = field(default_factory=EffectLog)


@dataclass
class StatusChange:
    application: Application
    status_category: str
    previous_status: str
    new_status: str
    changed: bool = True
    effects: EffectLog = field(default_factory=EffectLog)


def application_type_for(principal: Principal) -> ApplicationType:
    if principal.user_type == "client":
        return ApplicationType.CLIENT_APPLIED
    return ApplicationType.VENDOR_APPLIED


def check_length(label: str, value: Optional[str], limit: int):
    if value and len(value) > limit:
        raise ValidationError(f"{label} cannot exceed {limit} characters")


class ApplicationLifecycle:
    def __init__(self, db, notifications: Optional[NotificationSink] = None):
        self.collection = db.applications
        self.requirements = RequirementStore(db)
        self.resources = ResourceStore(db)
        self.history = HistoryLedger(db)
        self.templates = WorkflowTemplates(db)
        self.workflows = WorkflowEngine(db)
        self.notifications = notifications or NotificationSink(db)

    # ===========================
    # SUBMIT
    # ===========================

    async def submit(
        self,
        requirement_id: str,
        resource_id: str,
        principal: Principal,
        notes: Optional[str] = None,
        proposed_rate: Optional[ProposedRate] = None,
        availability: Optional[Availability] = None,
    ) -> LifecycleResult:
        check_length("Notes", notes, NOTES_MAX_LENGTH)
        requirement = await self.requirements.find_by_id(requirement_id)
        if not requirement:
            raise NotFoundError("Requirement not found")

        resource = await self.resources.find_by_id(resource_id)
        if not resource:
            raise NotFoundError("Resource not found")

        requirement_id, resource_id = str(requirement["_id"]), str(resource["_id"])

        existing = await self.collection.find_one({"requirement_id": requirement_id, "resource_id": resource_id})
        if existing:
            raise ConflictError("Application already exists for this resource and requirement")

        if not principal.organization_id:
            raise ValidationError("User must belong to an organization to create applications")

        application = Application(
            requirement_id=requirement_id,
            resource_id=resource_id,
            status=ApplicationStatus.APPLIED,
            notes=notes,
            proposed_rate=proposed_rate,
            availability=availability,
            organization_id=principal.organization_id,
            created_by=principal.id,
            updated_by=principal.id,
        )
        try:
            result = await self.collection.insert_one(application.to_mongo())
        except DuplicateKeyError:
            # Lost a race against an identical submission
            raise ConflictError("Application already exists for this resource and requirement")

        application_id = str(result.inserted_id)
        logger.info(f"Application {application_id} submitted for requirement {requirement_id} by {principal.id}")

        effects = EffectLog()
        context = f"(application {application_id})"

        effects.add(await run_effect(
            "history",
            self.history.record(
                application_id=application_id,
                status=ApplicationStatus.APPLIED,
                notes=notes or "Application submitted",
                organization_id=principal.organization_id,
                created_by=principal.id,
            ),
            context,
        ))

        owner_id = str(requirement.get("created_by", ""))
        if owner_id and owner_id != principal.id:
            effects.add(await run_effect(
                "notify_requirement_owner",
                self.notifications.create(
                    recipient=owner_id,
                    type=NotificationType.NEW_APPLICATION,
                    title="New Application Received",
                    message=f"A new application has been submitted for your requirement: {requirement.get('title', '')}",
                    related_entity={"requirement_id": requirement_id, "application_id": application_id},
                    action_url=f"/requirements/{requirement_id}/applications",
                ),
                context,
            ))

        effects.add(await run_effect(
            "workflow",
            self._start_workflow(application_id, application_type_for(principal)),
            context,
        ))

        return LifecycleResult(application=await self.get(application_id), effects=effects)

    async def _start_workflow(self, application_id: str, application_type: ApplicationType):
        template = await self.templates.find_default_for(application_type)
        if template is None:
            logger.info(f"No default workflow found for application type: {application_type.value}")
            return None
        return await self.workflows.instantiate(application_id, template)

    # ===========================
    # STATUS CHANGE
    # ===========================

    async def change_status(
        self,
        application_id: str,
        target_status,
        principal: Principal,
        notes: Optional[str] = None,
        decision_reason: Optional[DecisionReason] = None,
        notify_candidate: Optional[bool] = None,
        notify_client: Optional[bool] = None,
        follow_up_required: Optional[bool] = None,
        follow_up_date: Optional[datetime] = None,
        follow_up_notes: Optional[str] = None,
    ) -> StatusChange:
        target = parse_status(target_status)
        check_length("Notes", notes, NOTES_MAX_LENGTH)
        check_length("Follow-up notes", follow_up_notes, FOLLOW_UP_NOTES_MAX_LENGTH)
        application = await self.get(application_id)

        requirement = await self.requirements.find_by_id(application.requirement_id)
        if not requirement:
            raise NotFoundError("Associated requirement not found")

        resource = await self.resources.find_by_id(application.resource_id)
        if not resource:
            raise NotFoundError("Associated resource not found")

        current = ApplicationStatus(application.status)
        self._authorize_transition(principal, application, requirement, resource, current, target)

        # An admin "accepting" a fresh application shortlists it
        final = target
        if principal.is_admin and target == ApplicationStatus.ACCEPTED and current == ApplicationStatus.APPLIED:
            final = ApplicationStatus.SHORTLISTED

        if final == current:
            logger.info(f"Application {application.id} already {current.value}, nothing to change")
            return StatusChange(
                application=application,
                status_category=get_status_category(current),
                previous_status=current.value,
                new_status=current.value,
                changed=False,
            )

        if is_terminal_status(current):
            raise AuthorizationError(
                f"Not authorized to update this application status: '{current.value}' is a final status "
                f"and cannot change to '{final.value}'"
            )

        changes = {
            "status": final.value,
            "updated_by": principal.id,
            "updated_at": datetime.utcnow(),
        }
        if notes:
            changes["notes"] = notes
        await self.collection.update_one({"_id": to_object_id(application.id)}, {"$set": changes})
        application = await self.get(application.id)

        logger.info(
            f"Application {application.id} status {current.value} -> {final.value} by {principal.id}"
            + (f" (requested {target.value})" if final != target else "")
        )

        effects = EffectLog()
        context = f"(application {application.id})"

        effects.add(await run_effect(
            "history",
            self.history.record_transition(
                application_id=application.id,
                previous_status=current.value,
                new_status=final.value,
                actor_id=principal.id,
                organization_id=application.organization_id,
                notes=notes,
                decision_reason=decision_reason,
                notify_candidate=notify_candidate,
                notify_client=notify_client,
                follow_up_required=follow_up_required,
                follow_up_date=follow_up_date,
                follow_up_notes=follow_up_notes,
            ),
            context,
        ))

        title = requirement.get("title", "")
        related = {"requirement_id": application.requirement_id, "application_id": application.id}
        action_url = f"/applications/{application.id}"

        effects.add(await run_effect(
            "notify_creator",
            self.notifications.create(
                recipient=application.created_by,
                type=NotificationType.APPLICATION_STATUS_CHANGE,
                title="Application Status Updated",
                message=f"Your application for {title} has been {final.value}",
                related_entity=related,
                action_url=action_url,
            ),
            context,
        ))

        if notify_candidate and application.created_by != principal.id:
            reason_note = decision_reason.notes if decision_reason and decision_reason.notes else None
            effects.add(await run_effect(
                "notify_candidate",
                self.notifications.create(
                    recipient=application.created_by,
                    type=NotificationType.APPLICATION_STATUS_CHANGE,
                    title="Application Status Update",
                    message=f"Your application for {title} has been {final.value}"
                    + (f": {reason_note}" if reason_note else ""),
                    related_entity=related,
                    action_url=action_url,
                ),
                context,
            ))

        owner_id = str(requirement.get("created_by", ""))
        if notify_client and owner_id and owner_id != principal.id:
            effects.add(await run_effect(
                "notify_client",
                self.notifications.create(
                    recipient=owner_id,
                    type=NotificationType.APPLICATION_STATUS_CHANGE,
                    title="Application Status Update",
                    message=f"Application for {title} has been {final.value} by {principal.full_name}",
                    related_entity=related,
                    action_url=action_url,
                ),
                context,
            ))

        if application.workflow_instance_id:
            # The step records what was asked for, not the remapped status
            effects.add(await run_effect(
                "workflow",
                self.workflows.advance_step(application.workflow_instance_id, principal, target.value, notes),
                context,
            ))
            application = await self.get(application.id)

        return StatusChange(
            application=application,
            status_category=get_status_category(final),
            previous_status=current.value,
            new_status=final.value,
            effects=effects,
        )

    def _authorize_transition(self, principal, application, requirement, resource, current, target):
        is_requirement_owner = str(requirement.get("created_by", "")) == principal.id
        is_resource_owner = str(resource.get("created_by", "")) == principal.id
        is_creator = application.created_by == principal.id

        if principal.is_admin:
            return

        if principal.is_client and is_requirement_owner:
            if current == ApplicationStatus.APPLIED:
                if target != ApplicationStatus.REJECTED:
                    raise AuthorizationError(
                        "Not authorized to update this application status: a client can only reject an "
                        "application in status 'applied'; an admin must shortlist it first"
                    )
            elif current == ApplicationStatus.OFFER_CREATED:
                if target != ApplicationStatus.WITHDRAWN:
                    raise AuthorizationError(
                        "Not authorized to update this application status: a client can only withdraw "
                        "an application in status 'offer_created'"
                    )
            elif target not in CLIENT_ALLOWED_STATUSES:
                raise AuthorizationError(
                    f"Not authorized to update this application status: a client cannot move an "
                    f"application from '{current.value}' to '{target.value}'"
                )
            return

        if principal.is_vendor and (is_resource_owner or is_creator):
            if target != ApplicationStatus.WITHDRAWN:
                raise AuthorizationError(
                    f"Not authorized to update this application status: a vendor can only withdraw "
                    f"an application, not move it to '{target.value}'"
                )
            return

        raise AuthorizationError(
            f"Not authorized to update this application status: role '{principal.effective_role}' "
            f"has no rights over this application in status '{current.value}'"
        )

    # ===========================
    # DETAILS / DELETE
    # ===========================

    async def update_details(self, application_id: str, principal: Principal, fields: dict) -> LifecycleResult:
        application = await self.get(application_id)
        self._require_creator_or_admin(principal, application, "update")

        changes = {key: value for key, value in fields.items() if key in DETAIL_FIELDS}
        if not changes:
            raise ValidationError(f"No fields to update. Updatable fields are: {', '.join(DETAIL_FIELDS)}")

        # Validate through the document model so limits and enums apply
        validated = Application.model_validate({**application.model_dump(), **changes})
        update = {key: getattr(validated, key) for key in changes}
        for key, value in update.items():
            if hasattr(value, "model_dump"):
                update[key] = value.model_dump()
        update["updated_by"] = principal.id
        update["updated_at"] = datetime.utcnow()

        await self.collection.update_one({"_id": to_object_id(application.id)}, {"$set": update})
        application = await self.get(application.id)

        effects = EffectLog()
        effects.add(await run_effect(
            "history",
            self.history.record(
                application_id=application.id,
                status=application.status,
                notes="Application details updated",
                organization_id=application.organization_id,
                created_by=principal.id,
            ),
            f"(application {application.id})",
        ))
        return LifecycleResult(application=application, effects=effects)

    async def delete(self, application_id: str, principal: Principal) -> LifecycleResult:
        application = await self.get(application_id)
        self._require_creator_or_admin(principal, application, "delete")

        # The final entry is written while the application still exists
        effects = EffectLog()
        effects.add(await run_effect(
            "history",
            self.history.record(
                application_id=application.id,
                previous_status=application.status,
                status=DELETED_STATUS,
                notes="Application was deleted",
                organization_id=application.organization_id,
                created_by=principal.id,
            ),
            f"(application {application.id})",
        ))

        await self.collection.delete_one({"_id": to_object_id(application.id)})
        logger.info(f"Application {application.id} deleted by {principal.id}")
        return LifecycleResult(application=application, effects=effects)

    def _require_creator_or_admin(self, principal: Principal, application: Application, verb: str):
        if application.created_by != principal.id and not principal.is_admin:
            raise AuthorizationError(
                f"Not authorized to {verb} this application: only its creator or an admin can {verb} it"
            )

    # ===========================
    # LOOKUP
    # ===========================

    async def get(self, application_id: str) -> Application:
        oid = to_object_id(application_id)
        document = await self.collection.find_one({"_id": oid}) if oid else None
        if not document:
            raise NotFoundError("Application not found")
        return Application.from_mongo(document)
