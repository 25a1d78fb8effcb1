"""
Tests for submission, status transitions, detail updates and deletion
"""
from unittest.mock import AsyncMock, Mock, patch

import pytest
from bson import ObjectId

from staffhub.exceptions import AuthorizationError, ConflictError, NotFoundError, ValidationError
from staffhub.models.application_history import DecisionReason
from staffhub.models.enums import ApplicationStatus
from staffhub.services.application_lifecycle import ApplicationLifecycle
from staffhub.services.history import HistoryLedger
from staffhub.services.workflow_engine import WorkflowEngine
from staffhub.services.workflow_templates import WorkflowTemplates

from conftest import make_principal, make_template, two_step_flow


async def _set_status(db, application_id, status):
    await db.applications.update_one({"_id": ObjectId(application_id)}, {"$set": {"status": status}})


async def _submit(db, vendor, requirement_id, resource_id, **details):
    result = await ApplicationLifecycle(db).submit(requirement_id, resource_id, vendor, **details)
    return result.application


class TestSubmit:
    @pytest.mark.asyncio
    async def test_creates_applied_application(self, db, vendor, client_user, requirement_id, resource_id):
        result = await ApplicationLifecycle(db).submit(requirement_id, resource_id, vendor, notes="Great fit")

        application = result.application
        assert application.status == "applied"
        assert application.organization_id == vendor.organization_id
        assert application.created_by == vendor.id
        assert application.workflow_status == "not_started"
        assert not result.effects.failures

        history = await HistoryLedger(db).list_for(application.id)
        assert [(h.status, h.notes) for h in history] == [("applied", "Great fit")]

        notification = await db.notifications.find_one({"recipient": client_user.id})
        assert notification["type"] == "new_application"
        assert notification["related_entity"]["application_id"] == application.id

    @pytest.mark.asyncio
    async def test_owner_submitting_is_not_notified(self, db, client_user, requirement_id, resource_id):
        result = await ApplicationLifecycle(db).submit(requirement_id, resource_id, client_user)

        assert result.effects.get("notify_requirement_owner") is None
        assert await db.notifications.count_documents({}) == 0

    @pytest.mark.asyncio
    async def test_duplicate_pair_conflicts(self, db, vendor, requirement_id, resource_id):
        first = await _submit(db, vendor, requirement_id, resource_id)

        with pytest.raises(ConflictError):
            await _submit(db, vendor, requirement_id, resource_id)

        assert await db.applications.count_documents({}) == 1
        assert (await ApplicationLifecycle(db).get(first.id)).status == "applied"

    @pytest.mark.asyncio
    async def test_concurrent_duplicate_hits_unique_index(self, db, vendor, requirement_id, resource_id):
        await _submit(db, vendor, requirement_id, resource_id)

        lifecycle = ApplicationLifecycle(db)
        # The pre-insert lookup misses, as it would for a racing request
        with patch.object(lifecycle.collection, "find_one", AsyncMock(return_value=None)):
            with pytest.raises(ConflictError):
                await lifecycle.submit(requirement_id, resource_id, vendor)

        assert await db.applications.count_documents({}) == 1

    @pytest.mark.asyncio
    async def test_missing_references(self, db, vendor, requirement_id, resource_id):
        lifecycle = ApplicationLifecycle(db)
        with pytest.raises(NotFoundError, match="Requirement not found"):
            await lifecycle.submit(str(ObjectId()), resource_id, vendor)
        with pytest.raises(NotFoundError, match="Resource not found"):
            await lifecycle.submit(requirement_id, "not-an-id", vendor)

    @pytest.mark.asyncio
    async def test_requires_organization(self, db, requirement_id, resource_id):
        loner = make_principal("vendor", "vendor_owner", organization_id=None)
        with pytest.raises(ValidationError, match="organization"):
            await ApplicationLifecycle(db).submit(requirement_id, resource_id, loner)
        assert await db.applications.count_documents({}) == 0

    @pytest.mark.asyncio
    async def test_failing_notification_does_not_fail_submission(self, db, vendor, requirement_id, resource_id):
        notifications = Mock()
        notifications.create = AsyncMock(side_effect=RuntimeError("notifications offline"))

        result = await ApplicationLifecycle(db, notifications=notifications).submit(requirement_id, resource_id, vendor)

        assert result.application.status == "applied"
        failure = result.effects.get("notify_requirement_owner")
        assert not failure.ok
        assert failure.error == "notifications offline"
        assert result.effects.get("history").ok
        assert await HistoryLedger(db).count_for(result.application.id) == 1

    @pytest.mark.asyncio
    async def test_failing_workflow_does_not_fail_submission(self, db, admin, vendor, requirement_id, resource_id):
        await WorkflowTemplates(db).create(make_template(admin, ["vendor_applied"], steps=two_step_flow()))

        lifecycle = ApplicationLifecycle(db)
        with patch.object(lifecycle.workflows, "instantiate", AsyncMock(side_effect=RuntimeError("boom"))):
            result = await lifecycle.submit(requirement_id, resource_id, vendor)

        assert result.application.status == "applied"
        assert result.application.workflow_instance_id is None
        assert not result.effects.get("workflow").ok

    @pytest.mark.asyncio
    async def test_starts_default_workflow(self, db, admin, vendor, requirement_id, resource_id):
        await WorkflowTemplates(db).create(make_template(admin, ["both"], steps=two_step_flow()))

        application = await _submit(db, vendor, requirement_id, resource_id)

        assert application.workflow_instance_id
        assert application.workflow_status == "in_progress"
        instance = await WorkflowEngine(db).get(application.workflow_instance_id)
        assert instance.status == "active"
        assert instance.current_step == 1


class TestChangeStatusAuthorization:
    @pytest.mark.asyncio
    async def test_unknown_status_is_rejected(self, db, admin, vendor, requirement_id, resource_id):
        application = await _submit(db, vendor, requirement_id, resource_id)
        with pytest.raises(ValidationError, match="Invalid status"):
            await ApplicationLifecycle(db).change_status(application.id, "hired", admin)

    @pytest.mark.asyncio
    async def test_unknown_application(self, db, admin):
        with pytest.raises(NotFoundError, match="Application not found"):
            await ApplicationLifecycle(db).change_status(str(ObjectId()), "shortlisted", admin)

    @pytest.mark.asyncio
    async def test_missing_requirement(self, db, admin, vendor, requirement_id, resource_id):
        application = await _submit(db, vendor, requirement_id, resource_id)
        await db.requirements.delete_one({"_id": ObjectId(requirement_id)})
        with pytest.raises(NotFoundError, match="Associated requirement not found"):
            await ApplicationLifecycle(db).change_status(application.id, "shortlisted", admin)

    @pytest.mark.asyncio
    async def test_admin_accepting_fresh_application_shortlists(self, db, admin, vendor, requirement_id, resource_id):
        application = await _submit(db, vendor, requirement_id, resource_id)

        change = await ApplicationLifecycle(db).change_status(application.id, "accepted", admin)

        assert change.application.status == "shortlisted"
        assert change.new_status == "shortlisted"
        assert change.previous_status == "applied"
        assert change.status_category == "active"
        latest = (await HistoryLedger(db).list_for(application.id))[0]
        assert (latest.previous_status, latest.status) == ("applied", "shortlisted")

    @pytest.mark.asyncio
    async def test_client_cannot_shortlist_fresh_application(self, db, client_user, vendor, requirement_id, resource_id):
        application = await _submit(db, vendor, requirement_id, resource_id)

        with pytest.raises(AuthorizationError, match="Not authorized to update this application status"):
            await ApplicationLifecycle(db).change_status(application.id, "shortlisted", client_user)

        assert (await ApplicationLifecycle(db).get(application.id)).status == "applied"

    @pytest.mark.asyncio
    async def test_client_can_reject_fresh_application(self, db, client_user, vendor, requirement_id, resource_id):
        application = await _submit(db, vendor, requirement_id, resource_id)
        change = await ApplicationLifecycle(db).change_status(application.id, "rejected", client_user)
        assert change.new_status == "rejected"
        assert change.status_category == "inactive"

    @pytest.mark.asyncio
    async def test_client_advances_after_shortlisting(self, db, client_user, vendor, requirement_id, resource_id):
        application = await _submit(db, vendor, requirement_id, resource_id)
        await _set_status(db, application.id, "shortlisted")

        lifecycle = ApplicationLifecycle(db)
        assert (await lifecycle.change_status(application.id, "interview", client_user)).new_status == "interview"
        assert (await lifecycle.change_status(application.id, "offer_created", client_user)).new_status == "offer_created"
        with pytest.raises(AuthorizationError):
            await lifecycle.change_status(application.id, "onboarded", client_user)

    @pytest.mark.asyncio
    async def test_client_can_only_withdraw_an_offer(self, db, client_user, vendor, requirement_id, resource_id):
        application = await _submit(db, vendor, requirement_id, resource_id)
        await _set_status(db, application.id, "offer_created")

        lifecycle = ApplicationLifecycle(db)
        with pytest.raises(AuthorizationError):
            await lifecycle.change_status(application.id, "interview", client_user)
        change = await lifecycle.change_status(application.id, "withdrawn", client_user)
        assert change.new_status == "withdrawn"

    @pytest.mark.asyncio
    async def test_client_of_another_requirement_is_denied(self, db, vendor, requirement_id, resource_id):
        application = await _submit(db, vendor, requirement_id, resource_id)
        stranger = make_principal("client", "client_owner", str(ObjectId()))
        with pytest.raises(AuthorizationError):
            await ApplicationLifecycle(db).change_status(application.id, "rejected", stranger)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("current", ["applied", "shortlisted", "interview", "offer_created"])
    async def test_vendor_cannot_advance(self, db, vendor, requirement_id, resource_id, current):
        application = await _submit(db, vendor, requirement_id, resource_id)
        await _set_status(db, application.id, current)
        with pytest.raises(AuthorizationError, match="vendor can only withdraw"):
            await ApplicationLifecycle(db).change_status(application.id, "interview", vendor)

    @pytest.mark.asyncio
    async def test_vendor_can_withdraw(self, db, vendor, requirement_id, resource_id):
        application = await _submit(db, vendor, requirement_id, resource_id)
        change = await ApplicationLifecycle(db).change_status(application.id, "withdrawn", vendor)
        assert change.new_status == "withdrawn"

    @pytest.mark.asyncio
    async def test_unrelated_vendor_is_denied(self, db, vendor, other_vendor, requirement_id, resource_id):
        application = await _submit(db, vendor, requirement_id, resource_id)
        with pytest.raises(AuthorizationError):
            await ApplicationLifecycle(db).change_status(application.id, "withdrawn", other_vendor)

    @pytest.mark.asyncio
    async def test_same_status_is_a_no_op(self, db, admin, vendor, requirement_id, resource_id):
        application = await _submit(db, vendor, requirement_id, resource_id)

        change = await ApplicationLifecycle(db).change_status(application.id, "applied", admin)

        assert not change.changed
        assert change.previous_status == change.new_status == "applied"
        assert await HistoryLedger(db).count_for(application.id) == 1

    @pytest.mark.asyncio
    async def test_terminal_status_is_final(self, db, admin, vendor, requirement_id, resource_id):
        application = await _submit(db, vendor, requirement_id, resource_id)
        lifecycle = ApplicationLifecycle(db)
        await lifecycle.change_status(application.id, "rejected", admin)

        with pytest.raises(AuthorizationError, match="final status"):
            await lifecycle.change_status(application.id, "shortlisted", admin)

    @pytest.mark.asyncio
    async def test_overlong_notes_are_rejected_before_any_write(self, db, admin, vendor, requirement_id, resource_id):
        application = await _submit(db, vendor, requirement_id, resource_id)
        lifecycle = ApplicationLifecycle(db)

        with pytest.raises(ValidationError, match="Notes cannot exceed 1000"):
            await lifecycle.change_status(application.id, "shortlisted", admin, notes="x" * 1001)
        with pytest.raises(ValidationError, match="Follow-up notes cannot exceed 500"):
            await lifecycle.change_status(application.id, "shortlisted", admin, follow_up_notes="x" * 501)

        stored = await lifecycle.get(application.id)
        assert stored.status == "applied"
        assert await HistoryLedger(db).count_for(application.id) == 1


class TestChangeStatusEffects:
    @pytest.mark.asyncio
    async def test_history_is_append_only_and_newest_first(self, db, admin, vendor, requirement_id, resource_id):
        application = await _submit(db, vendor, requirement_id, resource_id)
        lifecycle = ApplicationLifecycle(db)
        for status in ("shortlisted", "interview", "accepted"):
            await lifecycle.change_status(application.id, status, admin)

        history = await HistoryLedger(db).list_for(application.id)

        assert [h.status for h in history] == ["accepted", "interview", "shortlisted", "applied"]
        assert [h.previous_status for h in history] == ["interview", "shortlisted", "applied", None]

    @pytest.mark.asyncio
    async def test_decision_data_is_recorded(self, db, client_user, vendor, requirement_id, resource_id):
        application = await _submit(db, vendor, requirement_id, resource_id)
        await _set_status(db, application.id, "interview")
        reason = DecisionReason(category="technical_skills", rating=2, criteria=["technical_skills"])

        await ApplicationLifecycle(db).change_status(
            application.id, "rejected", client_user,
            notes="Not enough Django", decision_reason=reason, follow_up_required=True,
        )

        latest = (await HistoryLedger(db).list_for(application.id))[0]
        assert latest.notes == "Not enough Django"
        assert latest.decision_reason.category == "technical_skills"
        assert latest.follow_up_required is True
        assert (await ApplicationLifecycle(db).get(application.id)).notes == "Not enough Django"

    @pytest.mark.asyncio
    async def test_notifications(self, db, admin, client_user, vendor, requirement_id, resource_id):
        application = await _submit(db, vendor, requirement_id, resource_id)
        await db.notifications.delete_many({})

        change = await ApplicationLifecycle(db).change_status(
            application.id, "shortlisted", admin, notify_candidate=True, notify_client=True
        )

        assert {r.name for r in change.effects.results} >= {"notify_creator", "notify_candidate", "notify_client"}
        assert await db.notifications.count_documents({"recipient": vendor.id}) == 2
        client_note = await db.notifications.find_one({"recipient": client_user.id})
        assert "Ada Admin" in client_note["message"]

    @pytest.mark.asyncio
    async def test_history_failure_keeps_status_change(self, db, admin, vendor, requirement_id, resource_id):
        application = await _submit(db, vendor, requirement_id, resource_id)
        lifecycle = ApplicationLifecycle(db)

        with patch.object(lifecycle.history, "record_transition", AsyncMock(side_effect=RuntimeError("disk full"))):
            change = await lifecycle.change_status(application.id, "shortlisted", admin)

        assert change.new_status == "shortlisted"
        assert (await lifecycle.get(application.id)).status == "shortlisted"
        assert not change.effects.get("history").ok
        assert change.effects.get("notify_creator").ok


class TestWorkflowThroughLifecycle:
    @pytest.mark.asyncio
    async def test_two_step_workflow_completes(self, db, admin, client_user, requirement_id, resource_id):
        await WorkflowTemplates(db).create(make_template(admin, ["client_applied"], steps=two_step_flow()))
        lifecycle = ApplicationLifecycle(db)

        application = (await lifecycle.submit(requirement_id, resource_id, client_user)).application
        engine = WorkflowEngine(db)
        instance_id = application.workflow_instance_id
        instance = await engine.get(instance_id)
        assert (instance.status, instance.current_step) == ("active", 1)

        # Step 1 belongs to the client; the admin's change leaves it alone
        await lifecycle.change_status(application.id, "shortlisted", admin)
        assert (await engine.get(instance_id)).current_step == 1

        await lifecycle.change_status(application.id, "interview", client_user)
        instance = await engine.get(instance_id)
        assert instance.current_step == 2
        assert instance.step_at(1).action_taken == "interview"

        change = await lifecycle.change_status(application.id, "accepted", admin)
        instance = await engine.get(instance_id)
        assert instance.status == "completed"
        assert instance.completed_at is not None
        assert change.effects.get("workflow").value.completed
        assert change.application.workflow_status == "completed"

        completed_at = instance.completed_at
        await lifecycle.change_status(application.id, "offer_created", admin)
        assert (await engine.get(instance_id)).completed_at == completed_at

    @pytest.mark.asyncio
    async def test_step_records_requested_status(self, db, admin, vendor, requirement_id, resource_id):
        steps = make_template(admin, ["vendor_applied"], steps=two_step_flow()).steps
        admin_first = [steps[1].model_copy(update={"order": 1}), steps[0].model_copy(update={"order": 2})]
        await WorkflowTemplates(db).create(make_template(admin, ["vendor_applied"], steps=admin_first))

        application = await _submit(db, vendor, requirement_id, resource_id)
        await ApplicationLifecycle(db).change_status(application.id, "accepted", admin)

        instance = await WorkflowEngine(db).get(application.workflow_instance_id)
        assert instance.step_at(1).action_taken == "accepted"
        assert (await ApplicationLifecycle(db).get(application.id)).status == "shortlisted"

    @pytest.mark.asyncio
    async def test_unpermitted_step_does_not_block_status_change(self, db, admin, vendor, requirement_id, resource_id):
        steps = make_template(admin, ["vendor_applied"], steps=two_step_flow()).steps
        admin_first = [steps[1].model_copy(update={"order": 1}), steps[0].model_copy(update={"order": 2})]
        await WorkflowTemplates(db).create(make_template(admin, ["vendor_applied"], steps=admin_first))

        application = await _submit(db, vendor, requirement_id, resource_id)
        change = await ApplicationLifecycle(db).change_status(application.id, "withdrawn", vendor)

        assert change.new_status == "withdrawn"
        assert change.effects.get("workflow").ok
        assert change.effects.get("workflow").value.reason == "permission_denied"
        assert await HistoryLedger(db).count_for(application.id) == 2
        instance = await WorkflowEngine(db).get(application.workflow_instance_id)
        assert instance.current_step == 1


class TestDetailsAndDelete:
    @pytest.mark.asyncio
    async def test_creator_updates_details(self, db, vendor, requirement_id, resource_id):
        application = await _submit(db, vendor, requirement_id, resource_id)

        result = await ApplicationLifecycle(db).update_details(application.id, vendor, {
            "notes": "Available from March",
            "proposed_rate": {"amount": 85, "currency": "EUR"},
            "status": "onboarded",
        })

        assert result.application.notes == "Available from March"
        assert result.application.proposed_rate.amount == 85
        assert result.application.status == "applied"
        latest = (await HistoryLedger(db).list_for(application.id))[0]
        assert latest.notes == "Application details updated"

    @pytest.mark.asyncio
    async def test_only_creator_or_admin_updates(self, db, admin, client_user, vendor, requirement_id, resource_id):
        application = await _submit(db, vendor, requirement_id, resource_id)
        lifecycle = ApplicationLifecycle(db)

        with pytest.raises(AuthorizationError):
            await lifecycle.update_details(application.id, client_user, {"notes": "x"})
        await lifecycle.update_details(application.id, admin, {"notes": "checked"})

    @pytest.mark.asyncio
    async def test_nothing_to_update(self, db, vendor, requirement_id, resource_id):
        application = await _submit(db, vendor, requirement_id, resource_id)
        with pytest.raises(ValidationError, match="No fields to update"):
            await ApplicationLifecycle(db).update_details(application.id, vendor, {"status": "onboarded"})

    @pytest.mark.asyncio
    async def test_delete_records_previous_status_first(self, db, admin, vendor, requirement_id, resource_id):
        application = await _submit(db, vendor, requirement_id, resource_id)
        lifecycle = ApplicationLifecycle(db)
        await lifecycle.change_status(application.id, "interview", admin)

        await lifecycle.delete(application.id, vendor)

        assert await db.applications.count_documents({}) == 0
        latest = (await HistoryLedger(db).list_for(application.id))[0]
        assert latest.status == "deleted"
        assert latest.previous_status == ApplicationStatus.INTERVIEW.value
        assert latest.notes == "Application was deleted"

    @pytest.mark.asyncio
    async def test_delete_requires_creator_or_admin(self, db, other_vendor, vendor, requirement_id, resource_id):
        application = await _submit(db, vendor, requirement_id, resource_id)
        with pytest.raises(AuthorizationError):
            await ApplicationLifecycle(db).delete(application.id, other_vendor)
        assert await db.applications.count_documents({}) == 1
