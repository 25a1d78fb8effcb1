"""
Tests for the active/inactive status classification
"""
import pytest

from staffhub.exceptions import ValidationError
from staffhub.models.enums import ApplicationStatus
from staffhub.services.status_mapping import (
    ACTIVE_STATUSES,
    INACTIVE_STATUSES,
    get_active_applications_query,
    get_all_statuses,
    get_inactive_applications_query,
    get_status_category,
    get_status_mapping,
    is_active_status,
    is_inactive_status,
    is_terminal_status,
    parse_status,
)


class TestStatusCategories:
    """Every known status falls in exactly one category"""

    def test_categories_partition_the_enumeration(self):
        assert set(ACTIVE_STATUSES).isdisjoint(INACTIVE_STATUSES)
        assert set(get_all_statuses()) == {status.value for status in ApplicationStatus}

    @pytest.mark.parametrize("status", ["applied", "shortlisted", "offer_accepted", "onboarded"])
    def test_active(self, status):
        assert get_status_category(status) == "active"

    @pytest.mark.parametrize("status", ["rejected", "withdrawn", "did_not_join", "cancelled"])
    def test_inactive(self, status):
        assert get_status_category(status) == "inactive"

    def test_unrecognized_status_is_inactive(self):
        assert get_status_category("some_unrecognized_value") == "inactive"

    def test_accepts_enum_members(self):
        assert get_status_category(ApplicationStatus.INTERVIEW) == "active"
        assert is_terminal_status(ApplicationStatus.REJECTED)
        assert not is_terminal_status(ApplicationStatus.OFFER_CREATED)

    def test_active_query(self):
        assert get_active_applications_query() == {"status": {"$in": list(ACTIVE_STATUSES)}}

    def test_inactive_query(self):
        assert get_inactive_applications_query() == {"status": {"$in": list(INACTIVE_STATUSES)}}

    @pytest.mark.parametrize("status", list(ApplicationStatus))
    def test_predicates_never_overlap(self, status):
        assert is_active_status(status) != is_inactive_status(status)
        assert is_inactive_status(status) == (status.value in INACTIVE_STATUSES)

    def test_unrecognized_status_is_neither(self):
        assert not is_active_status("some_unrecognized_value")
        assert not is_inactive_status("some_unrecognized_value")

    def test_mapping_lists_everything(self):
        mapping = get_status_mapping()
        assert mapping["all"] == mapping["active"] + mapping["inactive"]


class TestParseStatus:
    def test_valid_value(self):
        assert parse_status("interview") is ApplicationStatus.INTERVIEW

    def test_missing_value(self):
        with pytest.raises(ValidationError, match="Status is required"):
            parse_status("")

    def test_unknown_value_lists_valid_ones(self):
        with pytest.raises(ValidationError) as exc_info:
            parse_status("hired")
        assert "Invalid status" in exc_info.value.message
        assert "offer_created" in exc_info.value.message
        assert exc_info.value.status_code == 400
