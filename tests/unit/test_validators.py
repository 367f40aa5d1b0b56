"""Tests for closed-set validation helpers."""

import pytest

from marketing_agents.core.task import DeliverableType, Domain, Priority, Stage
from marketing_agents.errors import ValidationError
from marketing_agents.utils.validators import (
    is_valid_deliverable_type,
    is_valid_domain,
    is_valid_priority,
    is_valid_stage,
    validate_branch_name,
    validate_card_id,
    validate_domain,
    validate_priority,
    validate_stage,
)


class TestEnumValidation:
    @pytest.mark.parametrize("value", [d.value for d in Domain])
    def test_every_domain_valid(self, value):
        assert is_valid_domain(value)
        assert validate_domain(value) == Domain(value)

    def test_enum_member_accepted(self):
        assert validate_priority(Priority.HIGH) is Priority.HIGH

    @pytest.mark.parametrize("value", ["", "SEO", "marketing", None, 3])
    def test_invalid_domain(self, value):
        assert not is_valid_domain(value)

    def test_validate_raises_with_allowed_values(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_domain("marketing")
        message = str(exc_info.value)
        assert 'Invalid domain "marketing"' in message
        assert "seo" in message and "strategy" in message
        assert exc_info.value.allowed == [d.value for d in Domain]

    def test_validation_error_is_value_error(self):
        with pytest.raises(ValueError):
            validate_stage("archived")

    def test_stage_and_types(self):
        assert validate_stage("in_progress") is Stage.IN_PROGRESS
        assert is_valid_stage("backlog")
        assert is_valid_priority("urgent")
        assert not is_valid_priority("critical")
        assert is_valid_deliverable_type(DeliverableType.REPORT.value)
        assert not is_valid_deliverable_type("spreadsheet")


class TestCardId:
    def test_valid(self):
        assert validate_card_id("5f8a9b2c3d4e") == "5f8a9b2c3d4e"

    @pytest.mark.parametrize("card_id", ["", "abc-123", "abc 123", "../x", "a" * 65])
    def test_invalid(self, card_id):
        with pytest.raises(ValidationError):
            validate_card_id(card_id)


class TestBranchName:
    def test_valid(self):
        assert validate_branch_name("feature/spring-launch") == "feature/spring-launch"

    @pytest.mark.parametrize("name", ["", "feature/../x", "/feature", "feature/", "a b", "x;rm"])
    def test_invalid(self, name):
        with pytest.raises(ValueError):
            validate_branch_name(name)
