import pytest
from pydantic import ValidationError

from app.models import CoverageType, IssuePriority
from app.schemas import (
    CoverageAreaCreate,
    DayScheduleIn,
    DispatchConfig,
    DispatchConfigUpdate,
    IssueCreate,
)


def test_issue_create_defaults():
    issue = IssueCreate(property_id="p1", title="Leak")
    assert issue.priority is IssuePriority.MEDIUM
    assert issue.description == ""


def test_dispatch_config_defaults():
    config = DispatchConfig()
    assert config.response_timeout == 30
    assert config.max_retries == 3
    assert config.auto_escalate is True
    assert "{issue_title}" in config.dispatch_template


@pytest.mark.parametrize("field,value", [
    ("response_timeout", 4),
    ("max_retries", 0),
    ("max_retries", 6),
    ("dispatch_template", "short"),
    ("whatsapp_number", "5125550101"),
])
def test_dispatch_config_rejects_out_of_range(field, value):
    with pytest.raises(ValidationError):
        DispatchConfig(**{field: value})


def test_dispatch_config_update_partial():
    update = DispatchConfigUpdate(max_retries=2, whatsapp_number=" +15125550000 ")
    assert update.whatsapp_number == "+15125550000"
    assert update.model_dump(exclude_none=True) == {"max_retries": 2, "whatsapp_number": "+15125550000"}


def test_radius_coverage_needs_miles():
    with pytest.raises(ValidationError):
        CoverageAreaCreate(coverage_type=CoverageType.RADIUS, value="HQ")
    area = CoverageAreaCreate(coverage_type="zip_code", value="78701")
    assert area.coverage_type is CoverageType.ZIP_CODE


def test_day_schedule_bounds():
    with pytest.raises(ValidationError):
        DayScheduleIn(day_of_week=7, start_time="09:00", end_time="17:00")

