import pytest

from packages.legal_dms.clearance import (
    can_access,
    clearance_range,
    describe_level,
    recommended_level,
    validate_level,
)


def test_recommended_level_uses_highest_role_default():
    assert recommended_level(["paralegal"]) == 4
    assert recommended_level(["paralegal", "firm_admin"]) == 8
    assert recommended_level([]) == 5
    assert recommended_level(["unknown_role"]) == 5


def test_clearance_range_spans_all_roles():
    assert clearance_range(["client_user"]) == (1, 4)
    assert clearance_range(["client_user", "legal_manager"]) == (1, 9)
    assert clearance_range([]) == (1, 10)


@pytest.mark.parametrize("level", [0, 11])
def test_validate_level_rejects_out_of_bounds(level):
    result = validate_level(level, ["legal_professional"])
    assert result.valid is False
    assert "between 1 and 10" in result.message
    assert result.recommendation == 5


def test_validate_level_enforces_role_range():
    result = validate_level(9, ["paralegal"])
    assert result.valid is False
    assert "2-6" in result.message

    assert validate_level(6, ["paralegal"]).valid is True


def test_describe_and_compare_levels():
    assert describe_level(1) == "Public"
    assert describe_level(10) == "Ultra Classified"
    assert describe_level(42) == "Unknown"
    assert can_access(5, 5) is True
    assert can_access(4, 5) is False
