from __future__ import annotations

import pytest

from app.core.exceptions import AccessErrorKind
from app.repositories.interfaces import IssueRecord, UserRef
from app.services.visibility import (
    CallerContext,
    Identity,
    Role,
    can_edit,
    can_update_status,
    can_view_reporter_contact,
    evaluate,
)
from tests.fakes import CENTER, FAR, NEAR

ALICE = UserRef(id=1, display_name="alice", contact="alice@example.com")


def _issue(location=NEAR, **kw) -> IssueRecord:
    kw.setdefault("reporter", ALICE)
    return IssueRecord(
        id=7,
        title="Broken light",
        description="Street light is out",
        category="Lighting",
        location=location,
        **kw,
    )


def _caller(role: Role | None = None, user_id: int = 2, location=CENTER) -> CallerContext:
    identity = None if role is None else Identity(user_id=user_id, role=role)
    return CallerContext(identity=identity, query_location=location)


def test_nearby_issue_is_allowed_with_distance() -> None:
    decision = evaluate(_caller(), _issue(), 5.0)
    assert decision.allowed
    assert decision.distance_km is not None
    assert 0.01 <= decision.distance_km <= 0.02
    assert decision.reason is None


def test_far_issue_is_out_of_area() -> None:
    decision = evaluate(_caller(Role.user), _issue(FAR), 5.0)
    assert not decision.allowed
    assert decision.reason is AccessErrorKind.OUT_OF_AREA


def test_radius_boundary_is_inclusive() -> None:
    caller = _caller()
    exact = evaluate(caller, _issue(FAR), 5.0).distance_km
    assert exact is not None
    assert evaluate(caller, _issue(FAR), exact).allowed


@pytest.mark.parametrize("role", [None, Role.user])
def test_hidden_issue_looks_absent_to_regular_callers(role) -> None:
    decision = evaluate(_caller(role), _issue(is_hidden=True), 5.0)
    assert not decision.allowed
    assert decision.reason is AccessErrorKind.NOT_FOUND


def test_hidden_check_precedes_distance() -> None:
    decision = evaluate(_caller(Role.user), _issue(FAR, is_hidden=True), 5.0)
    assert decision.reason is AccessErrorKind.NOT_FOUND


@pytest.mark.parametrize("role", [Role.moderator, Role.admin])
def test_privileged_callers_see_hidden_issues_but_not_beyond_radius(role) -> None:
    assert evaluate(_caller(role), _issue(is_hidden=True), 5.0).allowed
    far = evaluate(_caller(role), _issue(FAR, is_hidden=True), 5.0)
    assert far.reason is AccessErrorKind.OUT_OF_AREA


def test_evaluate_requires_resolved_location() -> None:
    with pytest.raises(ValueError):
        evaluate(_caller(location=None), _issue(), 5.0)


def test_can_edit_rules() -> None:
    own = _issue()
    anon = _issue(reporter=None, is_anonymous=True)

    assert can_edit(_caller(Role.user, user_id=1), own)
    assert not can_edit(_caller(Role.user, user_id=2), own)
    assert not can_edit(_caller(None), own)
    assert can_edit(_caller(Role.admin, user_id=9), own)
    assert not can_edit(_caller(Role.moderator, user_id=9), own)

    assert can_edit(_caller(Role.moderator, user_id=9), anon)
    assert can_edit(_caller(Role.admin, user_id=9), anon)
    assert not can_edit(_caller(Role.user, user_id=1), anon)


def test_stale_anonymous_flag_still_blocks_reporter_ownership() -> None:
    # is_anonymous wins even if a reporter id leaked into the record
    issue = _issue(is_anonymous=True)
    assert not can_edit(_caller(Role.user, user_id=1), issue)
    assert not can_view_reporter_contact(_caller(Role.user, user_id=1), issue)


def test_can_update_status_admin_or_assignee() -> None:
    issue = _issue(assignee=UserRef(id=5, display_name="crew"))
    assert can_update_status(_caller(Role.admin, user_id=9), issue)
    assert can_update_status(_caller(Role.user, user_id=5), issue)
    assert not can_update_status(_caller(Role.user, user_id=1), issue)
    assert not can_update_status(_caller(Role.moderator, user_id=3), issue)
