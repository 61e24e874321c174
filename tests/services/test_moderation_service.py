from __future__ import annotations

import pytest

from app.core.exceptions import NotFoundError, ValidationError
from app.schemas.issue import BulkUpdateRequest, ReviewAction
from app.services.moderation import MANUAL_HIDDEN_REASON
from app.services.visibility import Identity, Role
from tests.fakes import FAR, NEAR, make_moderation_service

MOD = Identity(user_id=3, role=Role.moderator, username="mod")
ADMIN = Identity(user_id=4, role=Role.admin, username="root")


@pytest.mark.asyncio
async def test_flagged_queue_orders_by_flag_count_and_ignores_distance(store):
    store.add_issue(NEAR, flag_count=0)
    one = store.add_issue(NEAR, flag_count=1)
    three = store.add_issue(FAR, flag_count=3, is_hidden=True)
    svc = make_moderation_service(store)

    page = await svc.flagged(MOD, min_flags=1, page=1, limit=20)

    assert [i.id for i in page.items] == [three.id, one.id]
    assert page.total == 2
    assert page.has_more is False
    assert all(i.distance_km is None for i in page.items)


@pytest.mark.asyncio
async def test_flagged_queue_min_flags_and_paging(store):
    for count in (2, 4, 6):
        store.add_issue(NEAR, flag_count=count)
    svc = make_moderation_service(store)

    page = await svc.flagged(MOD, min_flags=3, page=1, limit=1)

    assert page.total == 2
    assert [i.flag_count for i in page.items] == [6]
    assert page.has_more is True


@pytest.mark.asyncio
async def test_review_hide_then_unhide(store):
    issue = store.add_issue(NEAR, reporter_id=1)
    svc = make_moderation_service(store)

    hidden = await svc.review(MOD, issue.id, ReviewAction.hide)
    assert hidden.issue is not None and hidden.issue.is_hidden is True
    assert store.issues[issue.id].hidden_reason == MANUAL_HIDDEN_REASON

    shown = await svc.review(MOD, issue.id, ReviewAction.unhide, "Looks legitimate")
    assert shown.message == "Issue unhidden"
    assert store.issues[issue.id].is_hidden is False
    assert store.issues[issue.id].hidden_reason is None
    last = store.issues[issue.id].activity_log[-1]
    assert (last.action, last.details) == ("Reviewed", "Issue unhidden: Looks legitimate")


@pytest.mark.asyncio
async def test_review_delete(store):
    issue = store.add_issue(NEAR, reporter_id=1)
    svc = make_moderation_service(store)

    result = await svc.review(MOD, issue.id, ReviewAction.delete)

    assert (result.message, result.issue) == ("Issue deleted", None)
    assert issue.id not in store.issues


@pytest.mark.asyncio
async def test_review_unknown_issue(store):
    with pytest.raises(NotFoundError):
        await make_moderation_service(store).review(MOD, 404, ReviewAction.hide)


@pytest.mark.asyncio
async def test_assign_sets_assignee_with_contact_for_admin(store):
    issue = store.add_issue(NEAR, reporter_id=1)
    svc = make_moderation_service(store)

    dto = await svc.assign(ADMIN, issue.id, 2)

    assert dto.assignee is not None
    assert (dto.assignee.id, dto.assignee.contact) == (2, "bob@example.com")
    assert dto.activity_log[-1].details == "Assigned to bob"


@pytest.mark.asyncio
async def test_assign_unknown_user_or_issue(store):
    issue = store.add_issue(NEAR, reporter_id=1)
    svc = make_moderation_service(store)

    with pytest.raises(NotFoundError, match="User not found"):
        await svc.assign(ADMIN, issue.id, 99)
    with pytest.raises(NotFoundError, match="Issue not found"):
        await svc.assign(ADMIN, 99, 2)


@pytest.mark.asyncio
async def test_bulk_update_changes_existing_issues_only(store):
    a = store.add_issue(NEAR, reporter_id=1)
    b = store.add_issue(FAR, reporter_id=1)
    svc = make_moderation_service(store)

    result = await svc.bulk_update(
        ADMIN,
        BulkUpdateRequest(
            issue_ids=[a.id, b.id, a.id, 999], status="Resolved", priority="High", assignee_id=2
        ),
    )

    assert result.modified_count == 2
    for issue_id in (a.id, b.id):
        issue = store.issues[issue_id]
        assert (issue.status, issue.priority) == ("Resolved", "High")
        assert issue.resolved_at is not None
        assert issue.assignee.id == 2
        assert issue.activity_log[-1].action == "Bulk Updated"
        assert issue.activity_log[-1].actor_name == "root"


@pytest.mark.asyncio
async def test_bulk_update_reopening_clears_resolved_at(store):
    issue = store.add_issue(NEAR, status="Resolved", resolved_at=store.now())
    svc = make_moderation_service(store)

    await svc.bulk_update(ADMIN, BulkUpdateRequest(issue_ids=[issue.id], status="In Progress"))

    assert store.issues[issue.id].status == "In Progress"
    assert store.issues[issue.id].resolved_at is None


@pytest.mark.asyncio
async def test_bulk_update_rejects_empty_or_noop_requests(store):
    issue = store.add_issue(NEAR)
    svc = make_moderation_service(store)

    with pytest.raises(ValidationError, match="Issue IDs are required"):
        await svc.bulk_update(ADMIN, BulkUpdateRequest(issue_ids=[], status="Resolved"))
    with pytest.raises(ValidationError):
        await svc.bulk_update(ADMIN, BulkUpdateRequest(issue_ids=[issue.id]))
    with pytest.raises(NotFoundError, match="User not found"):
        await svc.bulk_update(ADMIN, BulkUpdateRequest(issue_ids=[issue.id], assignee_id=99))
    assert store.issues[issue.id].activity_log == ()
