from __future__ import annotations

from app.repositories.interfaces import (
    ANONYMOUS_REPORTER,
    ActivityRecord,
    CommentRecord,
    FlagRecord,
    IssueRecord,
    UserRef,
)
from app.services.redaction import redact, redact_many
from app.services.visibility import CallerContext, Identity, Role
from tests.fakes import CENTER, NEAR

U1 = UserRef(id=1, display_name="alice", contact="alice@example.com")
U2 = UserRef(id=2, display_name="bob", contact="bob@example.com")
CREW = UserRef(id=5, display_name="crew", contact="crew@example.com")


def _caller(user_id: int | None, role: Role = Role.user) -> CallerContext:
    identity = None if user_id is None else Identity(user_id=user_id, role=role)
    return CallerContext(identity=identity, query_location=CENTER)


def _issue(**kw) -> IssueRecord:
    kw.setdefault("reporter", U1)
    return IssueRecord(
        id=11,
        title="Garbage pile",
        description="Uncollected garbage near the market",
        category="Cleanliness",
        location=NEAR,
        **kw,
    )


def test_anonymous_issue_reporter_is_sentinel_and_comments_keep_names() -> None:
    issue = _issue(
        reporter=None,
        is_anonymous=True,
        comments=(
            CommentRecord(id=1, author=U2, author_name="bob", content="Same here"),
            CommentRecord(id=2, author=None, author_name=None, content="Legacy comment"),
        ),
    )

    view = redact(issue, _caller(2))

    assert view.reporter == ANONYMOUS_REPORTER
    assert (view.reporter.id, view.reporter.display_name, view.reporter.contact) == (
        None,
        "Anonymous",
        None,
    )
    assert view.is_anonymous is True
    assert [c.author_name for c in view.comments] == ["bob", "Anonymous"]
    assert view.comments[0].author is not None
    assert view.comments[0].author.contact is None


def test_anonymous_issue_hides_reporter_even_from_admins() -> None:
    # The flag alone makes the report anonymous, whatever reporter id is stored
    issue = _issue(is_anonymous=True)
    view = redact(issue, _caller(4, Role.admin))
    assert view.reporter == ANONYMOUS_REPORTER


def test_missing_reporter_is_treated_as_anonymous() -> None:
    view = redact(_issue(reporter=None, is_anonymous=False), _caller(2))
    assert view.reporter == ANONYMOUS_REPORTER
    assert view.is_anonymous is True


def test_owner_sees_full_reporter_identity() -> None:
    view = redact(_issue(), _caller(1))
    assert view.reporter == U1


def test_admin_sees_full_reporter_identity() -> None:
    view = redact(_issue(), _caller(4, Role.admin))
    assert view.reporter == U1


def test_other_user_sees_name_without_contact() -> None:
    for caller in (_caller(2), _caller(None), _caller(3, Role.moderator)):
        view = redact(_issue(), caller)
        assert view.reporter is not None
        assert view.reporter.display_name == "alice"
        assert view.reporter.contact is None


def test_activity_defaults_to_system_and_drops_contacts() -> None:
    issue = _issue(
        activity_log=(
            ActivityRecord(action="Hidden", details="auto", actor=None, actor_name=None),
            ActivityRecord(action="Updated", details="edit", actor=U1, actor_name=None),
        )
    )
    view = redact(issue, _caller(2))
    assert [a.actor_name for a in view.activity_log] == ["System", "alice"]
    assert view.activity_log[1].actor is not None
    assert view.activity_log[1].actor.contact is None


def test_flagger_identity_visible_to_privileged_only() -> None:
    issue = _issue(flags=(FlagRecord(user=U2, reason="Spam"),))
    assert redact(issue, _caller(1)).flags[0].user is None
    assert redact(issue, _caller(3, Role.moderator)).flags[0].user == U2


def test_assignee_contact_for_admin_or_assignee() -> None:
    issue = _issue(assignee=CREW)
    assert redact(issue, _caller(5)).assignee == CREW
    assert redact(issue, _caller(4, Role.admin)).assignee == CREW
    other = redact(issue, _caller(2)).assignee
    assert other is not None and other.contact is None and other.display_name == "crew"


def test_redaction_is_idempotent_and_does_not_mutate_input() -> None:
    issue = _issue(
        comments=(CommentRecord(id=1, author=U2, author_name="bob", content="+1"),),
        flags=(FlagRecord(user=U2, reason="Spam"),),
        assignee=CREW,
    )
    before = issue
    for caller in (_caller(2), _caller(1), _caller(None), _caller(4, Role.admin)):
        once = redact(issue, caller)
        assert redact(once, caller) == once
    assert issue == before
    assert issue.reporter == U1


def test_redact_many_preserves_order() -> None:
    issues = [_issue(), _issue(reporter=None, is_anonymous=True)]
    views = redact_many(issues, _caller(2))
    assert [v.reporter.display_name for v in views] == ["alice", "Anonymous"]
