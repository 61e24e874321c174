"""Caller-specific projections of issue records.

``redact`` never mutates its input: records are frozen and every change goes
through ``dataclasses.replace``. Applying it twice for the same caller yields
the same view.
"""

from __future__ import annotations

from dataclasses import replace

from app.repositories.interfaces import (
    ANONYMOUS_REPORTER,
    ActivityRecord,
    CommentRecord,
    FlagRecord,
    IssueRecord,
    UserRef,
)
from app.services.visibility import CallerContext, can_view_reporter_contact, is_assignee

ANONYMOUS_NAME = "Anonymous"
SYSTEM_NAME = "System"


def _public_ref(ref: UserRef, name: str) -> UserRef:
    return UserRef(id=ref.id, display_name=name, contact=None, role=ref.role)


def _redact_reporter(issue: IssueRecord, caller: CallerContext) -> UserRef:
    if issue.is_effectively_anonymous:
        return ANONYMOUS_REPORTER
    assert issue.reporter is not None
    if can_view_reporter_contact(caller, issue):
        return issue.reporter
    # Names are public, contact details are not
    return _public_ref(issue.reporter, issue.reporter.display_name)


def _redact_comment(comment: CommentRecord) -> CommentRecord:
    if comment.author is None:
        return replace(comment, author_name=comment.author_name or ANONYMOUS_NAME)
    name = comment.author_name or comment.author.display_name or ANONYMOUS_NAME
    return replace(comment, author=_public_ref(comment.author, name), author_name=name)


def _redact_activity(entry: ActivityRecord) -> ActivityRecord:
    if entry.actor is None:
        return replace(entry, actor_name=entry.actor_name or SYSTEM_NAME)
    name = entry.actor_name or entry.actor.display_name or SYSTEM_NAME
    return replace(entry, actor=_public_ref(entry.actor, name), actor_name=name)


def _redact_flag(flag: FlagRecord, caller: CallerContext) -> FlagRecord:
    if caller.is_privileged or flag.user is None:
        return flag
    return replace(flag, user=None)


def redact(issue: IssueRecord, caller: CallerContext) -> IssueRecord:
    """Return the view of ``issue`` that ``caller`` is allowed to receive."""

    anonymous = issue.is_effectively_anonymous
    assignee = issue.assignee
    if assignee is not None and not (caller.is_admin or is_assignee(caller, issue)):
        assignee = _public_ref(assignee, assignee.display_name)

    return replace(
        issue,
        reporter=_redact_reporter(issue, caller),
        is_anonymous=anonymous,
        assignee=assignee,
        comments=tuple(_redact_comment(c) for c in issue.comments),
        activity_log=tuple(_redact_activity(a) for a in issue.activity_log),
        flags=tuple(_redact_flag(f, caller) for f in issue.flags),
    )


def redact_many(issues: list[IssueRecord], caller: CallerContext) -> list[IssueRecord]:
    return [redact(issue, caller) for issue in issues]


__all__ = ["ANONYMOUS_NAME", "SYSTEM_NAME", "redact", "redact_many"]
