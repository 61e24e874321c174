from __future__ import annotations

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from app.models.base import Base


class Issue(Base):
    __tablename__ = "issues"
    __table_args__ = (
        CheckConstraint("latitude BETWEEN -90 AND 90", name="ck_issues_latitude"),
        CheckConstraint("longitude BETWEEN -180 AND 180", name="ck_issues_longitude"),
        CheckConstraint(
            "NOT is_anonymous OR reporter_id IS NULL", name="ck_issues_anonymous_reporter"
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(100), nullable=False)
    description = Column(Text, nullable=False)
    category = Column(String(32), nullable=False, index=True)
    status = Column(String(16), nullable=False, default="Reported", server_default="Reported")
    priority = Column(String(16), nullable=False, default="Medium", server_default="Medium")
    severity = Column(String(16), nullable=False, default="Moderate", server_default="Moderate")
    latitude = Column(Float, nullable=False, index=True)
    longitude = Column(Float, nullable=False, index=True)
    address = Column(String, nullable=True)
    reporter_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    is_anonymous = Column(Boolean, nullable=False, default=False, server_default="false")
    assignee_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    assigned_at = Column(DateTime(timezone=True), nullable=True)
    is_hidden = Column(Boolean, nullable=False, default=False, server_default="false", index=True)
    hidden_reason = Column(String, nullable=True)
    is_urgent = Column(Boolean, nullable=False, default=False, server_default="false")
    affected_area = Column(String(200), nullable=True)
    flag_count = Column(Integer, nullable=False, default=0, server_default="0", index=True)
    upvote_count = Column(Integer, nullable=False, default=0, server_default="0", index=True)
    resolved_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    reporter = relationship("User", foreign_keys=[reporter_id], lazy="raise")
    assignee = relationship("User", foreign_keys=[assignee_id], lazy="raise")
    comments = relationship(
        "IssueComment", order_by="IssueComment.id", cascade="all, delete-orphan", lazy="raise"
    )
    activity_log = relationship(
        "IssueActivity", order_by="IssueActivity.id", cascade="all, delete-orphan", lazy="raise"
    )
    flags = relationship(
        "IssueFlag", order_by="IssueFlag.id", cascade="all, delete-orphan", lazy="raise"
    )
    upvotes = relationship("IssueUpvote", cascade="all, delete-orphan", lazy="raise")
    images = relationship(
        "IssueImage", order_by="IssueImage.id", cascade="all, delete-orphan", lazy="raise"
    )


class IssueComment(Base):
    __tablename__ = "issue_comments"

    id = Column(Integer, primary_key=True)
    issue_id = Column(
        Integer, ForeignKey("issues.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    username = Column(String(64), nullable=True)
    content = Column(String(500), nullable=False)
    is_edited = Column(Boolean, nullable=False, default=False, server_default="false")
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    user = relationship("User", lazy="raise")


class IssueActivity(Base):
    __tablename__ = "issue_activity"

    id = Column(Integer, primary_key=True)
    issue_id = Column(
        Integer, ForeignKey("issues.id", ondelete="CASCADE"), nullable=False, index=True
    )
    action = Column(String(32), nullable=False)
    details = Column(Text, nullable=False)
    actor_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    actor_name = Column(String(64), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    actor = relationship("User", lazy="raise")


class IssueFlag(Base):
    __tablename__ = "issue_flags"
    __table_args__ = (UniqueConstraint("issue_id", "user_id", name="uq_issue_flags_issue_user"),)

    id = Column(Integer, primary_key=True)
    issue_id = Column(
        Integer, ForeignKey("issues.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    reason = Column(String(32), nullable=False)
    description = Column(String(200), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    user = relationship("User", lazy="raise")


class IssueUpvote(Base):
    __tablename__ = "issue_upvotes"

    # Composite PK (issue_id, user_id)
    issue_id = Column(Integer, ForeignKey("issues.id", ondelete="CASCADE"), primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class IssueImage(Base):
    __tablename__ = "issue_images"

    id = Column(Integer, primary_key=True)
    issue_id = Column(
        Integer, ForeignKey("issues.id", ondelete="CASCADE"), nullable=False, index=True
    )
    url = Column(String, nullable=False)
    public_id = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
