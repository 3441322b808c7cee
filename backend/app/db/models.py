"""SQLAlchemy ORM models for groups, members and plan approvals."""

import uuid
from datetime import date, datetime

from sqlalchemy import (
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship
from sqlalchemy.sql import func


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    pass


class GroupTrip(Base):
    """Group table - one collaborative trip with a single leader."""

    __tablename__ = "group_trip"

    group_id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    group_name: Mapped[str] = mapped_column(Text, nullable=False)
    destination: Mapped[str] = mapped_column(Text, nullable=False)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    leader_id: Mapped[str] = mapped_column(Text, nullable=False)
    leader_name: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    # Relationships
    members: Mapped[list["GroupMember"]] = relationship(
        "GroupMember",
        back_populates="group",
        cascade="all, delete-orphan",
        order_by="GroupMember.joined_at",
    )
    approvals: Mapped[list["PlanApproval"]] = relationship(
        "PlanApproval", back_populates="group", cascade="all, delete-orphan"
    )


class GroupMember(Base):
    """Group membership table - one row per (group, user)."""

    __tablename__ = "group_member"
    __table_args__ = (
        UniqueConstraint("group_id", "user_id", name="uq_group_member_user"),
        Index("idx_group_member_user", "user_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    group_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("group_trip.group_id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[str] = mapped_column(Text, nullable=False)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    email: Mapped[str | None] = mapped_column(Text, nullable=True)
    joined_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    # Relationships
    group: Mapped["GroupTrip"] = relationship("GroupTrip", back_populates="members")


class PlanApproval(Base):
    """Plan approval table - at most one vote per (group, user)."""

    __tablename__ = "plan_approval"
    __table_args__ = (
        UniqueConstraint("group_id", "user_id", name="uq_plan_approval_group_user"),
        CheckConstraint("vote IN ('agree', 'request_changes')", name="ck_plan_approval_vote"),
        Index("idx_plan_approval_group", "group_id"),
    )

    id: Mapped[str] = mapped_column(Text, primary_key=True)
    group_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("group_trip.group_id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[str] = mapped_column(Text, nullable=False)
    user_name: Mapped[str] = mapped_column(Text, nullable=False)
    vote: Mapped[str] = mapped_column(Text, nullable=False)
    comment: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    # Relationships
    group: Mapped["GroupTrip"] = relationship("GroupTrip", back_populates="approvals")
