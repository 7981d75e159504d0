"""
Workspace and WorkspaceMember ORM models.
"""

from __future__ import annotations

import enum
from datetime import datetime
from uuid import UUID

from sqlalchemy import DateTime, Enum, ForeignKey, String, Text, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column

from trackspace.models.base import Base, TimestampMixin, UUIDMixin, utcnow
from trackspace.models.user import ContextType


class MemberRole(str, enum.Enum):
    """Role inside a workspace or project. Exactly one owner per container."""

    owner = "owner"
    member = "member"


class Workspace(Base, UUIDMixin, TimestampMixin):
    """A named grouping of projects inside exactly one context."""

    __tablename__ = "workspaces"

    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    color: Mapped[str] = mapped_column(String(7), nullable=False, default="#ff6b35")
    context_type: Mapped[ContextType] = mapped_column(
        Enum(ContextType, name="context_type"), nullable=False
    )
    # personal_spaces.id or organizations.id depending on context_type
    context_id: Mapped[UUID] = mapped_column(nullable=False, index=True)

    def __repr__(self) -> str:
        return f"<Workspace id={self.id} context={self.context_type.value}:{self.context_id}>"


class WorkspaceMember(Base, UUIDMixin):
    __tablename__ = "workspace_members"
    __table_args__ = (
        UniqueConstraint("workspace_id", "user_id", name="uq_workspace_members_workspace_user"),
    )

    workspace_id: Mapped[UUID] = mapped_column(
        ForeignKey("workspaces.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id: Mapped[UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    role: Mapped[MemberRole] = mapped_column(
        Enum(MemberRole, name="member_role"), nullable=False, default=MemberRole.member
    )
    joined_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False
    )

    def __repr__(self) -> str:
        return f"<WorkspaceMember workspace_id={self.workspace_id} user_id={self.user_id} role={self.role}>"
