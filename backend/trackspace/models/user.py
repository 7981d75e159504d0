"""
User ORM model.
"""

from __future__ import annotations

import enum
from datetime import datetime
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import Boolean, DateTime, Enum, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from trackspace.models.base import Base, TimestampMixin, UUIDMixin

if TYPE_CHECKING:
    from trackspace.models.member import OrgMember


class ContextType(str, enum.Enum):
    """Top-level tenancy boundary a workspace lives in."""

    personal = "personal"
    organization = "organization"


class User(Base, UUIDMixin, TimestampMixin):
    """Represents an authenticated user."""

    __tablename__ = "users"

    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True, index=True)
    password_hash: Mapped[str | None] = mapped_column(String(255), nullable=True)
    display_name: Mapped[str] = mapped_column(String(100), nullable=False)
    avatar_url: Mapped[str | None] = mapped_column(String(500), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    email_verified: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # Soft pointer to the context the user last switched to; not a foreign key
    # because it may reference either a personal space or an organization.
    last_context_type: Mapped[ContextType | None] = mapped_column(
        Enum(ContextType, name="context_type"), nullable=True
    )
    last_context_id: Mapped[UUID | None] = mapped_column(nullable=True)

    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    # Relationships
    org_memberships: Mapped[list[OrgMember]] = relationship(
        "OrgMember", back_populates="user", passive_deletes=True
    )

    def __repr__(self) -> str:
        return f"<User id={self.id} email={self.email!r}>"
