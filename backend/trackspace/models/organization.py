"""
Organization and PersonalSpace ORM models.

Both are contexts: the top-level tenancy boundary that owns workspaces.
"""

from __future__ import annotations

from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from trackspace.models.base import Base, TimestampMixin, UUIDMixin

if TYPE_CHECKING:
    from trackspace.models.member import OrgMember


class Organization(Base, UUIDMixin, TimestampMixin):
    """Represents a tenant organization."""

    __tablename__ = "organizations"

    name: Mapped[str] = mapped_column(String(100), nullable=False)
    slug: Mapped[str] = mapped_column(String(120), nullable=False, unique=True, index=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Relationships
    members: Mapped[list[OrgMember]] = relationship(
        "OrgMember", back_populates="organization", passive_deletes=True
    )

    def __repr__(self) -> str:
        return f"<Organization id={self.id} slug={self.slug!r}>"


class PersonalSpace(Base, UUIDMixin, TimestampMixin):
    """A user's private context. Exactly one per user, created on first access."""

    __tablename__ = "personal_spaces"

    user_id: Mapped[UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False, unique=True, index=True
    )

    def __repr__(self) -> str:
        return f"<PersonalSpace id={self.id} user_id={self.user_id}>"
