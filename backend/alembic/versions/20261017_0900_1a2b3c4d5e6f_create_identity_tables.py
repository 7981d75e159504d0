"""create_identity_tables

Users, organizations, organization members and personal spaces.

Revision ID: 1a2b3c4d5e6f
Revises:
Create Date: 2026-10-17 09:00:00.000000
"""
from __future__ import annotations

from alembic import op

revision = "1a2b3c4d5e6f"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.execute("CREATE TYPE context_type AS ENUM ('personal', 'organization')")
    op.execute("CREATE TYPE org_role AS ENUM ('owner', 'admin', 'member')")

    op.execute("""
        CREATE TABLE users (
            id                UUID         PRIMARY KEY DEFAULT gen_random_uuid(),
            email             VARCHAR(255) NOT NULL,
            password_hash     VARCHAR(255),
            display_name      VARCHAR(100) NOT NULL,
            avatar_url        VARCHAR(500),
            is_active         BOOLEAN      NOT NULL DEFAULT true,
            email_verified    BOOLEAN      NOT NULL DEFAULT false,
            last_context_type context_type,
            last_context_id   UUID,
            deleted_at        TIMESTAMPTZ,
            created_at        TIMESTAMPTZ  NOT NULL DEFAULT now(),
            updated_at        TIMESTAMPTZ  NOT NULL DEFAULT now()
        )
    """)
    op.execute("CREATE UNIQUE INDEX ix_users_email ON users(email)")

    op.execute("""
        CREATE TABLE organizations (
            id          UUID         PRIMARY KEY DEFAULT gen_random_uuid(),
            name        VARCHAR(100) NOT NULL,
            slug        VARCHAR(120) NOT NULL,
            description TEXT,
            created_at  TIMESTAMPTZ  NOT NULL DEFAULT now(),
            updated_at  TIMESTAMPTZ  NOT NULL DEFAULT now()
        )
    """)
    op.execute("CREATE UNIQUE INDEX ix_organizations_slug ON organizations(slug)")

    op.execute("""
        CREATE TABLE org_members (
            id        UUID        PRIMARY KEY DEFAULT gen_random_uuid(),
            org_id    UUID        NOT NULL REFERENCES organizations(id) ON DELETE CASCADE,
            user_id   UUID        NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            role      org_role    NOT NULL,
            joined_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            CONSTRAINT uq_org_members_org_user UNIQUE (org_id, user_id)
        )
    """)
    op.execute("CREATE INDEX ix_org_members_org_id ON org_members(org_id)")
    op.execute("CREATE INDEX ix_org_members_user_id ON org_members(user_id)")
    # Exactly one owner per organization
    op.execute(
        "CREATE UNIQUE INDEX ux_org_members_single_owner ON org_members(org_id) "
        "WHERE role = 'owner'"
    )

    op.execute("""
        CREATE TABLE personal_spaces (
            id         UUID        PRIMARY KEY DEFAULT gen_random_uuid(),
            user_id    UUID        NOT NULL UNIQUE REFERENCES users(id) ON DELETE CASCADE,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
        )
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS personal_spaces")
    op.execute("DROP TABLE IF EXISTS org_members")
    op.execute("DROP TABLE IF EXISTS organizations")
    op.execute("DROP TABLE IF EXISTS users")
    op.execute("DROP TYPE IF EXISTS org_role")
    op.execute("DROP TYPE IF EXISTS context_type")
