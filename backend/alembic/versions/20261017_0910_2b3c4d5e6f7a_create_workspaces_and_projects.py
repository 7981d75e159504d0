"""create_workspaces_and_projects

Revision ID: 2b3c4d5e6f7a
Revises: 1a2b3c4d5e6f
Create Date: 2026-10-17 09:10:00.000000
"""
from __future__ import annotations

from alembic import op

revision = "2b3c4d5e6f7a"
down_revision = "1a2b3c4d5e6f"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.execute("CREATE TYPE member_role AS ENUM ('owner', 'member')")
    op.execute(
        "CREATE TYPE project_status AS ENUM "
        "('planning', 'active', 'on_hold', 'completed', 'cancelled')"
    )

    # context_id points at personal_spaces.id or organizations.id, so no FK
    op.execute("""
        CREATE TABLE workspaces (
            id           UUID         PRIMARY KEY DEFAULT gen_random_uuid(),
            name         VARCHAR(100) NOT NULL,
            description  TEXT,
            color        VARCHAR(7)   NOT NULL DEFAULT '#ff6b35',
            context_type context_type NOT NULL,
            context_id   UUID         NOT NULL,
            created_at   TIMESTAMPTZ  NOT NULL DEFAULT now(),
            updated_at   TIMESTAMPTZ  NOT NULL DEFAULT now()
        )
    """)
    op.execute("CREATE INDEX ix_workspaces_context ON workspaces(context_type, context_id)")

    op.execute("""
        CREATE TABLE workspace_members (
            id           UUID        PRIMARY KEY DEFAULT gen_random_uuid(),
            workspace_id UUID        NOT NULL REFERENCES workspaces(id) ON DELETE CASCADE,
            user_id      UUID        NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            role         member_role NOT NULL DEFAULT 'member',
            joined_at    TIMESTAMPTZ NOT NULL DEFAULT now(),
            CONSTRAINT uq_workspace_members_workspace_user UNIQUE (workspace_id, user_id)
        )
    """)
    op.execute("CREATE INDEX ix_workspace_members_user_id ON workspace_members(user_id)")

    op.execute("""
        CREATE TABLE projects (
            id           UUID           PRIMARY KEY DEFAULT gen_random_uuid(),
            workspace_id UUID           NOT NULL REFERENCES workspaces(id) ON DELETE CASCADE,
            name         VARCHAR(100)   NOT NULL,
            description  TEXT,
            status       project_status NOT NULL DEFAULT 'planning',
            start_date   DATE,
            end_date     DATE,
            tags         JSONB          NOT NULL DEFAULT '[]'::jsonb,
            created_at   TIMESTAMPTZ    NOT NULL DEFAULT now(),
            updated_at   TIMESTAMPTZ    NOT NULL DEFAULT now()
        )
    """)
    op.execute("CREATE INDEX ix_projects_workspace_id ON projects(workspace_id)")

    op.execute("""
        CREATE TABLE project_members (
            id         UUID        PRIMARY KEY DEFAULT gen_random_uuid(),
            project_id UUID        NOT NULL REFERENCES projects(id) ON DELETE CASCADE,
            user_id    UUID        NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            role       member_role NOT NULL DEFAULT 'member',
            joined_at  TIMESTAMPTZ NOT NULL DEFAULT now(),
            CONSTRAINT uq_project_members_project_user UNIQUE (project_id, user_id)
        )
    """)
    op.execute("CREATE INDEX ix_project_members_user_id ON project_members(user_id)")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS project_members")
    op.execute("DROP TABLE IF EXISTS projects")
    op.execute("DROP TABLE IF EXISTS workspace_members")
    op.execute("DROP TABLE IF EXISTS workspaces")
    op.execute("DROP TYPE IF EXISTS project_status")
    op.execute("DROP TYPE IF EXISTS member_role")
