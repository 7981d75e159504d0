"""create_task_tables

Tasks with their assignee/watcher sets, comments, reactions and the
activity log.

Revision ID: 3c4d5e6f7a8b
Revises: 2b3c4d5e6f7a
Create Date: 2026-10-17 09:20:00.000000
"""
from __future__ import annotations

from alembic import op

revision = "3c4d5e6f7a8b"
down_revision = "2b3c4d5e6f7a"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.execute("CREATE TYPE task_status AS ENUM ('todo', 'in_progress', 'done')")
    op.execute("CREATE TYPE task_priority AS ENUM ('low', 'medium', 'high', 'urgent')")

    op.execute("""
        CREATE TABLE tasks (
            id          UUID          PRIMARY KEY DEFAULT gen_random_uuid(),
            project_id  UUID          NOT NULL REFERENCES projects(id) ON DELETE CASCADE,
            title       VARCHAR(500)  NOT NULL,
            description TEXT,
            status      task_status   NOT NULL DEFAULT 'todo',
            priority    task_priority NOT NULL DEFAULT 'medium',
            due_date    DATE,
            created_by  UUID          NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            created_at  TIMESTAMPTZ   NOT NULL DEFAULT now(),
            updated_at  TIMESTAMPTZ   NOT NULL DEFAULT now()
        )
    """)
    op.execute("CREATE INDEX ix_tasks_project_id ON tasks(project_id)")
    op.execute("CREATE INDEX ix_tasks_created_by ON tasks(created_by)")

    for table in ("task_assignees", "task_watchers"):
        op.execute(f"""
            CREATE TABLE {table} (
                task_id  UUID        NOT NULL REFERENCES tasks(id) ON DELETE CASCADE,
                user_id  UUID        NOT NULL REFERENCES users(id) ON DELETE CASCADE,
                added_at TIMESTAMPTZ NOT NULL DEFAULT now(),
                PRIMARY KEY (task_id, user_id)
            )
        """)
        op.execute(f"CREATE INDEX ix_{table}_user_id ON {table}(user_id)")

    op.execute("""
        CREATE TABLE comments (
            id         UUID        PRIMARY KEY DEFAULT gen_random_uuid(),
            task_id    UUID        NOT NULL REFERENCES tasks(id) ON DELETE CASCADE,
            author_id  UUID        NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            content    TEXT        NOT NULL,
            is_edited  BOOLEAN     NOT NULL DEFAULT false,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
        )
    """)
    op.execute("CREATE INDEX ix_comments_task_id ON comments(task_id)")
    op.execute("CREATE INDEX ix_comments_author_id ON comments(author_id)")

    op.execute("""
        CREATE TABLE comment_reactions (
            id         UUID        PRIMARY KEY DEFAULT gen_random_uuid(),
            comment_id UUID        NOT NULL REFERENCES comments(id) ON DELETE CASCADE,
            user_id    UUID        NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            emoji      VARCHAR(32) NOT NULL,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            CONSTRAINT uq_comment_reaction UNIQUE (comment_id, user_id, emoji)
        )
    """)
    op.execute("CREATE INDEX ix_comment_reactions_comment_id ON comment_reactions(comment_id)")

    # Append-only; rows go away only with their task
    op.execute("""
        CREATE TABLE activity_log (
            id           UUID        PRIMARY KEY DEFAULT gen_random_uuid(),
            task_id      UUID        NOT NULL REFERENCES tasks(id) ON DELETE CASCADE,
            action       VARCHAR(50) NOT NULL,
            field        VARCHAR(50),
            old_value    JSONB,
            new_value    JSONB,
            details      TEXT,
            metadata     JSONB,
            performed_by UUID        NOT NULL REFERENCES users(id),
            created_at   TIMESTAMPTZ NOT NULL DEFAULT now()
        )
    """)
    op.execute("CREATE INDEX ix_activity_log_task_id ON activity_log(task_id)")
    op.execute("CREATE INDEX ix_activity_log_performed_by ON activity_log(performed_by)")
    op.execute("CREATE INDEX ix_activity_log_created_at ON activity_log(created_at)")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS activity_log")
    op.execute("DROP TABLE IF EXISTS comment_reactions")
    op.execute("DROP TABLE IF EXISTS comments")
    op.execute("DROP TABLE IF EXISTS task_watchers")
    op.execute("DROP TABLE IF EXISTS task_assignees")
    op.execute("DROP TABLE IF EXISTS tasks")
    op.execute("DROP TYPE IF EXISTS task_priority")
    op.execute("DROP TYPE IF EXISTS task_status")
