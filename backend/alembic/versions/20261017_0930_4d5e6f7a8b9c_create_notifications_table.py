"""create_notifications_table

Revision ID: 4d5e6f7a8b9c
Revises: 3c4d5e6f7a8b
Create Date: 2026-10-17 09:30:00.000000
"""
from __future__ import annotations

from alembic import op

revision = "4d5e6f7a8b9c"
down_revision = "3c4d5e6f7a8b"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.execute(
        "CREATE TYPE notification_type AS ENUM "
        "('task_assigned', 'task_updated', 'mentioned', 'comment_added', "
        "'org_member_added', 'org_role_updated', 'project_member_added')"
    )

    op.execute("""
        CREATE TABLE notifications (
            id                      UUID              PRIMARY KEY DEFAULT gen_random_uuid(),
            recipient_id            UUID              NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            sender_id               UUID,
            sender_name             VARCHAR(100),
            type                    notification_type NOT NULL,
            title                   VARCHAR(255)      NOT NULL,
            message                 TEXT              NOT NULL,
            related_task_id         UUID,
            related_comment_id      UUID,
            related_project_id      UUID,
            related_organization_id UUID,
            is_read                 BOOLEAN           NOT NULL DEFAULT false,
            created_at              TIMESTAMPTZ       NOT NULL DEFAULT now()
        )
    """)

    op.execute("CREATE INDEX ix_notifications_recipient_id ON notifications(recipient_id)")
    op.execute(
        "CREATE INDEX ix_notifications_recipient_is_read ON notifications(recipient_id, is_read)"
    )
    op.execute("CREATE INDEX ix_notifications_created_at ON notifications(created_at)")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS notifications")
    op.execute("DROP TYPE IF EXISTS notification_type")
