"""init schema (users, todos, calendar mappings/credentials, notification settings, backups)

Revision ID: 0001_init_schema
Revises:
Create Date: 2026-10-18 00:00:00.000000

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "0001_init_schema"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create all tables with per-owner indexes."""
    # users (id = identity-provider subject)
    op.create_table(
        "users",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("email", sa.String(), nullable=False),
        sa.Column("display_name", sa.String(), nullable=True),
        sa.Column("photo_url", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_users_email"), "users", ["email"], unique=False)

    # todos
    op.create_table(
        "todos",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("owner_id", sa.String(), nullable=False),
        sa.Column("title", sa.String(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("due_date", sa.DateTime(), nullable=False),
        sa.Column("category", sa.String(), nullable=True),
        sa.Column("priority", sa.String(), nullable=True),
        sa.Column("completed", sa.Boolean(), nullable=False),
        sa.Column("completed_at", sa.DateTime(), nullable=True),
        sa.Column("is_calendar_synced", sa.Boolean(), nullable=False),
        sa.Column("calendar_event_id", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(["owner_id"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_todos_owner_due", "todos", ["owner_id", "due_date"], unique=False)
    op.create_index("ix_todos_owner_completed_due", "todos", ["owner_id", "completed", "due_date"], unique=False)
    op.create_index("ix_todos_owner_category_due", "todos", ["owner_id", "category", "due_date"], unique=False)
    op.create_index("ix_todos_owner_priority_due", "todos", ["owner_id", "priority", "due_date"], unique=False)

    # calendar_mappings (no FK to todos: mappings outlive deleted todos)
    op.create_table(
        "calendar_mappings",
        sa.Column("todo_id", sa.String(), nullable=False),
        sa.Column("event_id", sa.String(), nullable=False),
        sa.Column("owner_id", sa.String(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.Column("last_synced", sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(["owner_id"], ["users.id"]),
        sa.PrimaryKeyConstraint("todo_id"),
    )
    op.create_index(
        "ix_calendar_mappings_owner_synced", "calendar_mappings", ["owner_id", "last_synced"], unique=False
    )

    # calendar_credentials (tokens are Fernet-encrypted)
    op.create_table(
        "calendar_credentials",
        sa.Column("user_id", sa.String(), nullable=False),
        sa.Column("access_token", sa.Text(), nullable=False),
        sa.Column("refresh_token", sa.Text(), nullable=True),
        sa.Column("token_expiry", sa.DateTime(), nullable=True),
        sa.Column("scopes", sa.JSON(), nullable=True),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"]),
        sa.PrimaryKeyConstraint("user_id"),
    )

    # notification_settings
    op.create_table(
        "notification_settings",
        sa.Column("user_id", sa.String(), nullable=False),
        sa.Column("enable_email_notifications", sa.Boolean(), nullable=True),
        sa.Column("enable_push_notifications", sa.Boolean(), nullable=True),
        sa.Column("reminder_timing", sa.Integer(), nullable=True),
        sa.Column("urgent_task_notification", sa.Boolean(), nullable=True),
        sa.Column("overdue_task_notification", sa.Boolean(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"]),
        sa.PrimaryKeyConstraint("user_id"),
    )

    # backups
    op.create_table(
        "backups",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("user_id", sa.String(), nullable=False),
        sa.Column("timestamp", sa.DateTime(), nullable=True),
        sa.Column("collections", sa.JSON(), nullable=True),
        sa.Column("data_count", sa.JSON(), nullable=True),
        sa.Column("status", sa.String(), nullable=True),
        sa.Column("error", sa.Text(), nullable=True),
        sa.Column("data", sa.JSON(), nullable=True),
        sa.Column("total_count", sa.Integer(), nullable=True),
        sa.Column("restored_at", sa.DateTime(), nullable=True),
        sa.Column("restore_status", sa.String(), nullable=True),
        sa.Column("restore_error", sa.Text(), nullable=True),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_backups_user_timestamp", "backups", ["user_id", "timestamp"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_backups_user_timestamp", table_name="backups")
    op.drop_table("backups")
    op.drop_table("notification_settings")
    op.drop_table("calendar_credentials")
    op.drop_index("ix_calendar_mappings_owner_synced", table_name="calendar_mappings")
    op.drop_table("calendar_mappings")
    op.drop_index("ix_todos_owner_priority_due", table_name="todos")
    op.drop_index("ix_todos_owner_category_due", table_name="todos")
    op.drop_index("ix_todos_owner_completed_due", table_name="todos")
    op.drop_index("ix_todos_owner_due", table_name="todos")
    op.drop_table("todos")
    op.drop_index(op.f("ix_users_email"), table_name="users")
    op.drop_table("users")
