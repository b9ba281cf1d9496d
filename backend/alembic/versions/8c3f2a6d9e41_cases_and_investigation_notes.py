"""cases and investigation notes

Revision ID: 8c3f2a6d9e41
Revises: 5b8e1d3f0c2a
Create Date: 2026-10-19 16:00:00.000000
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "8c3f2a6d9e41"
down_revision: Union[str, Sequence[str], None] = "5b8e1d3f0c2a"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _author_columns() -> list[sa.Column]:
    return [
        sa.Column("created_by", sa.String(length=64), nullable=False),
        sa.Column("created_by_name", sa.String(length=255), nullable=False),
        sa.Column("created_by_role", sa.String(length=32), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        "investigation_notes",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("item_id", sa.Integer(), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("is_confidential", sa.Boolean(), nullable=False),
        *_author_columns(),
        sa.ForeignKeyConstraint(["item_id"], ["items.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_investigation_notes_item_id"), "investigation_notes", ["item_id"], unique=False)

    op.create_table(
        "cases",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("tenant_id", sa.String(length=64), nullable=False),
        sa.Column("case_name", sa.String(length=255), nullable=False),
        sa.Column("case_number", sa.String(length=64), nullable=True),
        sa.Column("date_reported", sa.String(length=32), nullable=False),
        sa.Column("date_occurred", sa.String(length=32), nullable=False),
        sa.Column("location", sa.String(length=255), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False),
        sa.Column("priority", sa.String(length=16), nullable=False),
        sa.Column("assigned_officer", sa.String(length=255), nullable=True),
        sa.Column("description", sa.Text(), nullable=False),
        *_author_columns(),
        sa.ForeignKeyConstraint(["tenant_id"], ["tenants.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_cases_tenant_id"), "cases", ["tenant_id"], unique=False)
    op.create_index(op.f("ix_cases_created_by"), "cases", ["created_by"], unique=False)
    op.create_index("ix_cases_tenant_created_at", "cases", ["tenant_id", "created_at"], unique=False)

    op.create_table(
        "case_permissions",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("case_id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.String(length=64), nullable=False),
        sa.Column("can_view", sa.Boolean(), nullable=False),
        sa.Column("can_edit", sa.Boolean(), nullable=False),
        sa.Column("can_delete", sa.Boolean(), nullable=False),
        sa.Column("granted_by", sa.String(length=64), nullable=False),
        sa.Column("granted_by_name", sa.String(length=255), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["case_id"], ["cases.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("case_id", "user_id", name="uq_case_permissions_case_user"),
    )
    op.create_index(op.f("ix_case_permissions_case_id"), "case_permissions", ["case_id"], unique=False)
    op.create_index(op.f("ix_case_permissions_user_id"), "case_permissions", ["user_id"], unique=False)

    op.create_table(
        "case_timeline_events",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("case_id", sa.Integer(), nullable=False),
        sa.Column("date", sa.String(length=32), nullable=False),
        sa.Column("time", sa.String(length=16), nullable=False),
        sa.Column("event", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        *_author_columns(),
        sa.ForeignKeyConstraint(["case_id"], ["cases.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_case_timeline_events_case_id"), "case_timeline_events", ["case_id"], unique=False)

    op.create_table(
        "case_suspects",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("case_id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("address", sa.String(length=255), nullable=True),
        sa.Column("phone", sa.String(length=64), nullable=True),
        sa.Column("status", sa.String(length=32), nullable=False),
        *_author_columns(),
        sa.ForeignKeyConstraint(["case_id"], ["cases.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_case_suspects_case_id"), "case_suspects", ["case_id"], unique=False)

    op.create_table(
        "case_updates",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("case_id", sa.Integer(), nullable=False),
        sa.Column("date", sa.String(length=32), nullable=False),
        sa.Column("body", sa.Text(), nullable=False),
        *_author_columns(),
        sa.ForeignKeyConstraint(["case_id"], ["cases.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_case_updates_case_id"), "case_updates", ["case_id"], unique=False)


def downgrade() -> None:
    for table in ("case_updates", "case_suspects", "case_timeline_events", "case_permissions"):
        op.drop_index(op.f(f"ix_{table}_case_id"), table_name=table)
        if table == "case_permissions":
            op.drop_index(op.f("ix_case_permissions_user_id"), table_name=table)
        op.drop_table(table)

    op.drop_index("ix_cases_tenant_created_at", table_name="cases")
    op.drop_index(op.f("ix_cases_created_by"), table_name="cases")
    op.drop_index(op.f("ix_cases_tenant_id"), table_name="cases")
    op.drop_table("cases")

    op.drop_index(op.f("ix_investigation_notes_item_id"), table_name="investigation_notes")
    op.drop_table("investigation_notes")
