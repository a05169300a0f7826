"""initial_order_documentation_schema

Create projects, project_requirements, conversation_turns and
documentation_sections.

Revision ID: 3f1c9a2b7d40
Revises:
Create Date: 2026-10-19 09:00:00.000000
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect as sa_inspect


# revision identifiers, used by Alembic.
revision = "3f1c9a2b7d40"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    bind = op.get_bind()
    existing_tables = set(sa_inspect(bind).get_table_names())

    if "projects" not in existing_tables:
        op.create_table(
            "projects",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("client_id", sa.Integer(), nullable=True),
            sa.Column("phone_number", sa.String(length=30), nullable=False),
            sa.Column("title", sa.String(length=300), nullable=False),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("tech_stack", sa.JSON(), nullable=True),
            sa.Column("features", sa.JSON(), nullable=True),
            sa.Column("start_date", sa.Date(), nullable=True),
            sa.Column("end_date", sa.Date(), nullable=True),
            sa.Column("budget_amount", sa.Float(), nullable=True),
            sa.Column("budget_currency", sa.String(length=3), nullable=True),
            sa.Column("status", sa.String(length=30), nullable=False),
            sa.Column("full_document", sa.Text(), nullable=True),
            sa.Column("documentation_generated_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("documentation_version", sa.Integer(), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
            sa.PrimaryKeyConstraint("id"),
            sa.CheckConstraint(
                "status IN ('draft','requirements_capture','documentation','approved',"
                "'in_progress','completed','cancelled')",
                name="ck_projects_status",
            ),
        )
        op.create_index("ix_projects_client_id", "projects", ["client_id"])
        op.create_index("ix_projects_phone_number", "projects", ["phone_number"])
        op.create_index("ix_projects_phone_status", "projects", ["phone_number", "status"])

    if "project_requirements" not in existing_tables:
        op.create_table(
            "project_requirements",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("project_id", sa.Integer(), nullable=False),
            sa.Column("category", sa.String(length=100), nullable=True),
            sa.Column("description", sa.Text(), nullable=False),
            sa.Column("priority", sa.String(length=20), nullable=False),
            sa.ForeignKeyConstraint(["project_id"], ["projects.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
            sa.CheckConstraint("priority IN ('low','medium','high','critical')",
                               name="ck_project_req_priority"),
        )
        op.create_index("ix_project_requirements_project_id", "project_requirements", ["project_id"])

    if "conversation_turns" not in existing_tables:
        op.create_table(
            "conversation_turns",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("project_id", sa.Integer(), nullable=False),
            sa.Column("seq", sa.Integer(), nullable=False),
            sa.Column("role", sa.String(length=20), nullable=False),
            sa.Column("content", sa.Text(), nullable=False),
            sa.Column("timestamp", sa.DateTime(timezone=True), nullable=True),
            sa.ForeignKeyConstraint(["project_id"], ["projects.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
            sa.CheckConstraint("role IN ('user','assistant','system')",
                               name="ck_conversation_turn_role"),
            sa.UniqueConstraint("project_id", "seq", name="uq_conversation_turn_seq"),
        )
        op.create_index("ix_conversation_turns_project_id", "conversation_turns", ["project_id"])

    if "documentation_sections" not in existing_tables:
        op.create_table(
            "documentation_sections",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("project_id", sa.Integer(), nullable=False),
            sa.Column("position", sa.Integer(), nullable=False),
            sa.Column("kind", sa.String(length=30), nullable=False),
            sa.Column("content", sa.Text(), nullable=False),
            sa.Column("generated_at", sa.DateTime(timezone=True), nullable=True),
            sa.ForeignKeyConstraint(["project_id"], ["projects.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
            sa.CheckConstraint(
                "kind IN ('overview','architecture','api_endpoints','database_schema',"
                "'timeline','tech_stack','features','budget_estimation')",
                name="ck_doc_section_kind",
            ),
            sa.UniqueConstraint("project_id", "kind", name="uq_doc_section_kind"),
        )
        op.create_index("ix_documentation_sections_project_id", "documentation_sections",
                        ["project_id"])


def downgrade():
    existing_tables = set(sa_inspect(op.get_bind()).get_table_names())
    for table in ("documentation_sections", "conversation_turns", "project_requirements", "projects"):
        if table in existing_tables:
            op.drop_table(table)
