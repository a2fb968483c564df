"""checklist_tables

Creates the relocation checklist tables:
  - clients                : relocating client families
  - client_authorizations  : delegate identities (e.g. spouse) per client
  - checklist_templates    : admin-curated task catalog
  - checklist_items        : per-client progress, unique per (client, template)
  - checklist_attachments  : file metadata; blobs live in object storage

Tables created conditionally (IF NOT EXISTS semantics) to support idempotent
execution against databases that already received these tables via db.create_all()
in a development environment.

Revision ID: c7e1a4b2d9f0
Revises:
Create Date: 2026-10-16 09:12:40.118204
"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect as sa_inspect


# revision identifiers, used by Alembic.
revision = 'c7e1a4b2d9f0'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    bind = op.get_bind()
    inspector = sa_inspect(bind)
    existing = set(inspector.get_table_names())

    # ── Clients ───────────────────────────────────────────────────────────
    if "clients" not in existing:
        op.create_table(
            "clients",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("name", sa.String(length=200), nullable=False),
            sa.Column("email", sa.String(length=255), nullable=True),
            sa.Column("user_id", sa.String(length=64), nullable=True,
                      comment="Identity-provider subject of the client themself"),
            sa.Column("owner_agent_id", sa.String(length=64), nullable=True,
                      comment="Identity-provider subject of the assigned agent"),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_clients_user_id", "clients", ["user_id"], unique=True)
        op.create_index("ix_clients_owner_agent_id", "clients", ["owner_agent_id"])

    # ── Client authorizations ─────────────────────────────────────────────
    if "client_authorizations" not in existing:
        op.create_table(
            "client_authorizations",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("client_id", sa.String(length=36), nullable=False),
            sa.Column("authorized_user_id", sa.String(length=64), nullable=False),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
            sa.ForeignKeyConstraint(["client_id"], ["clients.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_client_authorizations_client_id", "client_authorizations", ["client_id"])
        op.create_index("ix_client_authorizations_authorized_user_id", "client_authorizations",
                        ["authorized_user_id"], unique=True)

    # ── Checklist templates ───────────────────────────────────────────────
    if "checklist_templates" not in existing:
        op.create_table(
            "checklist_templates",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("title", sa.String(length=255), nullable=False),
            sa.Column("category", sa.String(length=40), nullable=False,
                      comment="pre_departure | arrival | settlement_early | settlement_complete"),
            sa.Column("sub_category", sa.String(length=100), nullable=True),
            sa.Column("description", sa.JSON(), nullable=False),
            sa.Column("order_num", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("is_required", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("reference_url", sa.String(length=500), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_checklist_templates_category_order", "checklist_templates",
                        ["category", "order_num"])

    # ── Checklist items ───────────────────────────────────────────────────
    if "checklist_items" not in existing:
        op.create_table(
            "checklist_items",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("client_id", sa.String(length=36), nullable=False),
            sa.Column("template_id", sa.String(length=36), nullable=False),
            sa.Column("is_completed", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("notes", sa.Text(), nullable=True),
            sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
            sa.ForeignKeyConstraint(["client_id"], ["clients.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["template_id"], ["checklist_templates.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("client_id", "template_id", name="uq_checklist_item_client_template"),
        )
        op.create_index("ix_checklist_items_client_id", "checklist_items", ["client_id"])
        op.create_index("ix_checklist_items_template_id", "checklist_items", ["template_id"])

    # ── Checklist attachments ─────────────────────────────────────────────
    if "checklist_attachments" not in existing:
        op.create_table(
            "checklist_attachments",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("checklist_item_id", sa.String(length=36), nullable=False),
            sa.Column("client_id", sa.String(length=36), nullable=False),
            sa.Column("file_name", sa.String(length=255), nullable=False),
            sa.Column("mime_type", sa.String(length=100), nullable=True),
            sa.Column("file_size", sa.Integer(), nullable=True, comment="Size in bytes"),
            sa.Column("storage_path", sa.String(length=500), nullable=False,
                      comment="Object key in the bucket"),
            sa.Column("file_url", sa.String(length=1000), nullable=False),
            sa.Column("uploaded_by", sa.String(length=64), nullable=False,
                      comment="Identity subject of uploader"),
            sa.Column("uploaded_at", sa.DateTime(timezone=True), nullable=False),
            sa.ForeignKeyConstraint(["checklist_item_id"], ["checklist_items.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["client_id"], ["clients.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_checklist_attachments_checklist_item_id", "checklist_attachments",
                        ["checklist_item_id"])
        op.create_index("ix_checklist_attachments_client_id", "checklist_attachments", ["client_id"])


def downgrade():
    op.drop_table("checklist_attachments")
    op.drop_table("checklist_items")
    op.drop_table("checklist_templates")
    op.drop_table("client_authorizations")
    op.drop_table("clients")
