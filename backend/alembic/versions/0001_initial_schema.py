"""initial_schema

Revision ID: 0001
Revises:
Create Date: 2026-10-19

Creates the contract engine tables: contract_templates, contracts,
contract_versions and contract_transitions.
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

STATUSES = (
    "DRAFT",
    "PUBLISHED",
    "SIGNED",
    "CANCELLATION_REQUESTED_BY_OWNER",
    "CANCELLATION_REQUESTED_BY_COUNTERPARTY",
    "CANCELLED",
)
ROLES = ("OWNER", "COUNTERPARTY")
CHANGE_TYPES = ("MANUAL_EDIT", "AUTO_REGENERATE", "TEMPLATE_UPDATE", "DATA_UPDATE")
OPERATIONS = (
    "generate", "edit", "regenerate", "publish", "sign", "delete",
    "request_cancel", "confirm_cancel", "reject_cancel", "withdraw_cancel",
)


def _enum(values, name):
    return sa.Enum(*values, name=name, native_enum=False)


def upgrade() -> None:
    # --- contract_templates ---
    op.create_table(
        "contract_templates",
        sa.Column("template_ref", sa.String(100), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("content", sa.Text, nullable=False),
        sa.Column("is_default", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    # --- contracts ---
    op.create_table(
        "contracts",
        sa.Column("contract_id", sa.String(36), primary_key=True),
        sa.Column("subject_id", sa.String(255), nullable=False, index=True),
        sa.Column("status", _enum(STATUSES, "contract_status"), nullable=False),
        sa.Column("current_version", sa.Integer, nullable=False, server_default="0"),
        sa.Column("content", sa.Text, nullable=False, server_default=""),
        sa.Column("template_ref", sa.String(100), nullable=True),
        sa.Column("signed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("signed_by", sa.String(255), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancellation_reason", sa.Text, nullable=True),
        sa.Column("cancellation_requested_by", _enum(ROLES, "actor_role"), nullable=True),
        sa.Column("cancellation_requested_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_by", sa.String(255), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    # At most one non-cancelled contract per subject
    op.create_index(
        "uq_contracts_active_subject",
        "contracts",
        ["subject_id"],
        unique=True,
        postgresql_where=sa.text("status != 'CANCELLED'"),
        sqlite_where=sa.text("status != 'CANCELLED'"),
    )

    # --- contract_versions ---
    op.create_table(
        "contract_versions",
        sa.Column("version_id", sa.String(36), primary_key=True),
        sa.Column("contract_id", sa.String(36), sa.ForeignKey("contracts.contract_id"), nullable=False, index=True),
        sa.Column("version_number", sa.Integer, nullable=False),
        sa.Column("content", sa.Text, nullable=False),
        sa.Column("status_at_time", _enum(STATUSES, "contract_status"), nullable=False),
        sa.Column("change_type", _enum(CHANGE_TYPES, "change_type"), nullable=False),
        sa.Column("change_reason", sa.Text, nullable=True),
        sa.Column("created_by", sa.String(255), nullable=True),
        sa.Column("created_by_role", _enum(ROLES, "actor_role"), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("contract_id", "version_number", name="uq_contract_version_number"),
    )

    # --- contract_transitions ---
    op.create_table(
        "contract_transitions",
        sa.Column("transition_id", sa.String(36), primary_key=True),
        sa.Column("contract_id", sa.String(36), sa.ForeignKey("contracts.contract_id"), nullable=False, index=True),
        sa.Column("sequence", sa.Integer, nullable=False),
        sa.Column("operation", _enum(OPERATIONS, "contract_operation"), nullable=False),
        sa.Column("from_status", sa.String(50), nullable=True),
        sa.Column("to_status", sa.String(50), nullable=False),
        sa.Column("from_version", sa.Integer, nullable=False),
        sa.Column("to_version", sa.Integer, nullable=False),
        sa.Column("actor_role", _enum(ROLES, "actor_role"), nullable=False),
        sa.Column("actor_id", sa.String(255), nullable=True),
        sa.Column("reason", sa.Text, nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("contract_id", "sequence", name="uq_contract_transition_sequence"),
    )


def downgrade() -> None:
    op.drop_table("contract_transitions")
    op.drop_table("contract_versions")
    op.drop_index("uq_contracts_active_subject", table_name="contracts")
    op.drop_table("contracts")
    op.drop_table("contract_templates")
