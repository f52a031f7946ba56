"""create permission matrix and resource tables, seed default grants

Revision ID: 202610160001
Revises:
Create Date: 2026-10-16 09:00:00
"""

from __future__ import annotations

import uuid
from collections.abc import Sequence
from datetime import datetime, timezone

from alembic import op
import sqlalchemy as sa

from tourdesk.authz.seed import (
    DEFAULT_ACTIONS,
    DEFAULT_GRANTS_MARKER,
    DEFAULT_MODULES,
    DEFAULT_ROLE_GRANTS,
    permission_name,
)


revision: str = "202610160001"
down_revision: str | None = None
branch_labels: Sequence[str] | None = None
depends_on: Sequence[str] | None = None

_PERMISSION_NAMESPACE = uuid.UUID("8a4b4f1e-6c61-4e51-9f1b-3a9f6d2c7e10")


def upgrade() -> None:
    op.create_table(
        "permissions",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("name", sa.String(length=128), nullable=False),
        sa.Column("module", sa.String(length=64), nullable=False),
        sa.Column("action", sa.String(length=32), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("module", "action", name="uq_permissions_module_action"),
    )

    op.create_table(
        "role_permissions",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("role", sa.String(length=64), nullable=False),
        sa.Column("permission_id", sa.Uuid(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["permission_id"], ["permissions.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("role", "permission_id", name="uq_role_permissions_role_permission"),
    )
    op.create_index("ix_role_permissions_role", "role_permissions", ["role"])

    op.create_table(
        "authz_policy_state",
        sa.Column("key", sa.String(length=64), primary_key=True),
        sa.Column("value", sa.String(length=255), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    )

    _create_resource_tables()
    _seed_default_grants()


def downgrade() -> None:
    for table_name in (
        "operations_trips",
        "properties",
        "support_tickets",
        "payments",
        "reservations",
        "leads",
        "customers",
    ):
        op.drop_table(table_name)
    op.drop_table("authz_policy_state")
    op.drop_index("ix_role_permissions_role", table_name="role_permissions")
    op.drop_table("role_permissions")
    op.drop_table("permissions")


def _timestamps(*, updated: bool = True) -> list[sa.Column]:
    columns = [sa.Column("created_at", sa.DateTime(timezone=True), nullable=False)]
    if updated:
        columns.append(sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False))
    return columns


def _create_resource_tables() -> None:
    op.create_table(
        "customers",
        sa.Column("id", sa.String(length=64), primary_key=True),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=True),
        sa.Column("phone", sa.String(length=64), nullable=True),
        sa.Column("status", sa.String(length=32), nullable=False, server_default="active"),
        sa.Column("assigned_staff_id", sa.String(length=64), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_customers_assigned_staff_id", "customers", ["assigned_staff_id"])

    op.create_table(
        "leads",
        sa.Column("id", sa.String(length=64), primary_key=True),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=True),
        sa.Column("source", sa.String(length=64), nullable=True),
        sa.Column("status", sa.String(length=32), nullable=False, server_default="new"),
        sa.Column("agent_id", sa.String(length=64), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_leads_agent_id", "leads", ["agent_id"])

    op.create_table(
        "reservations",
        sa.Column("id", sa.String(length=64), primary_key=True),
        sa.Column("reference", sa.String(length=64), nullable=False),
        sa.Column("customer_id", sa.String(length=64), nullable=False),
        sa.Column("status", sa.String(length=32), nullable=False, server_default="pending"),
        sa.Column("travel_date", sa.Date(), nullable=True),
        sa.Column("total_amount", sa.Numeric(12, 2), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_reservations_customer_id", "reservations", ["customer_id"])

    op.create_table(
        "payments",
        sa.Column("id", sa.String(length=64), primary_key=True),
        sa.Column("reservation_id", sa.String(length=64), nullable=True),
        sa.Column("customer_id", sa.String(length=64), nullable=False),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("currency", sa.String(length=3), nullable=False, server_default="USD"),
        sa.Column("method", sa.String(length=32), nullable=True),
        sa.Column("status", sa.String(length=32), nullable=False, server_default="pending"),
        *_timestamps(updated=False),
    )
    op.create_index("ix_payments_customer_id", "payments", ["customer_id"])

    op.create_table(
        "support_tickets",
        sa.Column("id", sa.String(length=64), primary_key=True),
        sa.Column("subject", sa.Text(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("status", sa.String(length=32), nullable=False, server_default="open"),
        sa.Column("priority", sa.String(length=16), nullable=False, server_default="medium"),
        sa.Column("customer_id", sa.String(length=64), nullable=True),
        sa.Column("assigned_to", sa.String(length=64), nullable=True),
        sa.Column("created_by", sa.String(length=64), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_support_tickets_customer_id", "support_tickets", ["customer_id"])
    op.create_index("ix_support_tickets_assigned_to", "support_tickets", ["assigned_to"])
    op.create_index("ix_support_tickets_created_by", "support_tickets", ["created_by"])

    op.create_table(
        "properties",
        sa.Column("id", sa.String(length=64), primary_key=True),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("city", sa.String(length=128), nullable=True),
        sa.Column("owner_id", sa.String(length=64), nullable=True),
        sa.Column("status", sa.String(length=32), nullable=False, server_default="active"),
        *_timestamps(updated=False),
    )

    op.create_table(
        "operations_trips",
        sa.Column("id", sa.String(length=64), primary_key=True),
        sa.Column("trip_code", sa.String(length=64), nullable=False),
        sa.Column("destination", sa.Text(), nullable=True),
        sa.Column("departure_date", sa.Date(), nullable=True),
        sa.Column("reservation_id", sa.String(length=64), nullable=True),
        sa.Column("assigned_to", sa.String(length=64), nullable=True),
        sa.Column("status", sa.String(length=32), nullable=False, server_default="planned"),
        *_timestamps(updated=False),
    )
    op.create_index("ix_operations_trips_assigned_to", "operations_trips", ["assigned_to"])


def _seed_default_grants() -> None:
    now = datetime.now(timezone.utc)

    def permission_id(module: str, action: str) -> uuid.UUID:
        return uuid.uuid5(_PERMISSION_NAMESPACE, permission_name(module, action))

    permission_table = sa.table(
        "permissions",
        sa.column("id", sa.Uuid()),
        sa.column("name", sa.String()),
        sa.column("module", sa.String()),
        sa.column("action", sa.String()),
        sa.column("description", sa.Text()),
        sa.column("created_at", sa.DateTime(timezone=True)),
        sa.column("updated_at", sa.DateTime(timezone=True)),
    )
    op.bulk_insert(
        permission_table,
        [
            {
                "id": permission_id(module, action),
                "name": permission_name(module, action),
                "module": module,
                "action": action,
                "description": f"{action.capitalize()} access to {module}",
                "created_at": now,
                "updated_at": now,
            }
            for module in DEFAULT_MODULES
            for action in DEFAULT_ACTIONS
        ],
    )

    role_permission_table = sa.table(
        "role_permissions",
        sa.column("id", sa.Uuid()),
        sa.column("role", sa.String()),
        sa.column("permission_id", sa.Uuid()),
        sa.column("created_at", sa.DateTime(timezone=True)),
    )
    op.bulk_insert(
        role_permission_table,
        [
            {
                "id": uuid.uuid4(),
                "role": role,
                "permission_id": permission_id(module, str(action)),
                "created_at": now,
            }
            for role, modules in DEFAULT_ROLE_GRANTS.items()
            for module, actions in modules.items()
            for action in actions
        ],
    )

    state_table = sa.table(
        "authz_policy_state",
        sa.column("key", sa.String()),
        sa.column("value", sa.String()),
        sa.column("updated_at", sa.DateTime(timezone=True)),
    )
    op.bulk_insert(state_table, [{"key": DEFAULT_GRANTS_MARKER, "value": "defaults", "updated_at": now}])
