"""Initial changing room schema: stores, sessions, items, baskets, dispositions, audit

Revision ID: 20261018_initial
Revises:
Create Date: 2026-10-18 09:00:00.000000

Key design decisions:
- One open session per (store, tag) is a partial unique index on sessions
- Basket numbers come from store_sequences, advanced by a single UPDATE
- audit_events.session_id is a plain integer so history survives deletion
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "20261018_initial"
down_revision = None
branch_labels = None
depends_on = None

OPEN_TAG_PREDICATE = sa.text("status IN ('in_progress', 'exiting')")


def upgrade():
    op.create_table(
        "stores",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("code", sa.String(length=32), nullable=False),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column("location", sa.String(length=255), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_stores_code", "stores", ["code"], unique=True)

    op.create_table(
        "team_members",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("store_id", sa.Integer(), nullable=False),
        sa.Column("member_code", sa.String(length=32), nullable=False),
        sa.Column("full_name", sa.String(length=120), nullable=False),
        sa.Column("role", sa.String(length=16), nullable=False, server_default="team_member"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.ForeignKeyConstraint(["store_id"], ["stores.id"]),
        sa.UniqueConstraint("store_id", "member_code", name="uq_team_members_store_code"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_team_members_store_id", "team_members", ["store_id"], unique=False)

    op.create_table(
        "store_sequences",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("store_id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=32), nullable=False),
        sa.Column("next_value", sa.Integer(), nullable=False, server_default="1"),
        sa.ForeignKeyConstraint(["store_id"], ["stores.id"]),
        sa.UniqueConstraint("store_id", "name", name="uq_store_sequences_store_name"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_store_sequences_store_id", "store_sequences", ["store_id"], unique=False)

    op.create_table(
        "sessions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("store_id", sa.Integer(), nullable=False),
        sa.Column("team_member_id", sa.Integer(), nullable=False),
        sa.Column("tag_barcode", sa.String(length=64), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="in_progress"),
        sa.Column("total_items_in", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("total_items_out", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("items_purchased", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("items_restocked", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("items_lost", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("entry_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("exit_start_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column("exit_complete_time", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["store_id"], ["stores.id"]),
        sa.ForeignKeyConstraint(["team_member_id"], ["team_members.id"]),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_sessions_store_id", "sessions", ["store_id"], unique=False)
    op.create_index("ix_sessions_team_member_id", "sessions", ["team_member_id"], unique=False)
    op.create_index("ix_sessions_tag_barcode", "sessions", ["tag_barcode"], unique=False)
    op.create_index("ix_sessions_status", "sessions", ["status"], unique=False)
    op.create_index("ix_sessions_store_status_entry", "sessions", ["store_id", "status", "entry_time"], unique=False)
    op.create_index(
        "uq_sessions_open_tag",
        "sessions",
        ["store_id", "tag_barcode"],
        unique=True,
        sqlite_where=OPEN_TAG_PREDICATE,
        postgresql_where=OPEN_TAG_PREDICATE,
    )

    op.create_table(
        "baskets",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("store_id", sa.Integer(), nullable=False),
        sa.Column("basket_number", sa.Integer(), nullable=False),
        sa.Column("session_id", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="active"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.Column("resolved_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["store_id"], ["stores.id"]),
        sa.ForeignKeyConstraint(["session_id"], ["sessions.id"]),
        sa.UniqueConstraint("store_id", "basket_number", name="uq_baskets_store_number"),
        sa.UniqueConstraint("session_id", name="uq_baskets_session"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_baskets_store_id", "baskets", ["store_id"], unique=False)
    op.create_index("ix_baskets_store_status", "baskets", ["store_id", "status"], unique=False)

    op.create_table(
        "session_items",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("session_id", sa.Integer(), nullable=False),
        sa.Column("item_barcode", sa.String(length=64), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="in_room"),
        sa.Column("basket_id", sa.Integer(), nullable=True),
        sa.Column("scanned_in_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("resolved_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["session_id"], ["sessions.id"]),
        sa.ForeignKeyConstraint(["basket_id"], ["baskets.id"]),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_session_items_session_id", "session_items", ["session_id"], unique=False)
    op.create_index("ix_session_items_status", "session_items", ["status"], unique=False)
    op.create_index("ix_session_items_basket_id", "session_items", ["basket_id"], unique=False)
    op.create_index(
        "ix_session_items_fifo",
        "session_items",
        ["session_id", "item_barcode", "status", "scanned_in_at"],
        unique=False,
    )

    op.create_table(
        "back_of_house",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("store_id", sa.Integer(), nullable=False),
        sa.Column("session_id", sa.Integer(), nullable=False),
        sa.Column("item_barcode", sa.String(length=64), nullable=False),
        sa.Column("team_member_id", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="awaiting_return"),
        sa.Column("received_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("returned_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["store_id"], ["stores.id"]),
        sa.ForeignKeyConstraint(["session_id"], ["sessions.id"]),
        sa.ForeignKeyConstraint(["team_member_id"], ["team_members.id"]),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_back_of_house_store_id", "back_of_house", ["store_id"], unique=False)
    op.create_index("ix_back_of_house_session_id", "back_of_house", ["session_id"], unique=False)
    op.create_index(
        "ix_back_of_house_store_status_received",
        "back_of_house",
        ["store_id", "status", "received_at"],
        unique=False,
    )

    op.create_table(
        "shrinkage_log",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("store_id", sa.Integer(), nullable=False),
        sa.Column("session_id", sa.Integer(), nullable=False),
        sa.Column("item_barcode", sa.String(length=64), nullable=False),
        sa.Column("team_member_id", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="lost"),
        sa.Column("lost_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("recovered_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.ForeignKeyConstraint(["store_id"], ["stores.id"]),
        sa.ForeignKeyConstraint(["session_id"], ["sessions.id"]),
        sa.ForeignKeyConstraint(["team_member_id"], ["team_members.id"]),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_shrinkage_log_store_id", "shrinkage_log", ["store_id"], unique=False)
    op.create_index("ix_shrinkage_log_session_id", "shrinkage_log", ["session_id"], unique=False)
    op.create_index("ix_shrinkage_store_status_lost", "shrinkage_log", ["store_id", "status", "lost_at"], unique=False)
    op.create_index("ix_shrinkage_store_barcode", "shrinkage_log", ["store_id", "item_barcode"], unique=False)

    op.create_table(
        "audit_events",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("store_id", sa.Integer(), nullable=False),
        sa.Column("actor_id", sa.Integer(), nullable=True),
        sa.Column("actor_role", sa.String(length=16), nullable=True),
        sa.Column("event_type", sa.String(length=64), nullable=False),
        sa.Column("entity_type", sa.String(length=32), nullable=False),
        sa.Column("entity_id", sa.Integer(), nullable=False),
        sa.Column("session_id", sa.Integer(), nullable=True),
        sa.Column("occurred_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("note", sa.Text(), nullable=True),
        sa.ForeignKeyConstraint(["store_id"], ["stores.id"]),
        sa.ForeignKeyConstraint(["actor_id"], ["team_members.id"]),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_audit_events_actor_id", "audit_events", ["actor_id"], unique=False)
    op.create_index("ix_audit_events_event_type", "audit_events", ["event_type"], unique=False)
    op.create_index("ix_audit_events_session_id", "audit_events", ["session_id"], unique=False)
    op.create_index("ix_audit_events_store_occurred", "audit_events", ["store_id", "occurred_at"], unique=False)


def downgrade():
    op.drop_table("audit_events")
    op.drop_table("shrinkage_log")
    op.drop_table("back_of_house")
    op.drop_table("session_items")
    op.drop_table("baskets")
    op.drop_index("uq_sessions_open_tag", table_name="sessions")
    op.drop_table("sessions")
    op.drop_table("store_sequences")
    op.drop_table("team_members")
    op.drop_table("stores")
