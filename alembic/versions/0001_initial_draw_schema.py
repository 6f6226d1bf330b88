"""initial draw schema

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-18 00:00:00.000000
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op

revision = "0001_initial"
down_revision = None
branch_labels = None
depends_on = None

ID_TYPE = sa.BigInteger().with_variant(sa.Integer(), "sqlite")
TZ_DATETIME = sa.DateTime(timezone=True)


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", ID_TYPE, autoincrement=True, nullable=False),
        sa.Column("external_id", sa.String(length=64), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=True),
        sa.Column("display_name", sa.String(length=100), nullable=True),
        sa.Column("created_at", TZ_DATETIME, nullable=False),
        sa.Column("updated_at", TZ_DATETIME, nullable=False),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_users")),
        sa.UniqueConstraint("email", name=op.f("uq_users_email")),
        sa.UniqueConstraint("external_id", name=op.f("uq_users_external_id")),
    )

    op.create_table(
        "admins",
        sa.Column("id", ID_TYPE, autoincrement=True, nullable=False),
        sa.Column("email", sa.String(length=100), nullable=True),
        sa.Column("name", sa.String(length=50), nullable=True),
        sa.Column("role", sa.String(length=50), nullable=True),
        sa.Column("created_at", TZ_DATETIME, nullable=False),
        sa.Column("updated_at", TZ_DATETIME, nullable=False),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_admins")),
    )
    op.create_index(op.f("ix_admins_email"), "admins", ["email"], unique=True)
    op.create_index(op.f("ix_admins_id"), "admins", ["id"], unique=False)

    op.create_table(
        "draws",
        sa.Column("id", ID_TYPE, autoincrement=True, nullable=False),
        sa.Column("draw_type", sa.String(length=10), nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("prize_name", sa.String(length=200), nullable=True),
        sa.Column("prize_description", sa.Text(), nullable=True),
        sa.Column("prize_value", sa.Numeric(precision=12, scale=2), nullable=True),
        sa.Column("prize_images", sa.JSON(), nullable=True),
        sa.Column("prize_category", sa.String(length=50), nullable=True),
        sa.Column("activation_date", TZ_DATETIME, nullable=True),
        sa.Column("freeze_entries_at", TZ_DATETIME, nullable=True),
        sa.Column("draw_date", TZ_DATETIME, nullable=True),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("configuration_locked", sa.Boolean(), nullable=False),
        sa.Column("locked_at", TZ_DATETIME, nullable=True),
        sa.Column("total_entries", sa.Integer(), nullable=False),
        sa.Column("cycle", sa.Integer(), nullable=False),
        sa.Column("minimum_entries", sa.Integer(), nullable=True),
        sa.Column("freeze_lead_minutes", sa.Integer(), nullable=True),
        sa.Column("gap_grace_minutes", sa.Integer(), nullable=True),
        sa.Column("winner_user_id", ID_TYPE, nullable=True),
        sa.Column("winner_entry_number", sa.Integer(), nullable=True),
        sa.Column("winner_selected_date", TZ_DATETIME, nullable=True),
        sa.Column("winner_notified", sa.Boolean(), nullable=False),
        sa.Column("winner_selection_method", sa.String(length=20), nullable=True),
        sa.Column("winner_selected_by", ID_TYPE, nullable=True),
        sa.Column("created_at", TZ_DATETIME, nullable=False),
        sa.Column("updated_at", TZ_DATETIME, nullable=False),
        sa.CheckConstraint("total_entries >= 0", name=op.f("ck_draws_total_entries_non_negative")),
        sa.CheckConstraint("cycle >= 1", name=op.f("ck_draws_cycle_positive")),
        sa.CheckConstraint(
            "minimum_entries IS NULL OR minimum_entries >= 1",
            name=op.f("ck_draws_minimum_entries_positive"),
        ),
        sa.ForeignKeyConstraint(
            ["winner_selected_by"],
            ["admins.id"],
            name=op.f("fk_draws_winner_selected_by_admins"),
            ondelete="SET NULL",
        ),
        sa.ForeignKeyConstraint(
            ["winner_user_id"],
            ["users.id"],
            name=op.f("fk_draws_winner_user_id_users"),
            ondelete="SET NULL",
        ),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_draws")),
    )
    op.create_index(
        "ix_draws_type_status_activation",
        "draws",
        ["draw_type", "status", "activation_date"],
        unique=False,
    )
    op.create_index("ix_draws_status_draw_date", "draws", ["status", "draw_date"], unique=False)

    op.create_table(
        "draw_entries",
        sa.Column("id", ID_TYPE, autoincrement=True, nullable=False),
        sa.Column("draw_id", ID_TYPE, nullable=False),
        sa.Column("cycle", sa.Integer(), nullable=False),
        sa.Column("user_id", ID_TYPE, nullable=False),
        sa.Column("total_entries", sa.Integer(), nullable=False),
        sa.Column("membership", sa.Integer(), nullable=False),
        sa.Column("one_time_package", sa.Integer(), nullable=False),
        sa.Column("upsell", sa.Integer(), nullable=False),
        sa.Column("mini_draw", sa.Integer(), nullable=False),
        sa.Column("first_added_date", TZ_DATETIME, nullable=False),
        sa.Column("last_updated_date", TZ_DATETIME, nullable=False),
        sa.CheckConstraint(
            "total_entries >= 0", name=op.f("ck_draw_entries_total_entries_non_negative")
        ),
        sa.CheckConstraint(
            "membership >= 0 AND one_time_package >= 0 AND upsell >= 0 AND mini_draw >= 0",
            name=op.f("ck_draw_entries_source_counts_non_negative"),
        ),
        sa.ForeignKeyConstraint(
            ["draw_id"], ["draws.id"], name=op.f("fk_draw_entries_draw_id_draws"), ondelete="CASCADE"
        ),
        sa.ForeignKeyConstraint(
            ["user_id"], ["users.id"], name=op.f("fk_draw_entries_user_id_users"), ondelete="CASCADE"
        ),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_draw_entries")),
        sa.UniqueConstraint("draw_id", "cycle", "user_id", name="uq_draw_entries_draw_cycle_user"),
    )
    op.create_index(op.f("ix_draw_entries_draw_id"), "draw_entries", ["draw_id"], unique=False)
    op.create_index(op.f("ix_draw_entries_user_id"), "draw_entries", ["user_id"], unique=False)

    op.create_table(
        "draw_winners",
        sa.Column("id", ID_TYPE, autoincrement=True, nullable=False),
        sa.Column("draw_id", ID_TYPE, nullable=False),
        sa.Column("draw_type", sa.String(length=10), nullable=False),
        sa.Column("cycle", sa.Integer(), nullable=False),
        sa.Column("user_id", ID_TYPE, nullable=False),
        sa.Column("entry_number", sa.Integer(), nullable=False),
        sa.Column("total_entries", sa.Integer(), nullable=False),
        sa.Column("selected_date", TZ_DATETIME, nullable=False),
        sa.Column("selection_method", sa.String(length=20), nullable=False),
        sa.Column("selected_by", ID_TYPE, nullable=True),
        sa.Column("notified", sa.Boolean(), nullable=False),
        sa.Column("prize_snapshot", sa.JSON(), nullable=True),
        sa.Column("created_at", TZ_DATETIME, nullable=False),
        sa.ForeignKeyConstraint(
            ["draw_id"], ["draws.id"], name=op.f("fk_draw_winners_draw_id_draws"), ondelete="CASCADE"
        ),
        sa.ForeignKeyConstraint(
            ["selected_by"],
            ["admins.id"],
            name=op.f("fk_draw_winners_selected_by_admins"),
            ondelete="SET NULL",
        ),
        sa.ForeignKeyConstraint(
            ["user_id"], ["users.id"], name=op.f("fk_draw_winners_user_id_users"), ondelete="RESTRICT"
        ),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_draw_winners")),
        sa.UniqueConstraint("draw_id", "cycle", name="uq_draw_winners_draw_cycle"),
    )
    op.create_index(op.f("ix_draw_winners_draw_id"), "draw_winners", ["draw_id"], unique=False)
    op.create_index(op.f("ix_draw_winners_draw_type"), "draw_winners", ["draw_type"], unique=False)
    op.create_index(op.f("ix_draw_winners_user_id"), "draw_winners", ["user_id"], unique=False)

    op.create_table(
        "payment_events",
        sa.Column("id", sa.String(length=120), nullable=False),
        sa.Column("payment_intent_id", sa.String(length=100), nullable=False),
        sa.Column("event_type", sa.String(length=40), nullable=False),
        sa.Column("user_id", ID_TYPE, nullable=False),
        sa.Column("package_type", sa.String(length=20), nullable=False),
        sa.Column("package_id", sa.String(length=100), nullable=True),
        sa.Column("package_name", sa.String(length=200), nullable=True),
        sa.Column("data", sa.JSON(), nullable=False),
        sa.Column("processed_by", sa.String(length=10), nullable=False),
        sa.Column("timestamp", TZ_DATETIME, nullable=False),
        sa.CheckConstraint(
            "processed_by IN ('api', 'webhook')",
            name=op.f("ck_payment_events_processed_by_known"),
        ),
        sa.ForeignKeyConstraint(
            ["user_id"], ["users.id"], name=op.f("fk_payment_events_user_id_users"), ondelete="CASCADE"
        ),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_payment_events")),
        sa.UniqueConstraint(
            "payment_intent_id", "event_type", name="uq_payment_events_intent_type"
        ),
    )
    op.create_index(
        op.f("ix_payment_events_payment_intent_id"),
        "payment_events",
        ["payment_intent_id"],
        unique=False,
    )
    op.create_index(op.f("ix_payment_events_user_id"), "payment_events", ["user_id"], unique=False)
    op.create_index(
        "ix_payment_events_user_timestamp", "payment_events", ["user_id", "timestamp"], unique=False
    )

    op.create_table(
        "pending_entry_awards",
        sa.Column("id", ID_TYPE, autoincrement=True, nullable=False),
        sa.Column("payment_event_id", sa.String(length=120), nullable=False),
        sa.Column("user_id", ID_TYPE, nullable=False),
        sa.Column("source", sa.String(length=20), nullable=False),
        sa.Column("entries", sa.Integer(), nullable=False),
        sa.Column("mini_draw_id", ID_TYPE, nullable=True),
        sa.Column("reason", sa.Text(), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("resolved_draw_id", ID_TYPE, nullable=True),
        sa.Column("created_at", TZ_DATETIME, nullable=False),
        sa.Column("resolved_at", TZ_DATETIME, nullable=True),
        sa.CheckConstraint("entries > 0", name=op.f("ck_pending_entry_awards_entries_positive")),
        sa.ForeignKeyConstraint(
            ["mini_draw_id"],
            ["draws.id"],
            name=op.f("fk_pending_entry_awards_mini_draw_id_draws"),
            ondelete="SET NULL",
        ),
        sa.ForeignKeyConstraint(
            ["payment_event_id"],
            ["payment_events.id"],
            name=op.f("fk_pending_entry_awards_payment_event_id_payment_events"),
            ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["resolved_draw_id"],
            ["draws.id"],
            name=op.f("fk_pending_entry_awards_resolved_draw_id_draws"),
            ondelete="SET NULL",
        ),
        sa.ForeignKeyConstraint(
            ["user_id"],
            ["users.id"],
            name=op.f("fk_pending_entry_awards_user_id_users"),
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_pending_entry_awards")),
    )
    op.create_index(
        "ix_pending_entry_awards_status", "pending_entry_awards", ["status"], unique=False
    )
    op.create_index(
        op.f("ix_pending_entry_awards_user_id"), "pending_entry_awards", ["user_id"], unique=False
    )

    op.create_table(
        "draw_events",
        sa.Column("id", ID_TYPE, autoincrement=True, nullable=False),
        sa.Column("event_type", sa.String(length=40), nullable=False),
        sa.Column("draw_id", ID_TYPE, nullable=False),
        sa.Column("payload", sa.JSON(), nullable=False),
        sa.Column("created_at", TZ_DATETIME, nullable=False),
        sa.Column("delivered_at", TZ_DATETIME, nullable=True),
        sa.ForeignKeyConstraint(
            ["draw_id"], ["draws.id"], name=op.f("fk_draw_events_draw_id_draws"), ondelete="CASCADE"
        ),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_draw_events")),
    )
    op.create_index(op.f("ix_draw_events_draw_id"), "draw_events", ["draw_id"], unique=False)
    op.create_index(op.f("ix_draw_events_event_type"), "draw_events", ["event_type"], unique=False)


def downgrade() -> None:
    op.drop_index(op.f("ix_draw_events_event_type"), table_name="draw_events")
    op.drop_index(op.f("ix_draw_events_draw_id"), table_name="draw_events")
    op.drop_table("draw_events")
    op.drop_index(op.f("ix_pending_entry_awards_user_id"), table_name="pending_entry_awards")
    op.drop_index("ix_pending_entry_awards_status", table_name="pending_entry_awards")
    op.drop_table("pending_entry_awards")
    op.drop_index("ix_payment_events_user_timestamp", table_name="payment_events")
    op.drop_index(op.f("ix_payment_events_user_id"), table_name="payment_events")
    op.drop_index(op.f("ix_payment_events_payment_intent_id"), table_name="payment_events")
    op.drop_table("payment_events")
    op.drop_index(op.f("ix_draw_winners_user_id"), table_name="draw_winners")
    op.drop_index(op.f("ix_draw_winners_draw_type"), table_name="draw_winners")
    op.drop_index(op.f("ix_draw_winners_draw_id"), table_name="draw_winners")
    op.drop_table("draw_winners")
    op.drop_index(op.f("ix_draw_entries_user_id"), table_name="draw_entries")
    op.drop_index(op.f("ix_draw_entries_draw_id"), table_name="draw_entries")
    op.drop_table("draw_entries")
    op.drop_index("ix_draws_status_draw_date", table_name="draws")
    op.drop_index("ix_draws_type_status_activation", table_name="draws")
    op.drop_table("draws")
    op.drop_index(op.f("ix_admins_id"), table_name="admins")
    op.drop_index(op.f("ix_admins_email"), table_name="admins")
    op.drop_table("admins")
    op.drop_table("users")
