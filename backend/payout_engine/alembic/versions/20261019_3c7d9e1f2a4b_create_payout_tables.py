"""create vendors, ledger_entries and payout_batches tables

Revision ID: 3c7d9e1f2a4b
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision = "3c7d9e1f2a4b"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "vendors",
        sa.Column("id", sa.String(length=128), nullable=False),
        sa.Column("display_name", sa.String(length=255), nullable=True),
        sa.Column("username", sa.String(length=255), nullable=True),
        sa.Column("email", sa.String(length=255), nullable=True),
        sa.Column("currency", sa.String(length=3), nullable=False),
        sa.Column("bank_name", sa.String(length=255), nullable=True),
        sa.Column("bank_code", sa.String(length=32), nullable=True),
        sa.Column("account_number", sa.String(length=32), nullable=True),
        sa.Column("account_name", sa.String(length=255), nullable=True),
        sa.Column("bank_verified", sa.Boolean(), nullable=False),
        sa.Column("transfer_recipient_code", sa.String(length=128), nullable=True),
        sa.Column("payout_schedule", sa.String(length=10), nullable=False),
        sa.Column("eligible_balance_minor", sa.BigInteger(), nullable=False),
        sa.Column("on_hold_minor", sa.BigInteger(), nullable=False),
        sa.Column("balance_updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_payout_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("(CURRENT_TIMESTAMP)"),
            nullable=True,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("(CURRENT_TIMESTAMP)"),
            nullable=True,
        ),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "ledger_entries",
        sa.Column(
            "seq",
            sa.BigInteger().with_variant(sa.Integer(), "sqlite"),
            autoincrement=True,
            nullable=False,
        ),
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("vendor_id", sa.String(length=128), nullable=False),
        sa.Column("amount_minor", sa.BigInteger(), nullable=False),
        sa.Column("type", sa.String(length=20), nullable=False),
        sa.Column("source", sa.String(length=10), nullable=False),
        sa.Column("currency", sa.String(length=3), nullable=False),
        sa.Column("target_payout_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("target_payout_key", sa.String(length=20), nullable=False),
        sa.Column("payout_batch_id", sa.String(length=128), nullable=True),
        sa.Column("paid_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("order_collection", sa.String(length=64), nullable=False),
        sa.Column("order_id", sa.String(length=128), nullable=False),
        sa.Column("event_id", sa.String(length=128), nullable=True),
        sa.Column("split_from_entry_id", sa.String(length=36), nullable=True),
        sa.Column("note", sa.Text(), nullable=False),
        sa.Column("created_by", sa.String(length=128), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("seq"),
    )
    op.create_index(op.f("ix_ledger_entries_id"), "ledger_entries", ["id"], unique=True)
    op.create_index(op.f("ix_ledger_entries_vendor_id"), "ledger_entries", ["vendor_id"])
    op.create_index(
        op.f("ix_ledger_entries_target_payout_at"), "ledger_entries", ["target_payout_at"]
    )
    op.create_index(
        op.f("ix_ledger_entries_payout_batch_id"), "ledger_entries", ["payout_batch_id"]
    )
    op.create_index(
        op.f("ix_ledger_entries_split_from_entry_id"), "ledger_entries", ["split_from_entry_id"]
    )
    op.create_index(
        "ix_ledger_entries_vendor_type_batch",
        "ledger_entries",
        ["vendor_id", "type", "payout_batch_id"],
    )
    op.create_index(
        "ix_ledger_entries_vendor_created", "ledger_entries", ["vendor_id", "created_at"]
    )

    op.create_table(
        "payout_batches",
        sa.Column("batch_id", sa.String(length=128), nullable=False),
        sa.Column("kind", sa.String(length=20), nullable=False),
        sa.Column("source", sa.String(length=10), nullable=True),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("test_mode", sa.Boolean(), nullable=False),
        sa.Column("retry_of", sa.Text(), nullable=True),
        sa.Column("total_vendors", sa.Integer(), nullable=False),
        sa.Column("successful", sa.Integer(), nullable=False),
        sa.Column("failed", sa.Integer(), nullable=False),
        sa.Column("skipped", sa.Integer(), nullable=False),
        sa.Column("total_amount_minor", sa.BigInteger(), nullable=False),
        sa.Column("currency", sa.String(length=3), nullable=True),
        sa.Column("cutoff_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("results", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("batch_id"),
    )
    op.create_index(op.f("ix_payout_batches_kind"), "payout_batches", ["kind"])
    op.create_index(op.f("ix_payout_batches_created_at"), "payout_batches", ["created_at"])


def downgrade() -> None:
    op.drop_index(op.f("ix_payout_batches_created_at"), table_name="payout_batches")
    op.drop_index(op.f("ix_payout_batches_kind"), table_name="payout_batches")
    op.drop_table("payout_batches")
    op.drop_index("ix_ledger_entries_vendor_created", table_name="ledger_entries")
    op.drop_index("ix_ledger_entries_vendor_type_batch", table_name="ledger_entries")
    op.drop_index(op.f("ix_ledger_entries_split_from_entry_id"), table_name="ledger_entries")
    op.drop_index(op.f("ix_ledger_entries_payout_batch_id"), table_name="ledger_entries")
    op.drop_index(op.f("ix_ledger_entries_target_payout_at"), table_name="ledger_entries")
    op.drop_index(op.f("ix_ledger_entries_vendor_id"), table_name="ledger_entries")
    op.drop_index(op.f("ix_ledger_entries_id"), table_name="ledger_entries")
    op.drop_table("ledger_entries")
    op.drop_table("vendors")
