"""Create reservation, room, folio and audit tables

Revision ID: 3a7c1e9b2d40
Revises:
Create Date: 2026-10-19 09:12:31.482210

"""

import sqlalchemy as sa

from alembic import op  # type: ignore[attr-defined]

# revision identifiers, used by Alembic.
revision = "3a7c1e9b2d40"
down_revision = None
branch_labels = None
depends_on = None

MONEY = sa.Numeric(12, 2)


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.func.now(), nullable=False),
    ]


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        "guests",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("hotel_id", sa.Integer(), nullable=False, index=True),
        sa.Column("first_name", sa.String(100), nullable=False),
        sa.Column("last_name", sa.String(100), nullable=True),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("first_reservation_id", sa.Integer(), nullable=True),
        sa.Column("last_reservation_id", sa.Integer(), nullable=True),
        sa.Column("first_arrival_date", sa.Date(), nullable=True),
        sa.Column("last_arrival_date", sa.Date(), nullable=True),
        *_timestamps(),
    )

    op.create_table(
        "rooms",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("hotel_id", sa.Integer(), nullable=False, index=True),
        sa.Column("room_number", sa.String(20), nullable=False),
        sa.Column("room_type_id", sa.Integer(), nullable=False, index=True),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("housekeeping_status", sa.String(20), nullable=False),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint("hotel_id", "room_number"),
    )

    op.create_table(
        "reservations",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("hotel_id", sa.Integer(), nullable=False, index=True),
        sa.Column("guest_id", sa.Integer(), sa.ForeignKey("guests.id"), nullable=False, index=True),
        sa.Column("reservation_number", sa.String(32), nullable=True, unique=True),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("arrival_date", sa.Date(), nullable=False),
        sa.Column("departure_date", sa.Date(), nullable=False),
        sa.Column("check_in_datetime", sa.DateTime(), nullable=True),
        sa.Column("check_out_datetime", sa.DateTime(), nullable=True),
        sa.Column("number_of_nights", sa.Integer(), nullable=False),
        sa.Column("currency", sa.String(3), nullable=False),
        sa.Column("total_amount", MONEY, nullable=False),
        sa.Column("final_amount", MONEY, nullable=False),
        sa.Column("paid_amount", MONEY, nullable=False),
        sa.Column("remaining_amount", MONEY, nullable=False),
        sa.Column("cancellation_reason", sa.Text(), nullable=True),
        sa.Column("cancellation_fee", MONEY, nullable=True),
        sa.Column("cancelled_at", sa.DateTime(), nullable=True),
        sa.Column("cancelled_by", sa.Integer(), nullable=True),
        sa.Column("no_show_reason", sa.Text(), nullable=True),
        sa.Column("no_show_fee", MONEY, nullable=True),
        sa.Column("no_show_at", sa.DateTime(), nullable=True),
        sa.Column("no_show_by", sa.Integer(), nullable=True),
        sa.Column("void_reason", sa.Text(), nullable=True),
        sa.Column("voided_at", sa.DateTime(), nullable=True),
        sa.Column("voided_by", sa.Integer(), nullable=True),
        sa.Column("created_by", sa.Integer(), nullable=True),
        sa.Column("last_modified_by", sa.Integer(), nullable=True),
        *_timestamps(),
        sa.Column("version", sa.Integer(), nullable=False),
    )

    op.create_table(
        "reservation_rooms",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "reservation_id",
            sa.Integer(),
            sa.ForeignKey("reservations.id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        ),
        sa.Column("room_id", sa.Integer(), sa.ForeignKey("rooms.id"), nullable=True, index=True),
        sa.Column("room_type_id", sa.Integer(), nullable=False),
        sa.Column("guest_id", sa.Integer(), sa.ForeignKey("guests.id"), nullable=True),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("check_in_date", sa.Date(), nullable=False),
        sa.Column("check_out_date", sa.Date(), nullable=False),
        sa.Column("check_in_time", sa.Time(), nullable=True),
        sa.Column("check_out_time", sa.Time(), nullable=True),
        sa.Column("actual_check_in", sa.DateTime(), nullable=True),
        sa.Column("actual_check_out", sa.DateTime(), nullable=True),
        sa.Column("nights", sa.Integer(), nullable=False),
        sa.Column("room_rate", MONEY, nullable=False),
        sa.Column("tax_amount", MONEY, nullable=False),
        sa.Column("total_room_charges", MONEY, nullable=False),
        sa.Column("total_taxes_amount", MONEY, nullable=False),
        sa.Column("discount_amount", MONEY, nullable=False),
        sa.Column("net_amount", MONEY, nullable=False),
        sa.Column("adults", sa.Integer(), nullable=False),
        sa.Column("children", sa.Integer(), nullable=False),
        sa.Column("is_owner", sa.Boolean(), nullable=False),
        sa.Column("stop_move", sa.Boolean(), nullable=False),
        sa.Column("is_split_origin", sa.Boolean(), nullable=False),
        sa.Column("is_split_destination", sa.Boolean(), nullable=False),
        sa.Column(
            "moved_from_id", sa.Integer(), sa.ForeignKey("reservation_rooms.id"), nullable=True
        ),
        sa.Column("room_change_reason", sa.Text(), nullable=True),
        sa.Column("room_changed_at", sa.DateTime(), nullable=True),
        sa.Column("room_changed_by", sa.Integer(), nullable=True),
        sa.Column("cancellation_reason", sa.Text(), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(), nullable=True),
        sa.Column("cancelled_by", sa.Integer(), nullable=True),
        sa.Column("no_show_reason", sa.Text(), nullable=True),
        sa.Column("no_show_at", sa.DateTime(), nullable=True),
        sa.Column("no_show_by", sa.Integer(), nullable=True),
        sa.Column("void_reason", sa.Text(), nullable=True),
        sa.Column("voided_at", sa.DateTime(), nullable=True),
        sa.Column("voided_by", sa.Integer(), nullable=True),
        sa.Column("checked_in_by", sa.Integer(), nullable=True),
        sa.Column("checked_out_by", sa.Integer(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("last_modified_by", sa.Integer(), nullable=True),
        *_timestamps(),
    )

    op.create_table(
        "folios",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("hotel_id", sa.Integer(), nullable=False, index=True),
        sa.Column(
            "reservation_id",
            sa.Integer(),
            sa.ForeignKey("reservations.id"),
            nullable=True,
            index=True,
        ),
        sa.Column(
            "reservation_room_id",
            sa.Integer(),
            sa.ForeignKey("reservation_rooms.id"),
            nullable=True,
            index=True,
        ),
        sa.Column("guest_id", sa.Integer(), sa.ForeignKey("guests.id"), nullable=True),
        sa.Column("folio_number", sa.String(32), nullable=False, unique=True),
        sa.Column("folio_type", sa.String(20), nullable=False),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("workflow_status", sa.String(20), nullable=False),
        sa.Column("settlement_status", sa.String(20), nullable=False),
        sa.Column("currency", sa.String(3), nullable=False),
        sa.Column("total_charges", MONEY, nullable=False),
        sa.Column("total_payments", MONEY, nullable=False),
        sa.Column("total_adjustments", MONEY, nullable=False),
        sa.Column("total_taxes", MONEY, nullable=False),
        sa.Column("total_service_charges", MONEY, nullable=False),
        sa.Column("total_discounts", MONEY, nullable=False),
        sa.Column("balance", MONEY, nullable=False),
        sa.Column("opened_at", sa.DateTime(), nullable=True),
        sa.Column("opened_by", sa.Integer(), nullable=True),
        sa.Column("closed_at", sa.DateTime(), nullable=True),
        sa.Column("closed_by", sa.Integer(), nullable=True),
        sa.Column("voided_at", sa.DateTime(), nullable=True),
        sa.Column("voided_by", sa.Integer(), nullable=True),
        sa.Column("void_reason", sa.Text(), nullable=True),
        *_timestamps(),
        sa.Column("version", sa.Integer(), nullable=False),
    )

    op.create_table(
        "folio_transactions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("hotel_id", sa.Integer(), nullable=False, index=True),
        sa.Column("folio_id", sa.Integer(), sa.ForeignKey("folios.id"), nullable=False, index=True),
        sa.Column(
            "reservation_id",
            sa.Integer(),
            sa.ForeignKey("reservations.id"),
            nullable=True,
            index=True,
        ),
        sa.Column(
            "reservation_room_id",
            sa.Integer(),
            sa.ForeignKey("reservation_rooms.id"),
            nullable=True,
            index=True,
        ),
        sa.Column("transaction_number", sa.Integer(), nullable=False),
        sa.Column("transaction_type", sa.String(20), nullable=False),
        sa.Column("category", sa.String(32), nullable=False),
        sa.Column("description", sa.String(255), nullable=True),
        sa.Column("amount", MONEY, nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("unit_price", MONEY, nullable=False),
        sa.Column("tax_amount", MONEY, nullable=False),
        sa.Column("service_charge_amount", MONEY, nullable=False),
        sa.Column("discount_amount", MONEY, nullable=False),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("posting_date", sa.Date(), nullable=False),
        sa.Column("service_date", sa.Date(), nullable=True),
        sa.Column("transaction_date", sa.DateTime(), nullable=False),
        sa.Column(
            "original_transaction_id",
            sa.Integer(),
            sa.ForeignKey("folio_transactions.id"),
            nullable=True,
        ),
        sa.Column("void_reason", sa.Text(), nullable=True),
        sa.Column("voided_at", sa.DateTime(), nullable=True),
        sa.Column("voided_by", sa.Integer(), nullable=True),
        sa.Column("created_by", sa.Integer(), nullable=True),
        *_timestamps(),
        sqlite_autoincrement=True,
    )

    op.create_table(
        "audit_logs",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("actor_id", sa.Integer(), nullable=True),
        sa.Column("action", sa.String(64), nullable=False, index=True),
        sa.Column("entity_type", sa.String(64), nullable=False),
        sa.Column("entity_id", sa.Integer(), nullable=False, index=True),
        sa.Column("hotel_id", sa.Integer(), nullable=True, index=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("meta", sa.JSON(), nullable=True),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now(), nullable=False),
    )


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_table("audit_logs")
    op.drop_table("folio_transactions")
    op.drop_table("folios")
    op.drop_table("reservation_rooms")
    op.drop_table("reservations")
    op.drop_table("rooms")
    op.drop_table("guests")
