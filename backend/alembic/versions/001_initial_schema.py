"""Initial schema: bookings, booking_seats, booking_items with indexes and constraints.

Revision ID: 001
Revises: None
Create Date: 2026-10-19
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Bookings table
    op.create_table(
        "bookings",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        # NULL user_id: operator booking for a walk-in customer
        sa.Column("user_id", sa.String(64), nullable=True),
        sa.Column("showtime_id", sa.String(64), nullable=False),
        sa.Column("cinema_id", sa.String(64), nullable=True),
        sa.Column("total_price", sa.Numeric(12, 2), nullable=False, server_default=sa.text("0")),
        sa.Column("status", sa.String(20), nullable=False, server_default=sa.text("'PENDING_PAYMENT'")),
        sa.Column("type", sa.String(10), nullable=False, server_default=sa.text("'online'")),
        sa.Column("payment_method", sa.String(30), nullable=True),
        sa.Column("is_used", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint("status IN ('PENDING_PAYMENT', 'PAID', 'FAILED')", name="check_booking_status"),
        sa.CheckConstraint("type IN ('online', 'offline')", name="check_booking_type"),
        sa.CheckConstraint("total_price >= 0", name="check_booking_total_non_negative"),
    )
    op.create_index("ix_bookings_id", "bookings", ["id"])
    op.create_index("ix_bookings_user_id", "bookings", ["user_id"])
    op.create_index("ix_bookings_showtime_id", "bookings", ["showtime_id"])

    # Seat line items; removed with their booking
    op.create_table(
        "booking_seats",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("booking_id", sa.Integer(), sa.ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False),
        sa.Column("showtime_id", sa.String(64), nullable=False),
        sa.Column("seat_id", sa.String(64), nullable=False),
        sa.Column("price", sa.Numeric(12, 2), nullable=False, server_default=sa.text("0")),
        # A seat belongs to at most one live booking; also serves seat map queries by showtime
        sa.UniqueConstraint("showtime_id", "seat_id", name="uq_booking_seats_showtime_seat"),
    )
    op.create_index("ix_booking_seats_booking", "booking_seats", ["booking_id"])

    # Ancillary items (food, drinks)
    op.create_table(
        "booking_items",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("booking_id", sa.Integer(), sa.ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False),
        sa.Column("item_id", sa.String(64), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column("unit_price", sa.Numeric(12, 2), nullable=False, server_default=sa.text("0")),
        sa.CheckConstraint("quantity > 0", name="check_booking_item_quantity_positive"),
    )


def downgrade() -> None:
    op.drop_table("booking_items")
    op.drop_table("booking_seats")
    op.drop_table("bookings")
