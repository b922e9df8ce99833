"""initial schema

Revision ID: 3f9c1d2a7b84
Revises:
Create Date: 2026-10-12 09:14:52.318406

"""

from collections.abc import Sequence

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "3f9c1d2a7b84"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

# create_type=False because we create it explicitly
racestate = postgresql.ENUM("OPEN", "CLOSED", name="racestate", create_type=False)


def upgrade() -> None:
    racestate.create(op.get_bind(), checkfirst=True)

    # Races table
    op.create_table(
        "races",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("channel_id", sa.String(32), nullable=False),
        sa.Column("race_number", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("total_spots", sa.Integer(), nullable=False),
        sa.Column("remaining_spots", sa.Integer(), nullable=False),
        sa.Column("state", racestate, nullable=False, server_default="OPEN"),
        sa.Column("ready_notified", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column(
            "created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()
        ),
        sa.UniqueConstraint("channel_id", "race_number", name="uq_races_channel_number"),
        sa.CheckConstraint("total_spots > 0", name="ck_races_total_positive"),
        sa.CheckConstraint(
            "remaining_spots >= 0 AND remaining_spots <= total_spots",
            name="ck_races_remaining_bounds",
        ),
    )
    op.create_index("ix_races_channel_id", "races", ["channel_id"])
    op.create_index(
        "uq_races_open_name",
        "races",
        ["channel_id", "name"],
        unique=True,
        postgresql_where=sa.text("state = 'OPEN'"),
    )

    # Entries table (one row per claimed spot)
    op.create_table(
        "entries",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "race_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("races.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("holder_id", sa.String(32), nullable=False),
        sa.Column("display_name", sa.String(100), nullable=False),
        sa.Column(
            "created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()
        ),
    )
    op.create_index("ix_entries_race_id", "entries", ["race_id"])

    # Sips table
    op.create_table(
        "sips",
        sa.Column(
            "race_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("races.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column("holder_id", sa.String(32), primary_key=True),
        sa.Column(
            "created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()
        ),
    )

    # Vouches table
    op.create_table(
        "vouches",
        sa.Column(
            "race_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("races.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column("holder_id", sa.String(32), primary_key=True),
        sa.Column("vouched_by", sa.String(32), nullable=False),
        sa.Column(
            "created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()
        ),
        sa.CheckConstraint("holder_id <> vouched_by", name="ck_vouches_not_self"),
    )


def downgrade() -> None:
    op.drop_table("vouches")
    op.drop_table("sips")
    op.drop_index("ix_entries_race_id", table_name="entries")
    op.drop_table("entries")
    op.drop_index("uq_races_open_name", table_name="races")
    op.drop_index("ix_races_channel_id", table_name="races")
    op.drop_table("races")
    racestate.drop(op.get_bind(), checkfirst=True)
