"""Database models for Duck Racing."""

import enum
import uuid
from datetime import datetime

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
    func,
    text,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from duck_racing.database import Base


class RaceState(enum.Enum):
    """Race lifecycle state."""

    OPEN = "open"  # Accepting claims
    CLOSED = "closed"  # Full, cancelled or force closed


class Race(Base):
    """One capacity-bounded sign-up round within a channel."""

    __tablename__ = "races"
    __table_args__ = (
        UniqueConstraint("channel_id", "race_number", name="uq_races_channel_number"),
        CheckConstraint("total_spots > 0", name="ck_races_total_positive"),
        CheckConstraint(
            "remaining_spots >= 0 AND remaining_spots <= total_spots",
            name="ck_races_remaining_bounds",
        ),
        # At most one open race per (channel, name)
        Index(
            "uq_races_open_name",
            "channel_id",
            "name",
            unique=True,
            postgresql_where=text("state = 'OPEN'"),
            sqlite_where=text("state = 'OPEN'"),
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    channel_id: Mapped[str] = mapped_column(String(32), nullable=False, index=True)
    race_number: Mapped[int] = mapped_column(Integer, nullable=False)
    name: Mapped[str] = mapped_column(String(100), nullable=False)  # stored lower-cased
    total_spots: Mapped[int] = mapped_column(Integer, nullable=False)
    remaining_spots: Mapped[int] = mapped_column(Integer, nullable=False)
    state: Mapped[RaceState] = mapped_column(Enum(RaceState), default=RaceState.OPEN)
    ready_notified: Mapped[bool] = mapped_column(Boolean, default=False, server_default="0")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    # Relationships
    entries: Mapped[list["Entry"]] = relationship(
        back_populates="race", cascade="all, delete-orphan", passive_deletes=True
    )
    sips: Mapped[list["SipRecord"]] = relationship(
        back_populates="race", cascade="all, delete-orphan", passive_deletes=True
    )
    vouches: Mapped[list["VouchRecord"]] = relationship(
        back_populates="race", cascade="all, delete-orphan", passive_deletes=True
    )

    @property
    def is_open(self) -> bool:
        return self.state == RaceState.OPEN


class Entry(Base):
    """One claimed spot. A holder owns one row per spot."""

    __tablename__ = "entries"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    race_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("races.id", ondelete="CASCADE"), nullable=False, index=True
    )
    holder_id: Mapped[str] = mapped_column(String(32), nullable=False)
    display_name: Mapped[str] = mapped_column(String(100), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    # Relationships
    race: Mapped["Race"] = relationship(back_populates="entries")


class SipRecord(Base):
    """Direct self-acknowledgment of completion."""

    __tablename__ = "sips"

    race_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("races.id", ondelete="CASCADE"), primary_key=True
    )
    holder_id: Mapped[str] = mapped_column(String(32), primary_key=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    # Relationships
    race: Mapped["Race"] = relationship(back_populates="sips")


class VouchRecord(Base):
    """Third-party acknowledgment of completion on behalf of a participant."""

    __tablename__ = "vouches"
    __table_args__ = (CheckConstraint("holder_id <> vouched_by", name="ck_vouches_not_self"),)

    race_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("races.id", ondelete="CASCADE"), primary_key=True
    )
    holder_id: Mapped[str] = mapped_column(String(32), primary_key=True)
    vouched_by: Mapped[str] = mapped_column(String(32), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    # Relationships
    race: Mapped["Race"] = relationship(back_populates="vouches")
