from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import CheckConstraint, ForeignKey, Index, UniqueConstraint
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship
from sqlalchemy.sql.sqltypes import BigInteger, Boolean, DateTime, Integer, String, Text


class Base(DeclarativeBase):
    pass


class Admin(Base):
    __tablename__ = "admins"
    __table_args__ = (UniqueConstraint("email", name="uq_admins_email"),)

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)


class Event(Base):
    __tablename__ = "events"
    __table_args__ = (
        CheckConstraint("cost >= 0", name="chk_events_cost"),
        CheckConstraint("current_participants >= 0", name="chk_events_current"),
        Index("idx_events_active", "is_active"),
    )

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    venue: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    date: Mapped[str] = mapped_column(String(64), nullable=False, default="")
    cost: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    image_url: Mapped[Optional[str]] = mapped_column(String(1024), nullable=True)
    max_participants: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    current_participants: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)

    time_slots: Mapped[list["TimeSlot"]] = relationship(back_populates="event", passive_deletes=True)
    reservations: Mapped[list["Reservation"]] = relationship(back_populates="event", passive_deletes=True)


class TimeSlot(Base):
    __tablename__ = "event_time_slots"
    __table_args__ = (
        CheckConstraint("max_participants >= 0", name="chk_slots_max"),
        CheckConstraint("current_participants >= 0", name="chk_slots_current"),
        UniqueConstraint("event_id", "label", name="uq_slots_event_label"),
        Index("idx_slots_event", "event_id"),
    )

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    event_id: Mapped[int] = mapped_column(ForeignKey("events.id"), nullable=False)
    label: Mapped[str] = mapped_column(String(5), nullable=False)
    max_participants: Mapped[int] = mapped_column(Integer, nullable=False)
    current_participants: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)

    event: Mapped["Event"] = relationship(back_populates="time_slots")
    reservations: Mapped[list["Reservation"]] = relationship(back_populates="time_slot", passive_deletes=True)


class Reservation(Base):
    __tablename__ = "reservations"
    __table_args__ = (
        CheckConstraint("participants >= 1", name="chk_res_participants"),
        UniqueConstraint("event_id", "reservation_number", name="uq_res_event_number"),
        Index("idx_res_event", "event_id"),
        Index("idx_res_slot", "time_slot_id"),
        Index("idx_res_email", "email"),
    )

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    event_id: Mapped[int] = mapped_column(ForeignKey("events.id"), nullable=False)
    time_slot_id: Mapped[int] = mapped_column(ForeignKey("event_time_slots.id"), nullable=False)
    reservation_number: Mapped[str] = mapped_column(String(6), nullable=False)
    participants: Mapped[int] = mapped_column(Integer, nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    phone: Mapped[str] = mapped_column(String(50), nullable=False)
    accompanied_guest1: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    accompanied_guest2: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    accompanied_guest3: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    total_cost: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    notes: Mapped[str] = mapped_column(Text, nullable=False, default="")
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)

    event: Mapped["Event"] = relationship(back_populates="reservations")
    time_slot: Mapped["TimeSlot"] = relationship(back_populates="reservations")

    @property
    def accompanied_guests(self) -> list[str]:
        guests = [self.accompanied_guest1, self.accompanied_guest2, self.accompanied_guest3]
        return [g for g in guests if g]

    def set_accompanied_guests(self, guests: list[str]) -> None:
        padded = list(guests) + [None] * (3 - len(guests))
        self.accompanied_guest1, self.accompanied_guest2, self.accompanied_guest3 = padded[:3]
