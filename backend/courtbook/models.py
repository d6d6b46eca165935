from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import CheckConstraint, ForeignKey, Index, UniqueConstraint
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship
from sqlalchemy.sql.sqltypes import BigInteger, DateTime, Integer, String

from .domain.participants import GuestPlayer, Player, RegisteredPlayer

# SQLite only autoincrements INTEGER PRIMARY KEY columns.
_Id = BigInteger().with_variant(Integer, "sqlite")


class Base(DeclarativeBase):
    pass


class User(Base):
    __tablename__ = "users"
    __table_args__ = (UniqueConstraint("email", name="uq_users_email"),)

    id: Mapped[int] = mapped_column(_Id, primary_key=True, autoincrement=True)
    # anonymous accounts have no email
    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    first_name: Mapped[str] = mapped_column(String(255), nullable=False)
    last_name: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)


class Court(Base):
    __tablename__ = "courts"

    id: Mapped[int] = mapped_column(_Id, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)

    reservations: Mapped[list["Reservation"]] = relationship(back_populates="court")


class Reservation(Base):
    __tablename__ = "reservations"
    __table_args__ = (
        CheckConstraint("starts_at < ends_at", name="chk_res_time"),
        Index("idx_res_court_interval", "court_id", "starts_at", "ends_at"),
        Index("idx_res_creator_start", "created_by_id", "starts_at"),
    )

    id: Mapped[int] = mapped_column(_Id, primary_key=True, autoincrement=True)
    court_id: Mapped[int] = mapped_column(ForeignKey("courts.id"), nullable=False)
    starts_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)
    ends_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)
    created_by_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)

    court: Mapped["Court"] = relationship(back_populates="reservations")


class ReservationParticipant(Base):
    __tablename__ = "reservation_participants"
    __table_args__ = (
        CheckConstraint(
            "(user_id IS NULL) <> (guest_name IS NULL)",
            name="chk_part_user_xor_guest",
        ),
        Index("idx_part_reservation", "reservation_id"),
        Index("idx_part_user", "user_id"),
    )

    id: Mapped[int] = mapped_column(_Id, primary_key=True, autoincrement=True)
    reservation_id: Mapped[int] = mapped_column(
        ForeignKey("reservations.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    guest_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    order: Mapped[int] = mapped_column("position", Integer, nullable=False, default=0)

    def as_player(self) -> Player:
        if self.user_id is not None:
            return RegisteredPlayer(self.user_id)
        return GuestPlayer(self.guest_name or "")

    @classmethod
    def from_player(cls, *, reservation_id: int, player: Player, order: int) -> "ReservationParticipant":
        if isinstance(player, RegisteredPlayer):
            return cls(reservation_id=reservation_id, user_id=player.user_id, order=order)
        return cls(reservation_id=reservation_id, guest_name=player.name, order=order)
