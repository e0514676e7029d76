"""Memoizable models used across the test suite.

A user rents cars and rooms and has one renter profile. Cars and rooms
declare scopes, so a user's captured ``cars`` / ``rooms`` come with
pre-filtered ``cars_rented`` / ``rooms_open_rooms`` style lists.
"""

from datetime import date, datetime

from sqlalchemy import Boolean, Date, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from memoizable import MemoizableMixin, memoizable
from memoizable.infrastructure.persistence.database import Base


def _now() -> datetime:
    return datetime.now().replace(microsecond=0)


def rented(cars):
    return [car for car in cars if car.state == "rented"]


def pending(cars):
    return [car for car in cars if car.state == "pending"]


def open_rooms(rooms):
    return [room for room in rooms if room.open]


def partial_rooms(rooms):
    return [room for room in rooms if room.partial_bunk_room]


@memoizable(scopes={"rented": rented, "pending": pending})
class Car(MemoizableMixin, Base):
    __tablename__ = "test_cars"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int | None] = mapped_column(ForeignKey("test_users.id"), nullable=True)
    model_name: Mapped[str] = mapped_column(String(100), default="Roadster")
    state: Mapped[str] = mapped_column(String(20), default="pending")
    payment: Mapped[int] = mapped_column(Integer, default=400)
    renting_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_now)


@memoizable(scopes={"open_rooms": open_rooms, "partial_rooms": partial_rooms})
class Room(MemoizableMixin, Base):
    __tablename__ = "test_rooms"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int | None] = mapped_column(ForeignKey("test_users.id"), nullable=True)
    open: Mapped[bool] = mapped_column(Boolean, default=False)
    partial_bunk_room: Mapped[bool] = mapped_column(Boolean, default=False)


@memoizable("user")
class Renter(MemoizableMixin, Base):
    __tablename__ = "test_renters"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("test_users.id"))
    name: Mapped[str] = mapped_column(String(100), default="Pat Renter")

    user: Mapped["User"] = relationship(back_populates="renter")


@memoizable("cars", "rooms", "renter", "payment_label", "total_payment", "display_name")
class User(MemoizableMixin, Base):
    __tablename__ = "test_users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(100), default="Sam")
    state: Mapped[str | None] = mapped_column(String(40), nullable=True)
    payment_frequency: Mapped[str] = mapped_column(String(40), default="Monthly")
    partner_managed: Mapped[bool] = mapped_column(Boolean, default=False)
    signed_on_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_now)

    cars: Mapped[list[Car]] = relationship(order_by=Car.id)
    rooms: Mapped[list[Room]] = relationship(order_by=Room.id)
    renter: Mapped[Renter | None] = relationship(back_populates="user")

    @property
    def display_name(self) -> str:
        return f"{self.name} ({self.state or 'new'})"

    def payment_label(self) -> str:
        return f"{self.payment_frequency} payments"

    async def total_payment(self) -> int:
        cars = await self.awaitable_attrs.cars
        return sum(car.payment for car in cars)
