"""Unit tests for MemorySerializer."""

from datetime import date

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from memoizable.core.memory.serializer import MemorySerializer
from memoizable.core.memory.views import MemoizedObject
from tests.fixtures.rental_models import Car, User


@pytest.mark.asyncio
async def test_capture_includes_attributes_and_type(rental_user: User):
    document = await MemorySerializer().capture(rental_user)

    assert document["__type__"] == "User"
    assert document["id"] == rental_user.id
    assert document["payment_frequency"] == "Monthly"
    assert document["state"] == "approved"
    assert document["partner_managed"] is False
    assert "locked" not in document


@pytest.mark.asyncio
async def test_capture_includes_computed_members(rental_user: User):
    document = await MemorySerializer().capture(rental_user)

    assert document["display_name"] == "Sam (approved)"
    assert document["payment_label"] == "Monthly payments"
    assert document["total_payment"] == 1600


@pytest.mark.asyncio
async def test_capture_includes_associations_with_sidecars(rental_user: User):
    document = await MemorySerializer().capture(rental_user)

    assert [car["id"] for car in document["cars"]] == [car.id for car in rental_user.cars]
    assert document["cars__type__"] == "Car"
    assert document["cars"][0]["__type__"] == "Car"
    assert document["cars"][0]["renting_date"] == "2024-03-01"
    assert document["renter"]["name"] == "Pat Renter"
    assert document["renter__type__"] == "Renter"


@pytest.mark.asyncio
async def test_capture_includes_scopes_of_element_type(rental_user: User):
    document = await MemorySerializer().capture(rental_user)

    rented = [car.id for car in rental_user.cars if car.state == "rented"]
    assert [car["id"] for car in document["cars_rented"]] == rented
    assert document["cars_rented__type__"] == "Car"
    assert len(document["cars_pending"]) == 2
    assert len(document["rooms_open_rooms"]) == 3
    assert len(document["rooms_partial_rooms"]) == 1


@pytest.mark.asyncio
async def test_back_reference_is_captured_as_summary(rental_user: User):
    document = await MemorySerializer().capture(rental_user)

    back_reference = document["renter"]["user"]
    assert back_reference["id"] == rental_user.id
    assert back_reference["__type__"] == "User"
    assert "cars" not in back_reference
    assert "renter" not in back_reference


@pytest.mark.asyncio
async def test_include_all_false_captures_attributes_only(rental_user: User):
    document = await MemorySerializer().capture(rental_user, include_all=False)

    assert document["name"] == "Sam"
    assert "cars" not in document
    assert "display_name" not in document


@pytest.mark.asyncio
async def test_empty_association_is_an_empty_list(db_session: AsyncSession):
    user = User(name="Lone", state="new")
    db_session.add(user)
    await db_session.commit()

    document = await MemorySerializer().capture(user)

    assert document["cars"] == []
    assert document["rooms_open_rooms"] == []
    assert document["renter"] is None
    assert document["renter__type__"] == "Renter"
    assert document["total_payment"] == 0


@pytest.mark.asyncio
async def test_memoized_attributes_round_trip(rental_user: User):
    document = MemoizedObject(await MemorySerializer().capture(rental_user))

    for name in ("id", "name", "state", "payment_frequency", "partner_managed", "created_at"):
        assert document.get(name) == getattr(rental_user, name)


@pytest.mark.asyncio
async def test_capture_does_not_modify_entity(rental_user: User, db_session: AsyncSession):
    await MemorySerializer().capture(rental_user)

    assert rental_user not in db_session.dirty
    assert len(rental_user.cars) == 4


@pytest.mark.asyncio
async def test_capture_of_entity_without_members(db_session: AsyncSession):
    car = Car(state="rented", renting_date=date(2024, 5, 1))
    db_session.add(car)
    await db_session.commit()

    document = await MemorySerializer().capture(car)

    assert document == {
        "__type__": "Car",
        "id": car.id,
        "user_id": None,
        "model_name": "Roadster",
        "state": "rented",
        "payment": 400,
        "renting_date": "2024-05-01",
        "created_at": car.created_at.isoformat(),
    }


@pytest.mark.asyncio
async def test_member_errors_propagate(rental_user: User, monkeypatch):
    def broken(self):
        raise RuntimeError("payment service down")

    monkeypatch.setattr(User, "payment_label", broken)

    with pytest.raises(RuntimeError, match="payment service down"):
        await MemorySerializer().capture(rental_user)
