"""Test reservation store backends against the same contract."""
import pytest
from datetime import datetime
from unittest.mock import patch

from sqlalchemy.exc import OperationalError

from agenda.repository import (
    InMemoryReservationRepository,
    ReservationNotFoundError,
    SqlReservationRepository,
    StoreError,
    create_reservation_repository,
)
from agenda.reservations import InvalidStatusTransition, ReservationStatus

DAY_START = datetime(2025, 3, 14)
DAY_END = datetime(2025, 3, 15)


@pytest.fixture(params=["memory", "sql"])
def repo(request, engine):
    if request.param == "memory":
        return InMemoryReservationRepository()
    return SqlReservationRepository(engine)


@pytest.mark.asyncio
async def test_create_assigns_id(repo, make_reservation):
    reservation_id = await repo.create(make_reservation(datetime(2025, 3, 14, 9, 0)))

    stored = await repo.get(reservation_id)

    assert stored.id == reservation_id
    assert stored.client_name == "Maria Souza"
    assert stored.status == ReservationStatus.PENDING
    assert stored.start_at == datetime(2025, 3, 14, 9, 0)


@pytest.mark.asyncio
async def test_ids_are_unique(repo, make_reservation):
    first = await repo.create(make_reservation(datetime(2025, 3, 14, 9, 0)))
    second = await repo.create(make_reservation(datetime(2025, 3, 14, 9, 0)))

    assert first != second


@pytest.mark.asyncio
async def test_list_by_date_range_is_half_open_and_sorted(repo, make_reservation):
    await repo.create(make_reservation(datetime(2025, 3, 14, 15, 0)))
    await repo.create(make_reservation(datetime(2025, 3, 14, 0, 0)))
    await repo.create(make_reservation(datetime(2025, 3, 14, 9, 0)))
    await repo.create(make_reservation(datetime(2025, 3, 15, 0, 0)))  # Next day
    await repo.create(make_reservation(datetime(2025, 3, 13, 23, 59)))  # Previous day

    found = await repo.list_by_date_range(DAY_START, DAY_END)

    assert [r.start_at.hour for r in found] == [0, 9, 15]


@pytest.mark.asyncio
async def test_list_all_sorted_by_start(repo, make_reservation):
    await repo.create(make_reservation(datetime(2025, 3, 20, 9, 0)))
    await repo.create(make_reservation(datetime(2025, 3, 10, 9, 0)))

    found = await repo.list_all()

    assert [r.start_at.day for r in found] == [10, 20]


@pytest.mark.asyncio
async def test_update_status(repo, make_reservation):
    reservation_id = await repo.create(make_reservation(datetime(2025, 3, 14, 9, 0)))

    updated = await repo.update_status(reservation_id, ReservationStatus.CONFIRMED)

    assert updated.status == ReservationStatus.CONFIRMED
    assert (await repo.get(reservation_id)).status == ReservationStatus.CONFIRMED


@pytest.mark.asyncio
async def test_update_status_checks_expected_status(repo, make_reservation):
    reservation_id = await repo.create(make_reservation(datetime(2025, 3, 14, 9, 0)))
    await repo.update_status(reservation_id, ReservationStatus.DECLINED, expected=ReservationStatus.PENDING)

    with pytest.raises(InvalidStatusTransition):
        await repo.update_status(
            reservation_id, ReservationStatus.CONFIRMED, expected=ReservationStatus.PENDING
        )

    assert (await repo.get(reservation_id)).status == ReservationStatus.DECLINED


@pytest.mark.asyncio
async def test_update_status_expected_on_missing_id(repo):
    with pytest.raises(ReservationNotFoundError):
        await repo.update_status(
            "missing", ReservationStatus.CONFIRMED, expected=ReservationStatus.PENDING
        )

@pytest.mark.asyncio
async def test_delete(repo, make_reservation):
    reservation_id = await repo.create(make_reservation(datetime(2025, 3, 14, 9, 0)))

    await repo.delete(reservation_id)

    with pytest.raises(ReservationNotFoundError):
        await repo.get(reservation_id)
    assert await repo.list_all() == []


@pytest.mark.asyncio
async def test_missing_id_raises_not_found(repo):
    with pytest.raises(ReservationNotFoundError):
        await repo.get("missing")
    with pytest.raises(ReservationNotFoundError):
        await repo.update_status("missing", ReservationStatus.DECLINED)
    with pytest.raises(ReservationNotFoundError):
        await repo.delete("missing")


@pytest.mark.asyncio
async def test_memory_store_returns_copies(make_reservation):
    repo = InMemoryReservationRepository()
    reservation_id = await repo.create(make_reservation(datetime(2025, 3, 14, 9, 0)))

    fetched = await repo.get(reservation_id)
    fetched.status = ReservationStatus.DECLINED

    assert (await repo.get(reservation_id)).status == ReservationStatus.PENDING


@pytest.mark.asyncio
async def test_sql_errors_become_store_errors(engine, make_reservation):
    repo = SqlReservationRepository(engine)

    with patch.object(repo, "SessionLocal", side_effect=OperationalError("SELECT", {}, Exception("db down"))):
        with pytest.raises(StoreError):
            await repo.list_all()


def test_factory_selects_backend(engine):
    assert isinstance(create_reservation_repository("memory"), InMemoryReservationRepository)
    assert isinstance(create_reservation_repository("sql", engine), SqlReservationRepository)
    with pytest.raises(ValueError):
        create_reservation_repository("redis")
