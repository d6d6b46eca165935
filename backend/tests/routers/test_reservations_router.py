from datetime import datetime, time, timedelta, timezone
from typing import Any, cast

import pytest
from courtbook.domain.errors import ErrorKind
from courtbook.domain.participants import RegisteredPlayer
from courtbook.routers import reservations as router
from courtbook.schemas import ParticipantsUpdate, ReservationCreate, ReservationMove
from fastapi import HTTPException
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession


class DummySession:
    """Minimal async session stub that supports `async with session.begin()`."""

    def __init__(self, fail_commit: bool = False) -> None:
        self.fail_commit = fail_commit

    async def __aenter__(self) -> "DummySession":
        return self

    async def __aexit__(self, exc_type: object, exc: object, tb: object) -> bool:
        if exc_type is None and self.fail_commit:
            raise OperationalError("COMMIT", None, Exception("lost connection"))
        return False

    def begin(self) -> "DummySession":
        return self


def _tomorrow(hour: int, minute: int = 0) -> datetime:
    day = datetime.now(timezone.utc).date() + timedelta(days=1)
    return datetime.combine(day, time(hour, minute), tzinfo=timezone.utc)


@pytest.fixture
def audit_calls(monkeypatch: pytest.MonkeyPatch) -> list[dict[str, Any]]:
    calls: list[dict[str, Any]] = []

    def fake_emit(**kwargs: Any) -> None:
        calls.append(kwargs)

    monkeypatch.setattr(router, "emit_audit_log", fake_emit)
    return calls


def test_every_error_kind_has_a_status() -> None:
    for kind in ErrorKind:
        assert router.http_status_for(kind) in {400, 403, 404, 409, 503}
    assert router.http_status_for(ErrorKind.SLOT_CONFLICT) == 409
    assert router.http_status_for(ErrorKind.NOT_A_PARTICIPANT) == 403


@pytest.mark.asyncio
async def test_create_returns_local_times_and_emits_audit(store, users, rules, audit_calls) -> None:
    payload = ReservationCreate(starts_at=_tomorrow(10), guest_names=["Zeca"])

    result = await router.create_reservation(
        payload=payload,
        session=cast(AsyncSession, DummySession()),
        store=store,
        users=users,
        rules=rules,
        user_id=1,
    )

    assert result.starts_at == _tomorrow(10)
    assert result.ends_at == _tomorrow(11, 30)
    assert [p.name for p in result.participants] == ["Ana", "Zeca"]
    assert result.model_dump(mode="json")["starts_at"].endswith("+00:00")
    assert len(audit_calls) == 1
    assert audit_calls[0]["action"] == "reservation.created"
    assert audit_calls[0]["participants"] == ["Ana", "Zeca"]


@pytest.mark.asyncio
async def test_create_conflict_maps_to_409(store, users, rules, audit_calls) -> None:
    store.seed(2, _tomorrow(10))
    payload = ReservationCreate(starts_at=_tomorrow(10, 45))

    with pytest.raises(HTTPException) as excinfo:
        await router.create_reservation(
            payload=payload,
            session=cast(AsyncSession, DummySession()),
            store=store,
            users=users,
            rules=rules,
            user_id=1,
        )

    assert excinfo.value.status_code == 409
    assert excinfo.value.detail["kind"] == "slot_conflict"
    assert excinfo.value.detail["message"] == "Bruno is playing from 10:00 to 11:30, try another time."
    assert audit_calls == []


@pytest.mark.asyncio
async def test_create_requires_timezone(store, users, rules) -> None:
    payload = ReservationCreate(starts_at=_tomorrow(10).replace(tzinfo=None))
    with pytest.raises(HTTPException) as excinfo:
        await router.create_reservation(
            payload=payload,
            session=cast(AsyncSession, DummySession()),
            store=store,
            users=users,
            rules=rules,
            user_id=1,
        )
    assert excinfo.value.status_code == 400
    assert store.reservations == {}


@pytest.mark.asyncio
async def test_create_commit_failure_maps_to_503(store, users, rules, audit_calls) -> None:
    payload = ReservationCreate(starts_at=_tomorrow(10))
    with pytest.raises(HTTPException) as excinfo:
        await router.create_reservation(
            payload=payload,
            session=cast(AsyncSession, DummySession(fail_commit=True)),
            store=store,
            users=users,
            rules=rules,
            user_id=1,
        )
    assert excinfo.value.status_code == 503
    assert excinfo.value.detail["retryable"] is True
    assert audit_calls == []


@pytest.mark.asyncio
async def test_move_by_non_participant_maps_to_403(store, users, rules) -> None:
    reservation = store.seed(1, _tomorrow(10))
    with pytest.raises(HTTPException) as excinfo:
        await router.move_reservation(
            payload=ReservationMove(starts_at=_tomorrow(14)),
            reservation_id=reservation.id,
            session=cast(AsyncSession, DummySession()),
            store=store,
            users=users,
            rules=rules,
            user_id=3,
        )
    assert excinfo.value.status_code == 403


@pytest.mark.asyncio
async def test_move_emits_audit(store, users, rules, audit_calls) -> None:
    reservation = store.seed(1, _tomorrow(10))
    result = await router.move_reservation(
        payload=ReservationMove(starts_at=_tomorrow(14)),
        reservation_id=reservation.id,
        session=cast(AsyncSession, DummySession()),
        store=store,
        users=users,
        rules=rules,
        user_id=1,
    )
    assert result.starts_at == _tomorrow(14)
    assert audit_calls[0]["action"] == "reservation.moved"


@pytest.mark.asyncio
async def test_edit_participants_with_unknown_user_maps_to_404(store, users, rules) -> None:
    reservation = store.seed(1, _tomorrow(10))
    with pytest.raises(HTTPException) as excinfo:
        await router.edit_participants(
            payload=ParticipantsUpdate(participant_ids=[77]),
            reservation_id=reservation.id,
            session=cast(AsyncSession, DummySession()),
            store=store,
            users=users,
            rules=rules,
            user_id=1,
        )
    assert excinfo.value.status_code == 404


@pytest.mark.asyncio
async def test_cancel_audit_failure_returns_500(store, monkeypatch: pytest.MonkeyPatch) -> None:
    reservation = store.seed(1, _tomorrow(10), lineup=[RegisteredPlayer(2)])

    def fake_emit(**kwargs: Any) -> None:
        raise RuntimeError("fail log")

    monkeypatch.setattr(router, "emit_audit_log", fake_emit)

    with pytest.raises(HTTPException) as excinfo:
        await router.cancel_reservation(
            reservation_id=reservation.id,
            session=cast(AsyncSession, DummySession()),
            store=store,
            user_id=2,
        )
    assert excinfo.value.status_code == 500


@pytest.mark.asyncio
async def test_cancel_returns_confirmation(store, audit_calls) -> None:
    reservation = store.seed(1, _tomorrow(10))
    result = await router.cancel_reservation(
        reservation_id=reservation.id,
        session=cast(AsyncSession, DummySession()),
        store=store,
        user_id=1,
    )
    assert result.ok is True
    assert result.reservation_id == reservation.id
    assert audit_calls[0]["action"] == "reservation.cancelled"


@pytest.mark.asyncio
async def test_get_missing_reservation_maps_to_404(store, users, rules) -> None:
    with pytest.raises(HTTPException) as excinfo:
        await router.get_reservation(reservation_id=5, store=store, users=users, rules=rules, user_id=1)
    assert excinfo.value.status_code == 404
    assert excinfo.value.detail["kind"] == "not_found"


@pytest.mark.asyncio
async def test_availability_reports_conflict(store, users, rules) -> None:
    store.seed(2, _tomorrow(10))
    result = await router.check_slot_available(
        starts_at=_tomorrow(11), store=store, users=users, rules=rules, user_id=1
    )
    assert result.available is False
    assert result.kind == ErrorKind.SLOT_CONFLICT


@pytest.mark.asyncio
async def test_list_day_reservations(store, users, rules) -> None:
    store.seed(2, _tomorrow(15))
    store.seed(1, _tomorrow(8))
    rows = await router.list_day_reservations(
        day=_tomorrow(0).date(), store=store, users=users, rules=rules, user_id=1
    )
    assert [row.starts_at for row in rows] == [_tomorrow(8), _tomorrow(15)]
