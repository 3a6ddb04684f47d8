"""Tests for the remote sync loop."""

import asyncio
from datetime import timedelta

from calorie_tracker.api.schemas import NutritionDocumentModel
from calorie_tracker.domain.nutrition import DailyLog, NutritionDocument
from calorie_tracker.domain.sync import FetchResult, SyncSnapshot, SyncStatus
from calorie_tracker.errors import NutritionApiError
from calorie_tracker.services.auth import SessionProvider
from calorie_tracker.services.nutrition_store import NutritionStore
from calorie_tracker.services.sync import SESSION_EXPIRED_MESSAGE, SyncService
from tests.conftest import (
    START,
    FakeClock,
    FakeNutritionApiClient,
    ManualScheduler,
    make_meal,
)


def _service(
    store: NutritionStore,
    client: FakeNutritionApiClient,
    scheduler: ManualScheduler,
    clock: FakeClock,
) -> SyncService:
    return SyncService(store=store, client=client, scheduler=scheduler, clock=clock)


def test_ticks_during_inflight_sync_fetch_once(
    store: NutritionStore, scheduler: ManualScheduler, clock: FakeClock
) -> None:
    async def run() -> tuple[int, SyncStatus]:
        client = FakeNutritionApiClient(gate=asyncio.Event())
        service = _service(store, client, scheduler, clock)
        service.start("user-1")
        await asyncio.sleep(0)
        scheduler.advance(30)
        scheduler.advance(30)
        status_while_blocked = service.status
        client.gate.set()
        await service.wait_idle()
        await service.close()
        return len(client.fetches), status_while_blocked

    fetches, status = asyncio.run(run())

    assert fetches == 1
    assert status is SyncStatus.SYNCING


def test_interval_triggers_new_sync_after_completion(
    store: NutritionStore, scheduler: ManualScheduler, clock: FakeClock
) -> None:
    async def run() -> int:
        client = FakeNutritionApiClient()
        service = _service(store, client, scheduler, clock)
        service.start("user-1")
        await service.wait_idle()
        scheduler.advance(30)
        await service.wait_idle()
        await service.close()
        return len(client.fetches)

    assert asyncio.run(run()) == 2


def test_remote_updates_are_merged_and_dirty_state_pushed(
    store: NutritionStore, scheduler: ManualScheduler, clock: FakeClock
) -> None:
    store.add_meal(make_meal(day="2024-01-02"))
    remote_time = START + timedelta(minutes=5)
    document = NutritionDocument(
        daily_logs={"2024-01-01": DailyLog.empty("2024-01-01", remote_time)},
        updated_at=remote_time,
    )
    client = FakeNutritionApiClient(
        results=[
            FetchResult(has_updates=True, last_sync=remote_time, document=document)
        ],
        save_time=remote_time + timedelta(seconds=1),
    )

    async def run() -> SyncService:
        service = _service(store, client, scheduler, clock)
        service.start("user-1")
        await service.wait_idle()
        await service.close()
        return service

    service = asyncio.run(run())

    assert "2024-01-01" in store.daily_logs
    assert len(client.saved) == 1
    assert "2024-01-02" in client.saved[0].daily_logs
    assert not store.dirty
    assert service.error is None
    assert service.last_synced_at == START


def test_no_updates_skips_merge_and_push(
    store: NutritionStore, scheduler: ManualScheduler, clock: FakeClock
) -> None:
    client = FakeNutritionApiClient()

    async def run() -> SyncService:
        service = _service(store, client, scheduler, clock)
        snapshot = await _start_and_sync(service)
        assert snapshot.status is SyncStatus.SYNCED
        await service.close()
        return service

    asyncio.run(run())

    assert client.saved == []


async def _start_and_sync(service: SyncService) -> SyncSnapshot:
    service.start("user-1")
    return await service.sync_now()


def test_fetch_error_is_recorded_and_cleared_on_success(
    store: NutritionStore, scheduler: ManualScheduler, clock: FakeClock
) -> None:
    client = FakeNutritionApiClient(results=[NutritionApiError("boom", 500)])

    async def run() -> tuple[str | None, str | None]:
        service = _service(store, client, scheduler, clock)
        service.start("user-1")
        await service.wait_idle()
        first_error = service.error
        scheduler.advance(30)
        await service.wait_idle()
        second_error = service.error
        await service.close()
        return first_error, second_error

    first_error, second_error = asyncio.run(run())

    assert first_error == "boom"
    assert second_error is None


def test_unauthorized_marks_session_expired(
    store: NutritionStore, scheduler: ManualScheduler, clock: FakeClock
) -> None:
    client = FakeNutritionApiClient(
        results=[NutritionApiError("Unauthorized", status_code=401)]
    )

    async def run() -> str | None:
        service = _service(store, client, scheduler, clock)
        service.start("user-1")
        await service.wait_idle()
        await service.close()
        return service.error

    assert asyncio.run(run()) == SESSION_EXPIRED_MESSAGE


def test_session_changes_start_and_stop_sync(
    store: NutritionStore, scheduler: ManualScheduler, clock: FakeClock
) -> None:
    client = FakeNutritionApiClient()
    session = SessionProvider()

    async def run() -> tuple[SyncStatus, SyncStatus, int]:
        service = _service(store, client, scheduler, clock)
        service.attach(session)
        session.sign_in("user-1")
        await service.wait_idle()
        signed_in_status = service.status
        session.sign_out()
        scheduler.advance(120)
        await service.close()
        return signed_in_status, service.status, len(scheduler.pending)

    signed_in_status, signed_out_status, pending = asyncio.run(run())

    assert signed_in_status is SyncStatus.SYNCED
    assert signed_out_status is SyncStatus.IDLE
    assert pending == 0
    assert len(client.fetches) == 1


def test_online_event_syncs_immediately(
    store: NutritionStore, scheduler: ManualScheduler, clock: FakeClock
) -> None:
    client = FakeNutritionApiClient()

    async def run() -> tuple[bool, bool]:
        service = _service(store, client, scheduler, clock)
        signed_out = service.on_online()
        service.start("user-1")
        await service.wait_idle()
        started = service.on_online()
        await service.wait_idle()
        await service.close()
        return signed_out, started

    signed_out, started = asyncio.run(run())

    assert not signed_out
    assert started
    assert len(client.fetches) == 2


def test_listeners_receive_snapshots(
    store: NutritionStore, scheduler: ManualScheduler, clock: FakeClock
) -> None:
    client = FakeNutritionApiClient()
    statuses: list[SyncStatus] = []

    async def run() -> None:
        service = _service(store, client, scheduler, clock)
        service.subscribe(lambda snapshot: statuses.append(snapshot.status))
        service.start("user-1")
        await service.wait_idle()
        await service.close()

    asyncio.run(run())

    assert statuses == [SyncStatus.SYNCING, SyncStatus.SYNCED, SyncStatus.IDLE]


def test_edit_during_push_is_pushed_on_next_tick(
    store: NutritionStore, scheduler: ManualScheduler, clock: FakeClock
) -> None:
    store.add_meal(make_meal(day="2024-01-01"))
    client = FakeNutritionApiClient(save_gate=asyncio.Event())

    async def run() -> bool:
        service = _service(store, client, scheduler, clock)
        service.start("user-1")
        while not client.saved:
            await asyncio.sleep(0)
        clock.advance(5)
        store.add_meal(make_meal(day="2024-01-02"))
        client.save_gate.set()
        await service.wait_idle()
        dirty_after_first_push = store.dirty
        scheduler.advance(30)
        await service.wait_idle()
        await service.close()
        return dirty_after_first_push

    dirty_after_first_push = asyncio.run(run())

    assert dirty_after_first_push
    assert len(client.saved) == 2
    assert "2024-01-02" not in client.saved[0].daily_logs
    assert set(client.saved[1].daily_logs) == {"2024-01-01", "2024-01-02"}
    assert not store.dirty


def test_edit_during_fetch_survives_merge(
    store: NutritionStore, scheduler: ManualScheduler, clock: FakeClock
) -> None:
    remote = NutritionDocument(
        daily_logs={"2024-01-01": DailyLog.empty("2024-01-01", START)},
        updated_at=START,
    )
    client = FakeNutritionApiClient(
        results=[FetchResult(has_updates=True, last_sync=START, document=remote)],
        gate=asyncio.Event(),
    )

    async def run() -> None:
        service = _service(store, client, scheduler, clock)
        service.start("user-1")
        await asyncio.sleep(0)
        clock.advance(60)
        store.add_meal(make_meal(day="2024-01-01", meal_id="local-meal"))
        client.gate.set()
        await service.wait_idle()
        await service.close()

    asyncio.run(run())

    assert [meal.id for meal in store.daily_logs["2024-01-01"].meals] == [
        "local-meal"
    ]
    assert len(client.saved) == 1
    assert client.saved[0].daily_logs["2024-01-01"].meals[0].id == "local-meal"
    assert not store.dirty


def test_remote_timestamps_without_offset_merge_as_utc(
    store: NutritionStore, scheduler: ManualScheduler, clock: FakeClock
) -> None:
    store.add_meal(make_meal(day="2024-01-02"))
    document = NutritionDocumentModel.model_validate(
        {
            "dailyLogs": {
                "2024-01-02": {
                    "date": "2024-01-02",
                    "waterIntake": 750,
                    "lastModified": "2024-01-02T00:00:00",
                }
            },
            "goals": {"calories": 1800, "lastModified": "2024-01-02T00:00:00"},
            "updatedAt": "2024-01-02T00:00:00",
        }
    ).to_domain()
    client = FakeNutritionApiClient(
        results=[
            FetchResult(
                has_updates=True, last_sync=document.updated_at, document=document
            )
        ]
    )

    async def run() -> str | None:
        service = _service(store, client, scheduler, clock)
        service.start("user-1")
        await service.wait_idle()
        await service.close()
        return service.error

    error = asyncio.run(run())

    assert error is None
    assert document.updated_at.tzinfo is not None
    assert store.daily_logs["2024-01-02"].water_intake == 750
    assert store.goals.calories == 1800


def test_sign_in_outside_event_loop_defers_until_sync_now(
    store: NutritionStore, scheduler: ManualScheduler, clock: FakeClock
) -> None:
    client = FakeNutritionApiClient()
    session = SessionProvider()
    service = _service(store, client, scheduler, clock)
    service.attach(session)

    session.sign_in("user-1")

    assert client.fetches == []
    assert scheduler.pending == []

    async def run() -> SyncSnapshot:
        snapshot = await service.sync_now()
        await service.close()
        return snapshot

    snapshot = asyncio.run(run())

    assert snapshot.status is SyncStatus.SYNCED
    assert client.fetches == [("user-1", None)]
