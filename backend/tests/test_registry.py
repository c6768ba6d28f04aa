from __future__ import annotations

import pytest

from models import DepartureSignal, Role
from services.errors import CodeSpaceExhausted, RoomFull, RoomNotFound
from services.registry import CODE_ALPHABET, CODE_LENGTH, SessionRegistry, normalize_code

GRACE = 300.0


class FakeClock:
    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def registry(clock: FakeClock) -> SessionRegistry:
    return SessionRegistry(grace_seconds=GRACE, clock=clock)


@pytest.mark.asyncio
async def test_create_codes_are_distinct_and_typable(registry: SessionRegistry) -> None:
    codes = [await registry.create(f"conn-{i}") for i in range(200)]

    assert len(set(codes)) == len(codes)
    assert len(registry) == 200
    for code in codes:
        assert len(code) == CODE_LENGTH
        assert set(code) <= set(CODE_ALPHABET)


@pytest.mark.asyncio
async def test_create_makes_creator_the_host(registry: SessionRegistry, clock: FakeClock) -> None:
    code = await registry.create("a")
    view = registry.lookup(code)

    assert view is not None
    assert view.host_connection_id == "a"
    assert view.members == frozenset({"a"})
    assert view.has_snapshot is False
    assert view.last_active_at == clock.now
    assert registry.room_of("a") == code


@pytest.mark.asyncio
async def test_create_retries_on_collision(clock: FakeClock) -> None:
    codes = iter(["AAAAA", "AAAAA", "BBBBB"])
    registry = SessionRegistry(clock=clock, code_factory=lambda: next(codes))

    assert await registry.create("a") == "AAAAA"
    assert await registry.create("b") == "BBBBB"


@pytest.mark.asyncio
async def test_create_raises_when_no_code_is_free(clock: FakeClock) -> None:
    registry = SessionRegistry(clock=clock, code_factory=lambda: "AAAAA")
    await registry.create("a")

    with pytest.raises(CodeSpaceExhausted):
        await registry.create("b")
    assert len(registry) == 1


@pytest.mark.asyncio
async def test_join_unknown_code_is_not_found(registry: SessionRegistry) -> None:
    with pytest.raises(RoomNotFound):
        await registry.join("ZZZZZ", "a")


@pytest.mark.asyncio
async def test_join_assigns_guest_then_rejects_third(registry: SessionRegistry) -> None:
    code = await registry.create("a")

    result = await registry.join(code, "b")
    assert result.role is Role.GUEST
    assert result.resumed is False

    with pytest.raises(RoomFull):
        await registry.join(code, "c")
    assert registry.lookup(code).members == frozenset({"a", "b"})


@pytest.mark.asyncio
async def test_join_by_existing_member_is_idempotent(registry: SessionRegistry) -> None:
    code = await registry.create("a")
    await registry.join(code, "b")

    again = await registry.join(code, "b")
    host_again = await registry.join(code, "a")

    assert again.role is Role.GUEST and again.already_member
    assert host_again.role is Role.HOST and host_again.already_member
    assert registry.lookup(code).members == frozenset({"a", "b"})


@pytest.mark.asyncio
async def test_host_departure_keeps_room_and_snapshot(registry: SessionRegistry) -> None:
    code = await registry.create("a")
    await registry.join(code, "b")
    await registry.publish_snapshot(code, "a", {"tick": 7})

    departure = await registry.departure(code, "a")

    assert departure is not None
    assert departure.signal is DepartureSignal.HOST_LEFT
    assert departure.remaining == frozenset({"b"})
    assert departure.closed is False
    view = registry.lookup(code)
    assert view.host_connection_id is None
    assert view.members == frozenset({"b"})
    assert await registry.fetch_snapshot(code) == {"tick": 7}
    assert registry.room_of("a") is None


@pytest.mark.asyncio
@pytest.mark.parametrize("rejoiner", ["a2", "b"])
async def test_rejoin_after_host_left_resumes_host(registry: SessionRegistry, rejoiner: str) -> None:
    code = await registry.create("a")
    await registry.join(code, "b")
    await registry.departure(code, "a")

    result = await registry.join(code, rejoiner)

    assert result.role is Role.HOST
    assert result.resumed is True
    view = registry.lookup(code)
    assert view.host_connection_id == rejoiner
    assert "b" in view.members
    assert len(view.members) <= 2


@pytest.mark.asyncio
async def test_guest_departure_signals_peer_left(registry: SessionRegistry) -> None:
    code = await registry.create("a")
    await registry.join(code, "b")

    departure = await registry.departure(code, "b")

    assert departure.signal is DepartureSignal.PEER_LEFT
    assert departure.remaining == frozenset({"a"})
    assert registry.lookup(code).host_connection_id == "a"


@pytest.mark.asyncio
async def test_empty_room_is_deleted_without_sweep(registry: SessionRegistry) -> None:
    code = await registry.create("a")
    await registry.join(code, "b")
    await registry.departure(code, "a")

    departure = await registry.departure(code, "b")

    assert departure.closed is True
    assert departure.remaining == frozenset()
    assert code not in registry
    with pytest.raises(RoomNotFound):
        await registry.join(code, "c")


@pytest.mark.asyncio
async def test_departure_of_non_member_is_none(registry: SessionRegistry) -> None:
    code = await registry.create("a")

    assert await registry.departure(code, "stranger") is None
    assert await registry.departure("ZZZZZ", "a") is None
    assert registry.lookup(code).members == frozenset({"a"})


@pytest.mark.asyncio
async def test_snapshot_cache_semantics(registry: SessionRegistry) -> None:
    code = await registry.create("a")
    await registry.join(code, "b")
    assert await registry.fetch_snapshot(code) is None

    await registry.publish_snapshot(code, "a", {"tick": 1})
    assert await registry.fetch_snapshot(code) == {"tick": 1}
    assert await registry.fetch_snapshot(code) == {"tick": 1}

    # Pure cache write: role is not enforced here.
    await registry.publish_snapshot(code, "b", {"tick": 2})
    assert await registry.fetch_snapshot(code) == {"tick": 2}


@pytest.mark.asyncio
async def test_missing_room_operations_are_noops(registry: SessionRegistry) -> None:
    await registry.record_activity("ZZZZZ")
    await registry.publish_snapshot("ZZZZZ", "a", {"tick": 1})

    assert await registry.fetch_snapshot("ZZZZZ") is None
    assert len(registry) == 0


@pytest.mark.asyncio
async def test_record_activity_touches_timestamp(registry: SessionRegistry, clock: FakeClock) -> None:
    code = await registry.create("a")
    clock.now += 42

    await registry.record_activity(code)

    assert registry.lookup(code).last_active_at == clock.now


@pytest.mark.asyncio
async def test_sweep_evicts_long_vacant_host(registry: SessionRegistry, clock: FakeClock) -> None:
    code = await registry.create("a")
    await registry.join(code, "b")
    await registry.departure(code, "a")

    assert await registry.sweep(clock.now + GRACE) == []
    evicted = await registry.sweep(clock.now + GRACE + 1)

    assert [v.code for v in evicted] == [code]
    assert evicted[0].members == frozenset({"b"})
    assert code not in registry
    assert registry.room_of("b") is None


@pytest.mark.asyncio
async def test_sweep_spares_rejoined_and_hosted_rooms(registry: SessionRegistry, clock: FakeClock) -> None:
    hosted = await registry.create("h")
    code = await registry.create("a")
    await registry.join(code, "b")
    await registry.departure(code, "a")
    await registry.join(code, "a2")

    evicted = await registry.sweep(clock.now + GRACE * 10)

    assert evicted == []
    assert hosted in registry
    assert registry.lookup(code).host_connection_id == "a2"


@pytest.mark.asyncio
async def test_grace_window_restarts_on_activity(registry: SessionRegistry, clock: FakeClock) -> None:
    code = await registry.create("a")
    await registry.join(code, "b")
    await registry.departure(code, "a")
    clock.now += GRACE - 1
    await registry.record_activity(code)

    assert await registry.sweep(clock.now + GRACE - 1) == []
    assert code in registry


def test_normalize_code() -> None:
    assert normalize_code("  abcde ") == "ABCDE"
