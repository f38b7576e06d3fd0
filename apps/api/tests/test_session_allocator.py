from __future__ import annotations

import logging
import re
import threading
from datetime import UTC, datetime, timedelta

import pytest

from fakes import FIXED_NOW, BrokenStore, CountingGenerator, ScriptedStore
from session_api.services.sessions.allocator import (
    AllocatorConfig,
    SessionAllocator,
    parse_expires_at,
)
from session_api.services.sessions.code import generate_code
from session_api.services.sessions.errors import (
    AllocationExhaustedError,
    StoreUnavailableError,
    ValidationError,
)
from session_api.services.sessions.types import isoformat_utc
from session_api.storage.memory import InMemorySessionStore


def _allocator(store, generator, **config) -> SessionAllocator:
    return SessionAllocator(
        store=store,
        config=AllocatorConfig(**config),
        generate=generator,
        clock=lambda: FIXED_NOW,
    )


def test_first_attempt_success_uses_one_code_and_one_store_call() -> None:
    store = ScriptedStore([True])
    generator = CountingGenerator(inner=generate_code)
    expires_at = FIXED_NOW + timedelta(seconds=3600)

    ticket = _allocator(store, generator).allocate(expires_at=expires_at, payload={"a": 1})

    assert re.fullmatch(r"[A-Z]{4}", ticket.code)
    assert generator.calls == 1
    assert len(store.calls) == 1
    key, record, ttl = store.calls[0]
    assert key == f"session:{ticket.code}"
    assert ttl == 3600
    assert record == {
        "code": ticket.code,
        "createdAt": "2026-10-19T12:00:00.000Z",
        "expiresAt": "2026-10-19T13:00:00.000Z",
        "payload": {"a": 1},
    }
    assert ticket.expires_at == expires_at
    assert ticket.created_at == FIXED_NOW


def test_collisions_are_retried_until_a_code_reserves() -> None:
    store = ScriptedStore([False, False, False, True])
    generator = CountingGenerator(codes=["AAAA", "BBBB", "CCCC", "DDDD"])

    ticket = _allocator(store, generator).allocate(expires_at=FIXED_NOW + timedelta(hours=1))

    assert generator.calls == 4
    assert len(store.calls) == 4
    assert [call[0] for call in store.calls] == [
        "session:AAAA",
        "session:BBBB",
        "session:CCCC",
        "session:DDDD",
    ]
    assert ticket.code == "DDDD"


def test_past_expiry_is_rejected_before_any_work() -> None:
    store = ScriptedStore([True])
    generator = CountingGenerator(inner=generate_code)

    with pytest.raises(ValidationError, match="expiresAt must be in the future"):
        _allocator(store, generator).allocate(expires_at=FIXED_NOW - timedelta(seconds=10))

    assert generator.calls == 0
    assert store.calls == []


def test_every_attempt_colliding_exhausts_after_max_attempts() -> None:
    store = ScriptedStore([False])
    generator = CountingGenerator(inner=generate_code)

    with pytest.raises(AllocationExhaustedError, match="could not allocate code") as exc_info:
        _allocator(store, generator).allocate(expires_at=FIXED_NOW + timedelta(hours=1))

    assert exc_info.value.attempts == 8
    assert generator.calls == 8
    assert len(store.calls) == 8


def test_max_attempts_is_configurable() -> None:
    store = ScriptedStore([False])
    generator = CountingGenerator(inner=generate_code)

    with pytest.raises(AllocationExhaustedError):
        _allocator(store, generator, max_attempts=3).allocate(
            expires_at=FIXED_NOW + timedelta(hours=1)
        )

    assert generator.calls == 3
    assert len(store.calls) == 3


@pytest.mark.parametrize(
    "expires_at",
    [
        FIXED_NOW,
        FIXED_NOW + timedelta(milliseconds=999),
        FIXED_NOW - timedelta(days=1),
    ],
)
def test_expiry_at_or_within_a_second_of_now_is_rejected(expires_at: datetime) -> None:
    store = ScriptedStore([True])
    generator = CountingGenerator(inner=generate_code)

    with pytest.raises(ValidationError):
        _allocator(store, generator).allocate(expires_at=expires_at)

    assert generator.calls == 0
    assert store.calls == []


@pytest.mark.parametrize(
    "raw",
    [
        None,
        "",
        "   ",
        "not-a-date",
        "2026-13-45T00:00:00Z",
        "0001-01-01T00:00:00+05:00",
        "9999-12-31T23:59:59-05:00",
    ],
)
def test_missing_or_malformed_expiry_is_rejected(raw) -> None:
    store = ScriptedStore([True])

    with pytest.raises(ValidationError):
        _allocator(store, CountingGenerator(inner=generate_code)).allocate(expires_at=raw)

    assert store.calls == []


def test_ttl_is_floored_to_whole_seconds() -> None:
    store = ScriptedStore([True])

    _allocator(store, CountingGenerator(inner=generate_code)).allocate(
        expires_at=FIXED_NOW + timedelta(seconds=90, milliseconds=750)
    )

    assert store.calls[0][2] == 90


def test_iso_string_expiry_round_trips() -> None:
    store = ScriptedStore([True])

    ticket = _allocator(store, CountingGenerator(inner=generate_code)).allocate(
        expires_at="2026-10-19T14:30:00.000Z"
    )

    assert isoformat_utc(ticket.expires_at) == "2026-10-19T14:30:00.000Z"
    assert store.calls[0][2] == 9000


def test_naive_and_offset_expiry_values_are_normalized_to_utc() -> None:
    assert parse_expires_at("2026-10-19T14:30:00") == datetime(2026, 10, 19, 14, 30, tzinfo=UTC)
    assert parse_expires_at("2026-10-19T16:30:00+02:00") == datetime(
        2026, 10, 19, 14, 30, tzinfo=UTC
    )


def test_store_failure_surfaces_without_trying_another_code() -> None:
    generator = CountingGenerator(inner=generate_code)

    with pytest.raises(StoreUnavailableError):
        _allocator(BrokenStore(), generator).allocate(expires_at=FIXED_NOW + timedelta(hours=1))

    assert generator.calls == 1


def test_store_failure_after_collisions_stops_the_loop() -> None:
    store = ScriptedStore([False, StoreUnavailableError("timeout"), True])
    generator = CountingGenerator(inner=generate_code)

    with pytest.raises(StoreUnavailableError, match="timeout"):
        _allocator(store, generator).allocate(expires_at=FIXED_NOW + timedelta(hours=1))

    assert generator.calls == 2
    assert len(store.calls) == 2


def test_identical_requests_get_independent_tickets() -> None:
    store = InMemorySessionStore()
    allocator = SessionAllocator(store=store, clock=lambda: FIXED_NOW)
    expires_at = FIXED_NOW + timedelta(hours=1)

    first = allocator.allocate(expires_at=expires_at, payload={"host": "x"})
    second = allocator.allocate(expires_at=expires_at, payload={"host": "x"})

    assert first.code != second.code
    assert len(store) == 2


def test_key_prefix_namespaces_the_store_key() -> None:
    store = ScriptedStore([True])

    ticket = _allocator(store, CountingGenerator(codes=["QQQQ"]), key_prefix="swipe").allocate(
        expires_at=FIXED_NOW + timedelta(minutes=5)
    )

    assert store.calls[0][0] == "swipe:QQQQ"
    assert ticket.code == "QQQQ"


def test_collisions_are_not_logged_as_failures(caplog) -> None:
    store = ScriptedStore([False, False, True])
    generator = CountingGenerator(codes=["AAAA", "BBBB", "CCCC"])

    with caplog.at_level(logging.DEBUG, logger="swipe.api"):
        _allocator(store, generator).allocate(expires_at=FIXED_NOW + timedelta(hours=1))

    assert not [r for r in caplog.records if r.levelno >= logging.WARNING]
    allocated = [r for r in caplog.records if "session.allocated" in r.getMessage()]
    assert len(allocated) == 1
    assert '"attempts":3' in allocated[0].getMessage()


def test_concurrent_allocations_never_share_a_live_code() -> None:
    # A two-letter code space (676 codes) forces real contention between threads.
    store = InMemorySessionStore()
    allocator = SessionAllocator(
        store=store,
        config=AllocatorConfig(code_length=2, max_attempts=500),
        clock=lambda: FIXED_NOW,
    )
    expires_at = FIXED_NOW + timedelta(hours=1)
    n = 64
    barrier = threading.Barrier(n)
    codes: list[str] = []
    errors: list[BaseException] = []
    lock = threading.Lock()

    def worker() -> None:
        barrier.wait()
        try:
            ticket = allocator.allocate(expires_at=expires_at)
        except BaseException as e:  # noqa: BLE001
            with lock:
                errors.append(e)
            return
        with lock:
            codes.append(ticket.code)

    threads = [threading.Thread(target=worker) for _ in range(n)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=30)

    assert errors == []
    assert len(codes) == n
    assert len(set(codes)) == n
    assert len(store) == n


@pytest.mark.parametrize(
    "kwargs",
    [
        {"code_length": -1},
        {"max_attempts": 0},
        {"alphabet": ""},
        {"alphabet": "AAB"},
        {"alphabet": "abcdefghij"},
        {"alphabet": "ABCxyz"},
    ],
)
def test_invalid_allocator_config_is_rejected(kwargs) -> None:
    with pytest.raises(ValueError):
        AllocatorConfig(**kwargs)
