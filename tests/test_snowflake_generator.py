import threading
from concurrent.futures import ThreadPoolExecutor

import pytest

from servicekit.core.config import DEFAULT_EPOCH_MILLIS, settings
from servicekit.core.exceptions import (
    ClockRollbackError,
    GeneratorInitError,
    IdParseError,
    InvalidBatchSizeError,
    InvalidLockTimeoutError,
    InvalidWorkerIdError,
    LockAcquisitionError,
    SnowflakeException,
    TimestampOverflowError,
)
from servicekit.utils import snowflake_generator
from servicekit.utils.snowflake_generator import (
    MAX_SEQUENCE,
    SnowflakeConfig,
    SnowflakeGenerator,
    SnowflakeIdInfo,
    decode_id,
    generate_id,
    generate_ids,
    generate_string_id,
    get_snowflake_generator,
    parse_id,
    parse_string_id,
    reset_snowflake_generator,
)

EPOCH = 1609459200000


class FakeClock:
    """Millisecond clock controlled by the test.

    ``advance_after`` makes the clock tick forward by one millisecond once it
    has been read that many times, to simulate time passing during a spin.
    """

    def __init__(self, now: int):
        self.now = now
        self.reads = 0
        self.advance_after = None

    def __call__(self) -> int:
        self.reads += 1
        if self.advance_after is not None and self.reads > self.advance_after:
            self.now += 1
            self.advance_after = None
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(EPOCH + 123)


@pytest.fixture
def generator(clock: FakeClock) -> SnowflakeGenerator:
    return SnowflakeGenerator(SnowflakeConfig.with_epoch(5, EPOCH), clock=clock)


@pytest.fixture
def fresh_default_generator():
    reset_snowflake_generator()
    yield
    reset_snowflake_generator()


def test_config_accepts_every_valid_worker_id() -> None:
    for worker_id in range(0, 1024):
        assert SnowflakeConfig(worker_id=worker_id).worker_id == worker_id


@pytest.mark.parametrize("worker_id", [-1, 1024, 5000, True, "5", 1.0, None])
def test_config_rejects_invalid_worker_id(worker_id) -> None:
    with pytest.raises(InvalidWorkerIdError) as exc_info:
        SnowflakeConfig(worker_id=worker_id)

    assert isinstance(exc_info.value, ValueError)
    assert isinstance(exc_info.value, SnowflakeException)
    assert exc_info.value.details["worker_id"] == worker_id


def test_config_builders_validate_and_stay_immutable() -> None:
    config = SnowflakeConfig.default()
    assert config.worker_id == 1
    assert config.epoch_millis is None
    assert config.effective_epoch == DEFAULT_EPOCH_MILLIS

    custom = config.replace_worker_id(7).replace_epoch(EPOCH)
    assert (custom.worker_id, custom.epoch_millis) == (7, EPOCH)
    assert config.worker_id == 1

    with pytest.raises(InvalidWorkerIdError):
        config.replace_worker_id(1024)
    with pytest.raises(AttributeError):
        config.worker_id = 3  # type: ignore[misc]


def test_example_ids_in_same_millisecond(generator: SnowflakeGenerator) -> None:
    first = decode_id(generator.generate())
    second = decode_id(generator.generate())

    assert (first.timestamp, first.worker_id, first.sequence) == (123, 5, 0)
    assert (second.timestamp, second.worker_id, second.sequence) == (123, 5, 1)
    assert first.generation_time(EPOCH) == EPOCH + 123


def test_ids_strictly_increase_under_non_decreasing_clock(clock, generator) -> None:
    ids = []
    for i in range(300):
        if i % 7 == 0:
            clock.now += 1
        ids.append(generator.generate())

    assert all(a < b for a, b in zip(ids, ids[1:]))
    assert {decode_id(i).worker_id for i in ids} == {5}


def test_compose_of_decoded_id_is_identity(clock, generator) -> None:
    for _ in range(50):
        clock.now += 3
        snowflake_id = generator.generate()
        assert decode_id(snowflake_id).compose() == snowflake_id

    raw = (1 << 62) | (1023 << 12) | 4095
    assert decode_id(raw).compose() == raw


def test_sequence_overflow_waits_for_next_millisecond(clock, generator) -> None:
    ids = generator.generate_batch(MAX_SEQUENCE + 1)
    assert decode_id(ids[-1]).sequence == MAX_SEQUENCE
    assert {decode_id(i).timestamp for i in ids} == {123}

    clock.advance_after = clock.reads + 3
    wrapped = decode_id(generator.generate())

    assert wrapped.sequence == 0
    assert wrapped.timestamp == 124
    assert wrapped.id > ids[-1]
    assert clock.reads > MAX_SEQUENCE + 2


def test_clock_rollback_fails_without_touching_state(clock, generator) -> None:
    generator.generate()
    generator.generate()

    clock.now -= 5
    with pytest.raises(ClockRollbackError) as exc_info:
        generator.generate()

    assert isinstance(exc_info.value, RuntimeError)
    assert exc_info.value.details["last_timestamp"] == EPOCH + 123
    assert generator._last_timestamp == EPOCH + 123
    assert generator._sequence == 1

    clock.now += 5
    assert decode_id(generator.generate()).sequence == 2


def test_future_epoch_fails_at_generation_time(clock) -> None:
    config = SnowflakeConfig.with_epoch(1, clock.now + 1000)
    generator = SnowflakeGenerator(config, clock=clock)

    with pytest.raises(TimestampOverflowError) as exc_info:
        generator.generate()

    assert exc_info.value.details["elapsed_millis"] == -1000
    assert generator._last_timestamp == 0


def test_epoch_too_far_in_past_overflows(clock) -> None:
    config = SnowflakeConfig.with_epoch(1, clock.now - (1 << 41))
    generator = SnowflakeGenerator(config, clock=clock)

    with pytest.raises(TimestampOverflowError):
        generator.generate()

    edge = SnowflakeGenerator(
        SnowflakeConfig.with_epoch(1, clock.now - (1 << 41) + 1), clock=clock
    )
    assert decode_id(edge.generate()).timestamp == (1 << 41) - 1


def test_generate_batch_discards_partial_results(clock, generator) -> None:
    real_generate = generator.generate
    calls = {"count": 0}

    def rolling_back_generate() -> int:
        calls["count"] += 1
        if calls["count"] == 3:
            clock.now -= 10
        return real_generate()

    generator.generate = rolling_back_generate  # type: ignore[method-assign]

    with pytest.raises(ClockRollbackError):
        generator.generate_batch(5)
    assert calls["count"] == 3


def test_generate_batch_sizes(generator) -> None:
    assert generator.generate_batch(0) == []
    assert len(set(generator.generate_ids(10))) == 10

    for bad in (-1, 2.5, "3", True):
        with pytest.raises(InvalidBatchSizeError):
            generator.generate_batch(bad)


def test_lock_timeout_raises_lock_acquisition_error(clock) -> None:
    generator = SnowflakeGenerator(
        SnowflakeConfig.with_epoch(1, EPOCH), clock=clock, lock_timeout=0.01
    )
    generator._lock.acquire()
    try:
        with pytest.raises(LockAcquisitionError):
            generator.generate()
    finally:
        generator._lock.release()

    assert decode_id(generator.generate()).sequence == 0


@pytest.mark.parametrize("lock_timeout", [-5, -1, -0.5, float("inf"), float("nan"), "1", True])
def test_invalid_lock_timeout_is_rejected_at_construction(clock, lock_timeout) -> None:
    with pytest.raises(InvalidLockTimeoutError) as exc_info:
        SnowflakeGenerator(SnowflakeConfig(worker_id=1), clock=clock, lock_timeout=lock_timeout)

    assert isinstance(exc_info.value, ValueError)
    assert isinstance(exc_info.value, SnowflakeException)


def test_zero_lock_timeout_does_not_wait(clock) -> None:
    generator = SnowflakeGenerator(
        SnowflakeConfig.with_epoch(1, EPOCH), clock=clock, lock_timeout=0
    )

    assert decode_id(generator.generate()).timestamp == 123

    generator._lock.acquire()
    try:
        with pytest.raises(LockAcquisitionError):
            generator.generate()
    finally:
        generator._lock.release()


def test_concurrent_generation_yields_unique_ids() -> None:
    generator = SnowflakeGenerator(SnowflakeConfig(worker_id=9))
    threads, per_thread = 8, 500
    start = threading.Barrier(threads)

    def worker() -> list:
        start.wait()
        return [generator.generate() for _ in range(per_thread)]

    with ThreadPoolExecutor(max_workers=threads) as executor:
        futures = [executor.submit(worker) for _ in range(threads)]
        all_ids = [i for future in futures for i in future.result()]

    assert len(all_ids) == threads * per_thread
    assert len(set(all_ids)) == threads * per_thread
    assert {decode_id(i).worker_id for i in all_ids} == {9}


def test_independent_generators_do_not_share_state(clock) -> None:
    a = SnowflakeGenerator(SnowflakeConfig.with_epoch(1, EPOCH), clock=clock)
    b = SnowflakeGenerator(SnowflakeConfig.with_epoch(2, EPOCH), clock=clock)

    a.generate()
    a.generate()

    assert decode_id(b.generate()).sequence == 0
    assert b.worker_id == 2
    assert b.config.epoch_millis == EPOCH


def test_decode_never_fails_and_ignores_sign_guard() -> None:
    info = decode_id((1 << 64) - 1)

    assert info.timestamp == (1 << 41) - 1
    assert info.worker_id == 1023
    assert info.sequence == 4095


def test_id_string_parsing() -> None:
    assert SnowflakeIdInfo.from_string("123456789") == 123456789
    assert SnowflakeIdInfo.from_string(str((1 << 64) - 1)) == (1 << 64) - 1

    for bad in ("", "-1", "+1", " 12", "12 ", "1e3", "abc", "١٢", str(1 << 64)):
        with pytest.raises(IdParseError):
            SnowflakeIdInfo.from_string(bad)


def test_generation_time_string() -> None:
    info = SnowflakeIdInfo(id=0, timestamp=123, worker_id=5, sequence=0)

    assert info.generation_time_string(EPOCH) == "2021-01-01 00:00:00.123"
    assert info.generation_time_string(10**20) == "Invalid timestamp"
    assert str(info) == "0"


def test_default_generator_convenience_functions(fresh_default_generator) -> None:
    snowflake_id = generate_id()
    info = parse_id(snowflake_id)
    assert info.id == snowflake_id
    assert info.worker_id == settings.snowflake__worker_id
    assert info.timestamp > 0

    ids = generate_ids(10)
    assert len(set(ids)) == 10
    assert min(ids) > snowflake_id

    id_str = generate_string_id()
    parsed = parse_string_id(id_str)
    assert str(parsed) == id_str
    assert "-" in parsed.generation_time_string()

    assert get_snowflake_generator() is get_snowflake_generator()


def test_default_generator_caches_init_failure(
    monkeypatch: pytest.MonkeyPatch, fresh_default_generator
) -> None:
    monkeypatch.setattr(settings, "snowflake__worker_id", 4096)

    with pytest.raises(GeneratorInitError) as first:
        get_snowflake_generator()
    assert isinstance(first.value.__cause__, InvalidWorkerIdError)

    monkeypatch.setattr(settings, "snowflake__worker_id", 3)
    with pytest.raises(GeneratorInitError) as second:
        generate_id()
    assert second.value is first.value

    reset_snowflake_generator()
    assert get_snowflake_generator().worker_id == 3


def test_default_generator_reads_epoch_from_settings(
    monkeypatch: pytest.MonkeyPatch, fresh_default_generator
) -> None:
    monkeypatch.setattr(settings, "snowflake__epoch", EPOCH)
    monkeypatch.setattr(snowflake_generator, "system_clock", lambda: EPOCH + 42)

    generator = get_snowflake_generator()

    assert generator.config.effective_epoch == EPOCH
    assert generator.decode(generator.generate()).timestamp == 42
