"""
Snowflake ID Generator Utility

Provides distributed unique ID generation with the Twitter Snowflake layout:

- 1 bit unused (always 0)
- 41 bits for milliseconds elapsed since a configurable epoch
- 10 bits for a worker id
- 12 bits for a per-millisecond sequence number

A process-wide default generator is available through
``get_snowflake_generator()`` and the module-level convenience functions.
"""

import math
import threading
import time
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Callable, List, Optional

from pydantic import BaseModel, ConfigDict

from servicekit.core.config import DEFAULT_EPOCH_MILLIS, settings
from servicekit.core.exceptions import (
    ClockRollbackError,
    GeneratorInitError,
    IdParseError,
    InvalidBatchSizeError,
    InvalidLockTimeoutError,
    InvalidWorkerIdError,
    LockAcquisitionError,
    TimestampOverflowError,
)
from servicekit.core.logger import get_logger

logger = get_logger(__name__)

WORKER_ID_BITS = 10
SEQUENCE_BITS = 12
TIMESTAMP_BITS = 41

MAX_WORKER_ID = (1 << WORKER_ID_BITS) - 1
MAX_SEQUENCE = (1 << SEQUENCE_BITS) - 1
MAX_TIMESTAMP = (1 << TIMESTAMP_BITS) - 1
MAX_ID = (1 << 64) - 1

WORKER_ID_SHIFT = SEQUENCE_BITS
TIMESTAMP_SHIFT = WORKER_ID_BITS + SEQUENCE_BITS

Clock = Callable[[], int]


def system_clock() -> int:
    """Current wall-clock time in milliseconds."""
    return int(time.time() * 1000)


@dataclass(frozen=True)
class SnowflakeConfig:
    """Immutable generator configuration."""

    worker_id: int = 1
    epoch_millis: Optional[int] = None

    def __post_init__(self) -> None:
        if (
            isinstance(self.worker_id, bool)
            or not isinstance(self.worker_id, int)
            or not 0 <= self.worker_id <= MAX_WORKER_ID
        ):
            raise InvalidWorkerIdError(
                f"worker_id must be in range 0-{MAX_WORKER_ID}, got {self.worker_id!r}",
                details={"worker_id": self.worker_id},
            )

    @classmethod
    def default(cls) -> "SnowflakeConfig":
        return cls()

    @classmethod
    def with_epoch(cls, worker_id: int, epoch_millis: int) -> "SnowflakeConfig":
        return cls(worker_id=worker_id, epoch_millis=epoch_millis)

    def replace_worker_id(self, worker_id: int) -> "SnowflakeConfig":
        """Return a copy with another (validated) worker id."""
        return replace(self, worker_id=worker_id)

    def replace_epoch(self, epoch_millis: int) -> "SnowflakeConfig":
        """Return a copy with another epoch."""
        return replace(self, epoch_millis=epoch_millis)

    @property
    def effective_epoch(self) -> int:
        """Epoch in milliseconds, falling back to the default epoch."""
        if self.epoch_millis is None:
            return DEFAULT_EPOCH_MILLIS
        return self.epoch_millis


class SnowflakeIdInfo(BaseModel):
    """Fields unpacked from a Snowflake ID."""

    id: int
    timestamp: int
    worker_id: int
    sequence: int

    model_config = ConfigDict(frozen=True)

    def compose(self) -> int:
        """Pack the fields back into an integer ID."""
        return (
            (self.timestamp << TIMESTAMP_SHIFT)
            | (self.worker_id << WORKER_ID_SHIFT)
            | self.sequence
        )

    def generation_time(self, epoch: Optional[int] = None) -> int:
        """
        Absolute generation time in milliseconds.

        Args:
            epoch: Epoch the ID was generated with (defaults to the Twitter epoch)
        """
        return self.timestamp + (DEFAULT_EPOCH_MILLIS if epoch is None else epoch)

    def generation_time_string(self, epoch: Optional[int] = None) -> str:
        """Generation time as ``YYYY-MM-DD HH:MM:SS.mmm`` in UTC."""
        millis = self.generation_time(epoch)
        try:
            moment = datetime.fromtimestamp(millis / 1000, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return "Invalid timestamp"
        return moment.strftime("%Y-%m-%d %H:%M:%S.%f")[:-3]

    @staticmethod
    def from_string(id_str: str) -> int:
        """
        Parse the decimal wire form of an ID.

        Raises:
            IdParseError: If ``id_str`` is not a base-10 unsigned 64-bit integer
        """
        if not isinstance(id_str, str) or not id_str.isascii() or not id_str.isdigit():
            raise IdParseError(
                f"Invalid snowflake ID string: {id_str!r}", details={"value": id_str}
            )
        value = int(id_str)
        if value > MAX_ID:
            raise IdParseError(
                f"Snowflake ID out of 64-bit range: {id_str}", details={"value": id_str}
            )
        return value

    def __str__(self) -> str:
        return str(self.id)


def decode_id(snowflake_id: int) -> SnowflakeIdInfo:
    """Unpack an ID into its timestamp, worker id and sequence fields."""
    return SnowflakeIdInfo(
        id=snowflake_id,
        timestamp=(snowflake_id >> TIMESTAMP_SHIFT) & MAX_TIMESTAMP,
        worker_id=(snowflake_id >> WORKER_ID_SHIFT) & MAX_WORKER_ID,
        sequence=snowflake_id & MAX_SEQUENCE,
    )


class SnowflakeGenerator:
    """
    Thread-safe Snowflake ID generator.

    Generation state (last timestamp, sequence) is only touched while holding
    the instance lock. Separate instances share nothing.
    """

    def __init__(
        self,
        config: Optional[SnowflakeConfig] = None,
        clock: Optional[Clock] = None,
        lock_timeout: Optional[float] = None,
    ) -> None:
        """
        Initialize the generator.

        Args:
            config: Worker id and epoch (defaults to ``SnowflakeConfig()``)
            clock: Callable returning the current time in milliseconds
            lock_timeout: Seconds to wait for the lock; ``None`` waits forever

        Raises:
            InvalidLockTimeoutError: If ``lock_timeout`` is not a finite number >= 0
        """
        if lock_timeout is not None and (
            isinstance(lock_timeout, bool)
            or not isinstance(lock_timeout, (int, float))
            or not math.isfinite(lock_timeout)
            or lock_timeout < 0
        ):
            raise InvalidLockTimeoutError(
                f"lock_timeout must be a finite number of seconds >= 0, got {lock_timeout!r}",
                details={"lock_timeout": lock_timeout},
            )
        self._config = config or SnowflakeConfig()
        self._epoch = self._config.effective_epoch
        self._clock = clock or system_clock
        self._lock_timeout = -1 if lock_timeout is None else lock_timeout
        self._lock = threading.Lock()
        self._last_timestamp = 0
        self._sequence = 0
        logger.debug(
            "SnowflakeGenerator created: worker_id=%d epoch=%d",
            self._config.worker_id,
            self._epoch,
        )

    @property
    def config(self) -> SnowflakeConfig:
        return self._config

    @property
    def worker_id(self) -> int:
        return self._config.worker_id

    def _wait_next_millis(self, last_timestamp: int) -> int:
        now = self._clock()
        while now <= last_timestamp:
            now = self._clock()
        return now

    def generate(self) -> int:
        """
        Generate a unique snowflake ID.

        Returns:
            int: Unique ID for this worker

        Raises:
            ClockRollbackError: If the clock is behind the last issued timestamp
            TimestampOverflowError: If the elapsed time does not fit in 41 bits
            LockAcquisitionError: If the lock is not acquired within ``lock_timeout``
        """
        if not self._lock.acquire(timeout=self._lock_timeout):
            raise LockAcquisitionError(
                "Timed out waiting for the snowflake generator lock",
                details={"timeout": self._lock_timeout},
            )
        try:
            now = self._clock()
            if now < self._last_timestamp:
                raise ClockRollbackError(
                    f"Clock moved backwards by {self._last_timestamp - now}ms",
                    details={"last_timestamp": self._last_timestamp, "now": now},
                )

            sequence = 0
            if now == self._last_timestamp:
                sequence = self._sequence + 1
                if sequence > MAX_SEQUENCE:
                    now = self._wait_next_millis(self._last_timestamp)
                    sequence = 0

            elapsed = now - self._epoch
            if not 0 <= elapsed <= MAX_TIMESTAMP:
                raise TimestampOverflowError(
                    f"Time since epoch does not fit in {TIMESTAMP_BITS} bits",
                    details={"elapsed_millis": elapsed, "epoch": self._epoch},
                )

            self._last_timestamp = now
            self._sequence = sequence
            return (
                (elapsed << TIMESTAMP_SHIFT)
                | (self._config.worker_id << WORKER_ID_SHIFT)
                | sequence
            )
        finally:
            self._lock.release()

    def generate_batch(self, count: int) -> List[int]:
        """
        Generate ``count`` IDs.

        Either every ID is returned or the first error is raised; partial
        batches are never returned.

        Raises:
            InvalidBatchSizeError: If ``count`` is not a non-negative integer
        """
        if isinstance(count, bool) or not isinstance(count, int) or count < 0:
            raise InvalidBatchSizeError(
                f"count must be a non-negative integer, got {count!r}",
                details={"count": count},
            )
        return [self.generate() for _ in range(count)]

    def generate_str(self) -> str:
        """Generate an ID in its decimal string form."""
        return str(self.generate())

    def decode(self, snowflake_id: int) -> SnowflakeIdInfo:
        return decode_id(snowflake_id)

    generate_id = generate
    generate_ids = generate_batch
    parse_id = decode


_default_lock = threading.Lock()
_default_generator: Optional[SnowflakeGenerator] = None
_default_error: Optional[GeneratorInitError] = None


def _build_default_generator() -> SnowflakeGenerator:
    config = SnowflakeConfig(
        worker_id=settings.snowflake__worker_id,
        epoch_millis=settings.snowflake__epoch,
    )
    return SnowflakeGenerator(config)


def get_snowflake_generator() -> SnowflakeGenerator:
    """
    Get the process-wide default SnowflakeGenerator.

    The instance is built on first use from ``settings``. If that fails, the
    error is cached and raised again on every call instead of retrying.

    Returns:
        SnowflakeGenerator: The shared generator instance

    Raises:
        GeneratorInitError: If the default generator could not be created
    """
    global _default_generator, _default_error

    if _default_generator is not None:
        return _default_generator
    with _default_lock:
        if _default_generator is None and _default_error is None:
            try:
                _default_generator = _build_default_generator()
            except Exception as e:
                logger.error("Failed to initialize default SnowflakeGenerator: %s", e)
                _default_error = GeneratorInitError.wrap(
                    e, f"Default SnowflakeGenerator initialization failed: {e}"
                )
                _default_error.__cause__ = e
        if _default_error is not None:
            raise _default_error
        return _default_generator


def reset_snowflake_generator() -> None:
    """Drop the cached default generator (or its cached error). Intended for tests."""
    global _default_generator, _default_error

    with _default_lock:
        _default_generator = None
        _default_error = None


def generate_id() -> int:
    """
    Convenience function to generate an ID with the default generator.

    Returns:
        int: Unique distributed ID as integer
    """
    return get_snowflake_generator().generate()


def generate_ids(count: int) -> List[int]:
    """Convenience function to generate ``count`` IDs with the default generator."""
    return get_snowflake_generator().generate_batch(count)


def parse_id(snowflake_id: int) -> SnowflakeIdInfo:
    """Convenience function to decode an ID."""
    return get_snowflake_generator().decode(snowflake_id)


def generate_string_id() -> str:
    """
    Convenience function to generate an ID as a decimal string.

    Returns:
        str: Unique distributed ID as string
    """
    return get_snowflake_generator().generate_str()


def parse_string_id(id_str: str) -> SnowflakeIdInfo:
    """Convenience function to parse a decimal ID string and decode it."""
    return parse_id(SnowflakeIdInfo.from_string(id_str))
