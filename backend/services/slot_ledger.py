"""Capacity counter for timeslots.

``slots_available`` is decremented by :meth:`SlotLedger.reserve` and incremented
by :meth:`SlotLedger.release`, and by nothing else. Both use optimistic
concurrency: read the counter, check the business rules against what was read,
then write the new value only if the stored value still equals the one read.
A write that affects no rows means another worker changed the counter in
between; the whole read-check-write cycle is retried with a short randomized
backoff until the attempt budget runs out.
"""

import logging
import time as time_module
from datetime import datetime
from typing import Callable

from sqlalchemy.orm import Session
from tenacity import (
    Retrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_random,
)

from backend.core import config
from backend.repositories.timeslot_repository import TimeslotRepository, TimeslotSnapshot

logger = logging.getLogger(__name__)


class SlotLedgerError(Exception):
    """Base class for reserve/release failures."""

    def __init__(self, message: str, timeslot_id: int):
        self.message = message
        self.timeslot_id = timeslot_id
        super().__init__(message)


class TimeslotNotFoundError(SlotLedgerError):
    def __init__(self, timeslot_id: int):
        super().__init__(f"Timeslot {timeslot_id} not found", timeslot_id)


class SlotUnavailableError(SlotLedgerError):
    def __init__(self, timeslot_id: int):
        super().__init__(f"No slots available for timeslot {timeslot_id}", timeslot_id)


class PastTimeslotError(SlotLedgerError):
    def __init__(self, timeslot_id: int):
        super().__init__(f"Timeslot {timeslot_id} is in the past", timeslot_id)


class AlreadyAtCapacityError(SlotLedgerError):
    def __init__(self, timeslot_id: int):
        super().__init__(f"Timeslot {timeslot_id} is already at full capacity", timeslot_id)


class ConcurrencyExhaustedError(SlotLedgerError):
    def __init__(self, timeslot_id: int, attempts: int):
        self.attempts = attempts
        super().__init__(
            f"Timeslot {timeslot_id} update lost the race {attempts} times",
            timeslot_id,
        )


class _LostRace(Exception):
    """The conditional update matched no rows."""


class SlotLedger:
    def __init__(
        self,
        db: Session,
        *,
        max_attempts: int | None = None,
        retry_min_ms: int | None = None,
        retry_max_ms: int | None = None,
        clock: Callable[[], datetime] = datetime.now,
        sleep: Callable[[float], None] = time_module.sleep,
    ):
        self.timeslots = TimeslotRepository(db)
        self.max_attempts = max_attempts if max_attempts is not None else config.SLOT_MAX_ATTEMPTS
        self.retry_min_ms = retry_min_ms if retry_min_ms is not None else config.SLOT_RETRY_MIN_MS
        self.retry_max_ms = retry_max_ms if retry_max_ms is not None else config.SLOT_RETRY_MAX_MS
        self.clock = clock
        self.sleep = sleep

    def reserve(self, timeslot_id: int) -> int:
        """Claim one unit of capacity. Returns the new ``slots_available``."""
        new_value = self._with_retry(timeslot_id, self._attempt_reserve)
        logger.info('Reserved slot on timeslot %s, %s remaining', timeslot_id, new_value)
        return new_value

    def release(self, timeslot_id: int) -> int:
        """Return one unit of capacity. Returns the new ``slots_available``."""
        new_value = self._with_retry(timeslot_id, self._attempt_release)
        logger.info('Released slot on timeslot %s, %s available', timeslot_id, new_value)
        return new_value

    def get_timeslot_stats(self, timeslot_id: int) -> dict:
        snapshot = self._read(timeslot_id)
        booked = snapshot.capacity - snapshot.slots_available
        utilization = (booked / snapshot.capacity) * 100 if snapshot.capacity > 0 else 0
        return {
            'total_capacity': snapshot.capacity,
            'booked_slots': booked,
            'available_slots': snapshot.slots_available,
            'utilization_rate': round(utilization, 2),
        }

    def _with_retry(self, timeslot_id: int, attempt_fn: Callable[[int], int]) -> int:
        retrying = Retrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_random(self.retry_min_ms / 1000, self.retry_max_ms / 1000),
            retry=retry_if_exception_type(_LostRace),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            sleep=self.sleep,
            reraise=True,
        )
        try:
            for attempt in retrying:
                with attempt:
                    return attempt_fn(timeslot_id)
        except _LostRace as exc:
            raise ConcurrencyExhaustedError(timeslot_id, self.max_attempts) from exc

    def _read(self, timeslot_id: int) -> TimeslotSnapshot:
        snapshot = self.timeslots.read(timeslot_id)
        if snapshot is None:
            raise TimeslotNotFoundError(timeslot_id)
        return snapshot

    def _attempt_reserve(self, timeslot_id: int) -> int:
        snapshot = self._read(timeslot_id)

        if snapshot.slots_available <= 0:
            raise SlotUnavailableError(timeslot_id)
        if snapshot.starts_at <= self.clock():
            raise PastTimeslotError(timeslot_id)

        return self._compare_and_swap(snapshot, snapshot.slots_available - 1)

    def _attempt_release(self, timeslot_id: int) -> int:
        snapshot = self._read(timeslot_id)

        if snapshot.slots_available >= snapshot.capacity:
            raise AlreadyAtCapacityError(timeslot_id)

        return self._compare_and_swap(snapshot, snapshot.slots_available + 1)

    def _compare_and_swap(self, snapshot: TimeslotSnapshot, new_value: int) -> int:
        rows = self.timeslots.conditional_update_slots_available(
            snapshot.id,
            expected=snapshot.slots_available,
            new_value=new_value,
        )
        if rows == 0:
            raise _LostRace(f"slots_available on timeslot {snapshot.id} changed from {snapshot.slots_available}")
        return new_value
