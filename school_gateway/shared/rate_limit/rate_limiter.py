"""
Fixed-window rate limiting for public form submissions.

Each client identity gets ``quota`` submissions per ``window_seconds``. The
window opens on the first request and every request inside it counts against
the quota; once ``now`` passes the window's reset time the next request opens
a fresh window.

Two backends share the same interface:

* ``InMemoryRateLimiter`` keeps counters in the process. Limits are per
  instance and reset when the process restarts.
* ``DatabaseRateLimiter`` keeps counters in the relational store so every
  instance sees the same limit.
"""

import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from threading import Lock
from typing import Callable, Dict, NamedTuple, Optional

from fastapi import Request
from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from school_gateway.shared.rate_limit.database import RateLimitRow

UNKNOWN_CLIENT = "unknown"


class RateLimitDecision(NamedTuple):
    allowed: bool
    remaining: int


@dataclass
class RateLimitRecord:
    count: int
    reset_time: float


def get_client_ip(request: Request) -> str:
    """Get client identity for rate limiting from proxy headers."""
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        # Take the first IP in the chain
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    cf_ip = request.headers.get("CF-Connecting-IP")
    if cf_ip and cf_ip.strip():
        return cf_ip.strip()
    return UNKNOWN_CLIENT


class RateLimiter(ABC):
    """Decides whether a client identity may submit again."""

    def __init__(self, quota: int, window_seconds: float = 3600, clock: Callable[[], float] = time.time):
        if quota < 1:
            raise ValueError("quota must be at least 1")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be positive")
        self.quota = quota
        self.window_seconds = window_seconds
        self._clock = clock

    @property
    def retry_after_seconds(self) -> int:
        return int(self.window_seconds)

    @abstractmethod
    def check(self, identity: str) -> RateLimitDecision:
        """Count one request for ``identity``. Never raises."""
        raise NotImplementedError

    @abstractmethod
    def evict_expired(self) -> int:
        """Drop records whose window has elapsed. Returns how many were dropped."""
        raise NotImplementedError


class InMemoryRateLimiter(RateLimiter):
    """Process-local limiter. Compare-and-increment happens under one lock."""

    def __init__(
        self,
        quota: int,
        window_seconds: float = 3600,
        clock: Callable[[], float] = time.time,
        sweep_interval_seconds: Optional[float] = 600,
    ):
        super().__init__(quota, window_seconds, clock)
        self._records: Dict[str, RateLimitRecord] = {}
        self._lock = Lock()
        self._sweep_interval = sweep_interval_seconds
        self._next_sweep = clock() + sweep_interval_seconds if sweep_interval_seconds else None

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def check(self, identity: str) -> RateLimitDecision:
        now = self._clock()
        with self._lock:
            if self._next_sweep is not None and now >= self._next_sweep:
                self._evict_expired_locked(now)
                self._next_sweep = now + self._sweep_interval

            record = self._records.get(identity)
            if record is None or now > record.reset_time:
                self._records[identity] = RateLimitRecord(count=1, reset_time=now + self.window_seconds)
                return RateLimitDecision(allowed=True, remaining=self.quota - 1)

            if record.count >= self.quota:
                return RateLimitDecision(allowed=False, remaining=0)

            record.count += 1
            return RateLimitDecision(allowed=True, remaining=self.quota - record.count)

    def evict_expired(self) -> int:
        now = self._clock()
        with self._lock:
            return self._evict_expired_locked(now)

    def _evict_expired_locked(self, now: float) -> int:
        expired = [key for key, record in self._records.items() if now > record.reset_time]
        for key in expired:
            del self._records[key]
        if expired:
            logging.debug(f"Evicted {len(expired)} expired rate limit records")
        return len(expired)


class DatabaseRateLimiter(RateLimiter):
    """
    Limiter backed by the ``rate_limit_records`` table.

    Counting uses conditional UPDATE statements so two instances racing on the
    same identity cannot both pass the quota. If the store is unavailable the
    request is allowed and the failure is logged.
    """

    MAX_ATTEMPTS = 3

    def __init__(
        self,
        session_factory,
        scope: str,
        quota: int,
        window_seconds: float = 3600,
        clock: Callable[[], float] = time.time,
        sweep_interval_seconds: Optional[float] = 600,
    ):
        super().__init__(quota, window_seconds, clock)
        self._session_factory = session_factory
        self.scope = scope
        self._sweep_interval = sweep_interval_seconds
        self._next_sweep = clock() + sweep_interval_seconds if sweep_interval_seconds else None

    def _key(self, identity: str) -> str:
        return f"{self.scope}:{identity}"

    def check(self, identity: str) -> RateLimitDecision:
        now = self._clock()
        if self._next_sweep is not None and now >= self._next_sweep:
            self._next_sweep = now + self._sweep_interval
            self.evict_expired()

        key = self._key(identity)
        try:
            for _ in range(self.MAX_ATTEMPTS):
                decision = self._try_check(key, now)
                if decision is not None:
                    return decision
        except SQLAlchemyError as e:
            logging.error(f"Failed to check rate limit for {key}: {str(e)}")
            return RateLimitDecision(allowed=True, remaining=self.quota - 1)

        logging.warning(f"Rate limit record for {key} kept changing, allowing request")
        return RateLimitDecision(allowed=True, remaining=self.quota - 1)

    def _try_check(self, key: str, now: float) -> Optional[RateLimitDecision]:
        session = self._session_factory()
        try:
            # Increment inside a live window that still has room
            count = session.execute(
                update(RateLimitRow)
                .where(
                    RateLimitRow.id == key,
                    RateLimitRow.reset_time >= now,
                    RateLimitRow.count < self.quota,
                )
                .values(count=RateLimitRow.count + 1)
                .returning(RateLimitRow.count)
                .execution_options(synchronize_session=False)
            ).scalar_one_or_none()
            if count is not None:
                session.commit()
                return RateLimitDecision(allowed=True, remaining=max(self.quota - count, 0))

            row = session.execute(select(RateLimitRow).where(RateLimitRow.id == key)).scalar_one_or_none()
            if row is not None and now <= row.reset_time:
                session.rollback()
                return RateLimitDecision(allowed=False, remaining=0)

            if row is None:
                session.add(RateLimitRow(id=key, scope=self.scope, count=1, reset_time=now + self.window_seconds))
                try:
                    session.commit()
                except IntegrityError:
                    # Another instance opened the window first
                    session.rollback()
                    return None
                return RateLimitDecision(allowed=True, remaining=self.quota - 1)

            # Window elapsed: reopen it unless someone else already did
            reopened = session.execute(
                update(RateLimitRow)
                .where(RateLimitRow.id == key, RateLimitRow.reset_time < now)
                .values(count=1, reset_time=now + self.window_seconds)
                .execution_options(synchronize_session=False)
            ).rowcount
            session.commit()
            if reopened == 1:
                return RateLimitDecision(allowed=True, remaining=self.quota - 1)
            return None
        except SQLAlchemyError:
            session.rollback()
            raise
        finally:
            session.close()

    def evict_expired(self) -> int:
        now = self._clock()
        session = self._session_factory()
        try:
            removed = session.execute(
                delete(RateLimitRow).where(
                    RateLimitRow.scope == self.scope,
                    RateLimitRow.reset_time < now,
                ).execution_options(synchronize_session=False)
            ).rowcount
            session.commit()
            return removed or 0
        except SQLAlchemyError as e:
            logging.warning(f"Failed to cleanup old rate limit entries: {str(e)}")
            session.rollback()
            return 0
        finally:
            session.close()
