"""
In-memory store of outstanding OTP challenges.

Records are keyed by normalized email. The store never evaluates expiry on
read; callers decide what an old record means. A periodic sweep job (run by an
APScheduler BackgroundScheduler owned by the store) purges abandoned records.
"""

from __future__ import annotations

import logging
import os
import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass, replace
from typing import Callable, Dict, Iterator, Optional

from apscheduler.schedulers.background import BackgroundScheduler


logger = logging.getLogger(__name__)

OTP_EXPIRY_SECONDS = 5 * 60
REAPER_INTERVAL_SECONDS = 60


@dataclass
class OTPRecord:
    key: str
    code: str
    issued_at: float
    attempts: int = 0

    def age(self, now: float) -> float:
        return now - self.issued_at


class OTPStore:
    def __init__(
        self,
        *,
        clock: Callable[[], float] = time.time,
        expiry_seconds: int = OTP_EXPIRY_SECONDS,
        reaper_interval_seconds: int = REAPER_INTERVAL_SECONDS,
    ) -> None:
        self._records: Dict[str, OTPRecord] = {}
        self._lock = threading.RLock()
        self._clock = clock
        self.expiry_seconds = expiry_seconds
        self.reaper_interval_seconds = reaper_interval_seconds
        self._scheduler: Optional[BackgroundScheduler] = None

    def now(self) -> float:
        return self._clock()

    @contextmanager
    def transaction(self) -> Iterator["OTPStore"]:
        """Hold the store lock across several operations."""
        with self._lock:
            yield self

    def put(self, key: str, code: str) -> None:
        with self._lock:
            self._records[key] = OTPRecord(key=key, code=code, issued_at=self.now())
        logger.debug("OTP stored for %s", key)

    def get(self, key: str) -> Optional[OTPRecord]:
        with self._lock:
            rec = self._records.get(key)
            # Snapshot: only the store mutates records.
            return replace(rec) if rec else None

    def delete(self, key: str) -> None:
        with self._lock:
            removed = self._records.pop(key, None)
        if removed:
            logger.debug("OTP deleted for %s", key)

    def increment_attempts(self, key: str) -> Optional[int]:
        with self._lock:
            rec = self._records.get(key)
            if not rec:
                return None
            rec.attempts += 1
            attempts = rec.attempts
        logger.debug("OTP attempts for %s: %d", key, attempts)
        return attempts

    def exists(self, key: str) -> bool:
        with self._lock:
            return key in self._records

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def sweep(self) -> int:
        """Delete records older than the expiry window; returns how many."""
        now = self.now()
        with self._lock:
            stale = [k for k, rec in self._records.items() if rec.age(now) > self.expiry_seconds]
            for k in stale:
                del self._records[k]
        if stale:
            logger.info("Cleaned up %d expired OTPs", len(stale))
        return len(stale)

    @property
    def running(self) -> bool:
        return bool(self._scheduler and self._scheduler.running)

    def start(self) -> None:
        if self.running:
            return
        sched = BackgroundScheduler(timezone=os.getenv("TZ", "UTC"))
        sched.add_job(
            self.sweep,
            "interval",
            seconds=self.reaper_interval_seconds,
            id="otp_reaper",
            replace_existing=True,
        )
        sched.start()
        self._scheduler = sched
        logger.info("OTP reaper started (every %ss)", self.reaper_interval_seconds)

    def destroy(self) -> None:
        sched = self._scheduler
        self._scheduler = None
        if sched and sched.running:
            sched.shutdown(wait=False)
            logger.info("OTP reaper stopped")
