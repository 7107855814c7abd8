"""
Provider Health Tracker (circuit breaker) for upstream data providers.

Tracks rolling failure/success counts per (provider, region) and derives a
three-state circuit:

    CLOSED --[failures >= threshold and failure rate > 50%]--> OPEN
    OPEN --[timeout elapsed, computed on read]--> HALF-OPEN
    HALF-OPEN --[success]--> CLOSED
    HALF-OPEN --[failure]--> OPEN

Usage:
    tracker = HealthTracker()
    if not tracker.is_circuit_open("plaid", "US"):
        try:
            result = sync_accounts()
            tracker.record_success("plaid", "US")
        except ProviderError as e:
            tracker.record_failure("plaid", "US", error=str(e))
"""

import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Callable, Dict, List, Optional, Tuple

from ..config.engine_config import get_health_config

logger = logging.getLogger(__name__)

HealthKey = Tuple[str, str]


class CircuitState(Enum):
    """Circuit breaker states."""
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half-open"


@dataclass
class HealthRecord:
    """Stored health fields for one provider+region. State is derived, not stored."""
    provider: str
    region: str
    window_start: datetime
    circuit_open: bool = False
    failure_count: int = 0
    success_count: int = 0
    last_transition_at: Optional[datetime] = None
    last_failure_at: Optional[datetime] = None
    last_success_at: Optional[datetime] = None
    last_error: Optional[str] = None


@dataclass
class CircuitSnapshot:
    """Point-in-time view of a circuit for monitoring dashboards."""
    provider: str
    region: str
    state: CircuitState
    failures: int = 0
    successes: int = 0
    last_failure_at: Optional[datetime] = None
    last_success_at: Optional[datetime] = None
    last_error: Optional[str] = None
    next_attempt_at: Optional[datetime] = None


class HealthTracker:
    """Per-provider circuit breaker with lazily computed timeouts."""

    def __init__(
        self,
        failure_threshold: Optional[int] = None,
        success_threshold: Optional[int] = None,
        timeout_seconds: Optional[float] = None,
        monitoring_window_seconds: Optional[float] = None,
        clock: Optional[Callable[[], datetime]] = None,
        config: Optional[Dict] = None,
    ):
        """
        Initialize the tracker.

        Args:
            failure_threshold: Failures in the window before the circuit may open
            success_threshold: Recovery threshold (validated, must be positive)
            timeout_seconds: Cooldown before an open circuit permits a probe
            monitoring_window_seconds: Length of the rolling counting window
            clock: Callable returning the current time (injectable for tests)
            config: Overrides for HEALTH_CONFIG

        Raises:
            InvalidConfigurationError: If a threshold is out of range
        """
        overrides = dict(config or {})
        explicit = {
            "failure_threshold": failure_threshold,
            "success_threshold": success_threshold,
            "timeout_seconds": timeout_seconds,
            "monitoring_window_seconds": monitoring_window_seconds,
        }
        overrides.update({k: v for k, v in explicit.items() if v is not None})
        self.config = get_health_config(overrides)

        self.failure_threshold = self.config["failure_threshold"]
        self.success_threshold = self.config["success_threshold"]
        self.failure_rate_threshold = self.config["failure_rate_threshold"]
        self.default_region = self.config["default_region"]
        self.timeout = timedelta(seconds=self.config["timeout_seconds"])
        self.monitoring_window = timedelta(seconds=self.config["monitoring_window_seconds"])
        self.clock = clock or datetime.now

        self._records: Dict[HealthKey, HealthRecord] = {}
        self._locks: Dict[HealthKey, threading.Lock] = {}
        self._registry_lock = threading.Lock()

    # ----------------------------
    # Public operations
    # ----------------------------
    def is_circuit_open(self, provider: str, region: Optional[str] = None) -> bool:
        """
        Check whether calls to a provider should fail fast.

        Returns False once the open timeout has elapsed so the caller may make
        a single probe call; the next recorded outcome decides the transition.
        """
        key = self._key(provider, region)
        lock = self._existing_lock(key)
        if lock is None:
            return False
        with lock:
            record = self._records.get(key)
            if record is None:
                return False
            state = self._derive_state(record, self.clock())

        if state == CircuitState.HALF_OPEN:
            logger.debug("Circuit for %s in %s is half-open, probe permitted", key[0], key[1])
        return state == CircuitState.OPEN

    def record_success(self, provider: str, region: Optional[str] = None) -> None:
        """Record a successful provider call, closing a half-open circuit."""
        key = self._key(provider, region)
        with self._lock_for(key):
            now = self.clock()
            record = self._get_or_create(key, now)
            self._roll_window(record, now)
            state = self._derive_state(record, now)

            record.success_count += 1
            record.last_success_at = now

            if state == CircuitState.HALF_OPEN:
                record.circuit_open = False
                record.failure_count = 0
                record.success_count = 0
                record.window_start = now
                record.last_transition_at = now
                logger.info("Circuit breaker CLOSED for %s in %s after successful probe", key[0], key[1])

        logger.debug("Recorded success for %s in %s", key[0], key[1])

    def record_failure(
        self,
        provider: str,
        region: Optional[str] = None,
        error: Optional[str] = None,
    ) -> None:
        """Record a failed provider call; may open or re-open the circuit."""
        key = self._key(provider, region)
        with self._lock_for(key):
            now = self.clock()
            record = self._get_or_create(key, now)
            self._roll_window(record, now)
            state = self._derive_state(record, now)

            record.failure_count += 1
            record.last_failure_at = now
            if error is not None:
                record.last_error = error
            failures = record.failure_count

            if state == CircuitState.HALF_OPEN:
                record.circuit_open = True
                record.last_transition_at = now
                logger.error(
                    "Circuit breaker RE-OPENED for %s in %s after failed probe. Will retry after %ss.",
                    key[0], key[1], self.timeout.total_seconds(),
                )
            elif state == CircuitState.CLOSED and self._should_open(record):
                record.circuit_open = True
                record.last_transition_at = now
                logger.error(
                    "Circuit breaker OPENED for %s in %s (%d failures, %d successes). "
                    "Will retry after %ss.",
                    key[0], key[1], record.failure_count, record.success_count,
                    self.timeout.total_seconds(),
                )

        logger.warning(
            "Recorded failure for %s in %s: %s. Failed calls in window: %d",
            key[0], key[1], error or "unknown error", failures,
        )

    def get_state(self, provider: str, region: Optional[str] = None) -> CircuitState:
        """Derive the current circuit state without mutating anything."""
        key = self._key(provider, region)
        lock = self._existing_lock(key)
        if lock is None:
            return CircuitState.CLOSED
        with lock:
            record = self._records.get(key)
            if record is None:
                return CircuitState.CLOSED
            return self._derive_state(record, self.clock())

    def reset(self, provider: str, region: Optional[str] = None) -> None:
        """
        Administrative override: close the circuit and clear all counters.

        Unknown keys are ignored, and repeated calls leave the same state.
        """
        key = self._key(provider, region)
        lock = self._existing_lock(key)
        if lock is None:
            return
        with lock:
            record = self._records.get(key)
            if record is None:
                return
            now = self.clock()
            record.circuit_open = False
            record.failure_count = 0
            record.success_count = 0
            record.window_start = now
            record.last_transition_at = None
            record.last_error = None

        logger.info("Circuit breaker RESET for %s in %s", key[0], key[1])

    def get_snapshot(self, provider: str, region: Optional[str] = None) -> CircuitSnapshot:
        """
        Get detailed circuit information for monitoring.

        Returns:
            CircuitSnapshot with state, window counters and timestamps.
            next_attempt_at is only set while the circuit is open.
        """
        key = self._key(provider, region)
        closed = CircuitSnapshot(provider=key[0], region=key[1], state=CircuitState.CLOSED)
        lock = self._existing_lock(key)
        if lock is None:
            return closed
        with lock:
            record = self._records.get(key)
            if record is None:
                return closed

            state = self._derive_state(record, self.clock())
            next_attempt_at = None
            if state == CircuitState.OPEN and record.last_transition_at is not None:
                next_attempt_at = record.last_transition_at + self.timeout

            return CircuitSnapshot(
                provider=key[0],
                region=key[1],
                state=state,
                failures=record.failure_count,
                successes=record.success_count,
                last_failure_at=record.last_failure_at,
                last_success_at=record.last_success_at,
                last_error=record.last_error,
                next_attempt_at=next_attempt_at,
            )

    def get_available_providers(
        self,
        providers: List[str],
        region: Optional[str] = None,
    ) -> List[str]:
        """
        Filter out providers whose circuit is open, keeping priority order.

        Args:
            providers: Candidate providers, most preferred first
            region: Geographic region (circuits are tracked per provider+region)

        Returns:
            Providers that may be called right now
        """
        available = [p for p in providers if not self.is_circuit_open(p, region)]
        if providers and not available:
            logger.warning(
                "All providers have open circuit breakers in %s: %s",
                region or self.default_region, ", ".join(providers),
            )
        return available

    def get_region_health(self, region: Optional[str] = None) -> Dict[str, CircuitSnapshot]:
        """Get snapshots for every tracked provider in a region."""
        region = region or self.default_region
        with self._registry_lock:
            providers = [provider for provider, key_region in self._records if key_region == region]
        return {provider: self.get_snapshot(provider, region) for provider in sorted(providers)}

    # ----------------------------
    # Internals
    # ----------------------------
    def _key(self, provider: str, region: Optional[str]) -> HealthKey:
        return (provider, region or self.default_region)

    def _lock_for(self, key: HealthKey) -> threading.Lock:
        with self._registry_lock:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.Lock()
                self._locks[key] = lock
            return lock

    def _existing_lock(self, key: HealthKey) -> Optional[threading.Lock]:
        """Lock for a key already written to; reads never register new keys."""
        with self._registry_lock:
            return self._locks.get(key)

    def _get_or_create(self, key: HealthKey, now: datetime) -> HealthRecord:
        record = self._records.get(key)
        if record is None:
            record = HealthRecord(provider=key[0], region=key[1], window_start=now)
            with self._registry_lock:
                self._records[key] = record
        return record

    def _roll_window(self, record: HealthRecord, now: datetime) -> None:
        """Zero the counters once the rolling window has expired."""
        if self._elapsed(record.window_start, now) > self.monitoring_window:
            logger.debug(
                "Monitoring window expired for %s in %s, resetting counters",
                record.provider, record.region,
            )
            record.failure_count = 0
            record.success_count = 0
            record.window_start = now

    def _should_open(self, record: HealthRecord) -> bool:
        total = record.failure_count + record.success_count
        if total == 0:
            return False
        failure_rate = record.failure_count / total
        return (
            record.failure_count >= self.failure_threshold
            and failure_rate > self.failure_rate_threshold
        )

    def _derive_state(self, record: HealthRecord, now: datetime) -> CircuitState:
        if not record.circuit_open:
            return CircuitState.CLOSED
        if record.last_transition_at is None:
            return CircuitState.OPEN
        if self._elapsed(record.last_transition_at, now) >= self.timeout:
            return CircuitState.HALF_OPEN
        return CircuitState.OPEN

    @staticmethod
    def _elapsed(since: datetime, now: datetime) -> timedelta:
        """Elapsed time clamped at zero so clock skew never goes negative."""
        elapsed = now - since
        if elapsed < timedelta(0):
            return timedelta(0)
        return elapsed
