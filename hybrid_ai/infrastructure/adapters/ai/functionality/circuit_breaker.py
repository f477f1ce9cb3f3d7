# hybrid_ai/infrastructure/adapters/ai/functionality/circuit_breaker.py

"""Circuit Breaker Pattern"""

import math
import time
from typing import Callable, List, Optional
import structlog

from hybrid_ai.core.exceptions import CircuitOpenError
from ..models import BreakerConfig, CircuitBreakerState, CircuitSnapshot, CircuitState

logger = structlog.get_logger()

TransitionListener = Callable[[CircuitState, CircuitState], None]


class CircuitBreaker:
    """
    Per-adapter circuit breaker.

    States:
    - CLOSED: Normal operation, all requests pass
    - OPEN: Failing, reject everything until next_attempt_at
    - HALF_OPEN: Testing recovery, admit up to half_open_max_calls calls

    One failure in HALF_OPEN reopens the circuit, but half_open_max_calls
    successes are needed to close it.
    """

    def __init__(
            self,
            name: str,
            failure_threshold: int = 5,
            timeout_ms: int = 60000,
            half_open_max_calls: int = 3,
            clock: Callable[[], float] = time.monotonic
    ):
        """
        Args:
            name: Circuit name (backend identity)
            failure_threshold: Consecutive failures before opening circuit
            timeout_ms: Milliseconds before attempting recovery
            half_open_max_calls: Successes needed to close from half-open
            clock: Monotonic clock in seconds (injectable for tests)
        """
        if failure_threshold < 1 or half_open_max_calls < 1:
            raise ValueError("failure_threshold and half_open_max_calls must be >= 1")

        self.name = name
        self._clock = clock
        self.metrics = CircuitBreakerState(
            failure_threshold=failure_threshold,
            timeout_ms=timeout_ms,
            half_open_max_calls=half_open_max_calls
        )
        self._listeners: List[TransitionListener] = []
        # Bumped on every entry into HALF_OPEN so stale slots cannot be released
        self._half_open_epoch = 0

        logger.debug(
            "circuit_breaker_initialized",
            name=name,
            failure_threshold=failure_threshold,
            timeout_ms=timeout_ms,
            half_open_max_calls=half_open_max_calls
        )

    @classmethod
    def from_config(
            cls,
            name: str,
            config: BreakerConfig,
            clock: Callable[[], float] = time.monotonic
    ) -> Optional["CircuitBreaker"]:
        """Build a breaker, or None when the adapter opts out"""
        if not config.enabled:
            return None
        return cls(
            name=name,
            failure_threshold=config.failure_threshold,
            timeout_ms=config.timeout_ms,
            half_open_max_calls=config.half_open_max_calls,
            clock=clock
        )

    # ========================================
    # Listeners
    # ========================================

    def add_listener(self, listener: TransitionListener) -> None:
        """Called with (old_state, new_state) after every transition"""
        if listener not in self._listeners:
            self._listeners.append(listener)

    def remove_listener(self, listener: TransitionListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    # ========================================
    # Gate
    # ========================================

    def allow_request(self) -> bool:
        """
        Check if a call (query or probe) may proceed.

        Returns:
            True if the call should proceed, False if rejected
        """
        if self.metrics.state == CircuitState.CLOSED:
            return True

        if self.metrics.state == CircuitState.OPEN:
            if self._clock() < self.metrics.next_attempt_at:
                return False
            logger.info("circuit_attempting_recovery", name=self.name)
            self._transition_to_half_open()

        # HALF_OPEN: bounded number of trial calls
        if self.metrics.half_open_calls >= self.metrics.half_open_max_calls:
            return False
        self.metrics.half_open_calls += 1
        return True

    def guard(self) -> None:
        """
        Raises:
            CircuitOpenError: If the call is refused
        """
        if not self.allow_request():
            raise CircuitOpenError(
                f"{self.name} circuit breaker is {self.metrics.state.value}",
                backend=self.name,
                seconds_until_retry=self.seconds_until_retry()
            )

    def current_slot(self) -> Optional[int]:
        """
        Token for the half-open slot just admitted, None outside HALF_OPEN.

        Call right after a successful allow_request()/guard().
        """
        if self.metrics.state == CircuitState.HALF_OPEN:
            return self._half_open_epoch
        return None

    def release(self, slot: Optional[int]) -> None:
        """
        Give back a half-open slot whose call will never report an outcome
        (the caller was cancelled). Slots from an earlier half-open period
        are ignored.
        """
        if slot is None or slot != self._half_open_epoch:
            return
        if self.metrics.state != CircuitState.HALF_OPEN or self.metrics.half_open_calls == 0:
            return
        self.metrics.half_open_calls -= 1
        logger.debug("circuit_slot_released", name=self.name, half_open_calls=self.metrics.half_open_calls)

    # ========================================
    # Outcomes
    # ========================================

    def record_success(self) -> Optional[CircuitState]:
        """
        Record successful call.

        Returns:
            The new state if this caused a transition, else None
        """
        state = self.metrics.state

        if state == CircuitState.CLOSED:
            self.metrics.failure_count = 0
            return None

        if state == CircuitState.HALF_OPEN:
            self.metrics.success_count += 1
            if self.metrics.success_count >= self.metrics.half_open_max_calls:
                logger.info(
                    "circuit_closing",
                    name=self.name,
                    success_count=self.metrics.success_count
                )
                self._transition_to_closed()
                return CircuitState.CLOSED

        # OPEN: late result of a call admitted before the trip
        return None

    def record_failure(self) -> Optional[CircuitState]:
        """
        Record failed call.

        Returns:
            The new state if this caused a transition, else None
        """
        self.metrics.failure_count += 1
        state = self.metrics.state

        if state == CircuitState.CLOSED:
            if self.metrics.failure_count >= self.metrics.failure_threshold:
                logger.warning(
                    "circuit_opening",
                    name=self.name,
                    failure_count=self.metrics.failure_count,
                    threshold=self.metrics.failure_threshold,
                    retry_in_s=self.metrics.timeout_ms / 1000
                )
                self._transition_to_open()
                return CircuitState.OPEN

        elif state == CircuitState.HALF_OPEN:
            logger.warning(
                "circuit_reopening",
                name=self.name,
                reason="failure_during_recovery"
            )
            self._transition_to_open()
            return CircuitState.OPEN

        return None

    # ========================================
    # Transitions
    # ========================================

    def _transition_to_open(self) -> None:
        """Transition to OPEN state"""
        old = self.metrics.state
        self.metrics.state = CircuitState.OPEN
        self.metrics.next_attempt_at = self._clock() + self.metrics.timeout_ms / 1000.0
        self.metrics.total_trips += 1
        self.metrics.success_count = 0
        self.metrics.half_open_calls = 0
        self._notify(old, CircuitState.OPEN)

    def _transition_to_half_open(self) -> None:
        """Transition to HALF_OPEN state"""
        old = self.metrics.state
        self.metrics.state = CircuitState.HALF_OPEN
        self._half_open_epoch += 1
        self.metrics.success_count = 0
        self.metrics.half_open_calls = 0
        self._notify(old, CircuitState.HALF_OPEN)

    def _transition_to_closed(self) -> None:
        """Transition to CLOSED state"""
        old = self.metrics.state
        self.metrics.state = CircuitState.CLOSED
        self.metrics.failure_count = 0
        self.metrics.success_count = 0
        self.metrics.half_open_calls = 0
        self.metrics.next_attempt_at = 0.0
        if old != CircuitState.CLOSED:
            self._notify(old, CircuitState.CLOSED)

    def _notify(self, old: CircuitState, new: CircuitState) -> None:
        for listener in list(self._listeners):
            try:
                listener(old, new)
            except Exception as e:
                logger.error(
                    "circuit_listener_failed",
                    name=self.name,
                    error=str(e),
                    exc_info=True
                )

    def reset(self) -> None:
        """Manually reset circuit to CLOSED"""
        logger.info("circuit_reset", name=self.name)
        self._transition_to_closed()

    # ========================================
    # Introspection
    # ========================================

    def get_state(self) -> CircuitState:
        """Get current state"""
        return self.metrics.state

    def is_open(self) -> bool:
        """Check if circuit is open"""
        return self.metrics.state == CircuitState.OPEN

    def is_cooling_down(self) -> bool:
        """Open and the retry deadline has not passed yet"""
        return self.is_open() and self._clock() < self.metrics.next_attempt_at

    def seconds_until_retry(self) -> int:
        if not self.is_open():
            return 0
        return max(0, math.ceil(self.metrics.next_attempt_at - self._clock()))

    def snapshot(self) -> CircuitSnapshot:
        return CircuitSnapshot(
            state=self.metrics.state,
            failure_count=self.metrics.failure_count,
            seconds_until_retry=self.seconds_until_retry(),
            total_trips=self.metrics.total_trips
        )

    def get_metrics(self) -> CircuitBreakerState:
        """Get circuit metrics"""
        return self.metrics
