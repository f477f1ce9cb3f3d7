# hybrid_ai/infrastructure/adapters/ai/models/circuit_state.py

"""Circuit Breaker State Model"""

from enum import Enum
from dataclasses import dataclass


class CircuitState(Enum):
    """Circuit breaker states"""
    CLOSED = "closed"  # Normal operation
    OPEN = "open"  # Failing, reject requests
    HALF_OPEN = "half-open"  # Testing if recovered


@dataclass
class CircuitBreakerState:
    """Mutable breaker record, owned by exactly one CircuitBreaker"""
    failure_threshold: int
    timeout_ms: int
    half_open_max_calls: int
    state: CircuitState = CircuitState.CLOSED
    failure_count: int = 0
    success_count: int = 0
    next_attempt_at: float = 0.0  # monotonic seconds
    half_open_calls: int = 0  # calls admitted since entering half-open
    total_trips: int = 0

    def to_dict(self) -> dict:
        """Export as dict"""
        return {
            'state': self.state.value,
            'failure_count': self.failure_count,
            'failure_threshold': self.failure_threshold,
            'timeout_ms': self.timeout_ms,
            'success_count': self.success_count,
            'half_open_max_calls': self.half_open_max_calls,
            'total_trips': self.total_trips
        }


@dataclass(frozen=True)
class CircuitSnapshot:
    """Diagnostics view of a breaker"""
    state: CircuitState
    failure_count: int
    seconds_until_retry: int
    total_trips: int = 0
    disabled: bool = False

    def to_dict(self) -> dict:
        return {
            'state': self.state.value,
            'failure_count': self.failure_count,
            'seconds_until_retry': self.seconds_until_retry,
            'total_trips': self.total_trips,
            'disabled': self.disabled
        }


CLOSED_SNAPSHOT = CircuitSnapshot(state=CircuitState.CLOSED, failure_count=0, seconds_until_retry=0)
DISABLED_SNAPSHOT = CircuitSnapshot(
    state=CircuitState.OPEN, failure_count=0, seconds_until_retry=0, disabled=True
)
