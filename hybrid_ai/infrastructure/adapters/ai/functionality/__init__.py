# hybrid_ai/infrastructure/adapters/ai/functionality/__init__.py

"""Resilience building blocks shared by the adapters"""

from .circuit_breaker import CircuitBreaker
from .health_monitor import HealthMonitor
from .latency_tracker import LatencyTracker
from .quality_scorer import quality_score
from .recurring_task import RecurringTask
from .timeout_wrapper import with_timeout

__all__ = [
    'CircuitBreaker',
    'HealthMonitor',
    'LatencyTracker',
    'quality_score',
    'RecurringTask',
    'with_timeout'
]
