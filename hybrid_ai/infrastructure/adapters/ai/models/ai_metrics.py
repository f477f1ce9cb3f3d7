# hybrid_ai/infrastructure/adapters/ai/models/ai_metrics.py

"""Orchestrator Metrics"""

from dataclasses import dataclass, field
from typing import Dict, Optional
from datetime import datetime


@dataclass
class AIRequestMetrics:
    """Single dispatch metrics"""
    request_id: str
    backend: Optional[str] = None
    success: bool = False
    latency_ms: float = 0.0
    attempts: int = 0
    skipped: int = 0
    fallback_used: bool = False
    offline: bool = False
    started_at: datetime = field(default_factory=datetime.now)
    errors: Dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict:
        """Export as dict"""
        return {
            'request_id': self.request_id,
            'backend': self.backend,
            'success': self.success,
            'latency_ms': round(self.latency_ms, 2),
            'attempts': self.attempts,
            'skipped': self.skipped,
            'fallback_used': self.fallback_used,
            'offline': self.offline,
            'errors': dict(self.errors)
        }


@dataclass
class AIStatistics:
    """Aggregate orchestrator statistics"""

    total_requests: int = 0
    offline_responses: int = 0
    fallbacks: int = 0
    skipped: int = 0
    successes: Dict[str, int] = field(default_factory=dict)
    failures: Dict[str, int] = field(default_factory=dict)

    def record(self, metrics: AIRequestMetrics) -> None:
        """Fold one dispatch into the totals"""
        self.total_requests += 1
        self.skipped += metrics.skipped
        for backend in metrics.errors:
            self.failures[backend] = self.failures.get(backend, 0) + 1
        if metrics.offline:
            self.offline_responses += 1
        elif metrics.backend:
            self.successes[metrics.backend] = self.successes.get(metrics.backend, 0) + 1
        if metrics.fallback_used:
            self.fallbacks += 1

    def to_dict(self) -> dict:
        """Export as dict"""
        total = max(self.total_requests, 1)

        return {
            'total_requests': self.total_requests,
            'offline_responses': self.offline_responses,
            'offline_rate': round(self.offline_responses / total * 100, 1),
            'fallbacks': self.fallbacks,
            'fallback_rate': round(self.fallbacks / total * 100, 1),
            'skipped': self.skipped,
            'successes': dict(self.successes),
            'failures': dict(self.failures)
        }
