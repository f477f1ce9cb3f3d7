# hybrid_ai/infrastructure/adapters/ai/functionality/latency_tracker.py

"""Per-backend answer latency window"""

from collections import deque
from typing import Dict
import numpy as np

PERCENTILES = (50, 90, 95, 99)


class LatencyTracker:
    """
    Keeps the last ``window_size`` successful answer latencies of one backend.

    Only answers that were actually delivered are recorded, so a backend
    that fails fast does not look quick.
    """

    def __init__(self, window_size: int = 50):
        if window_size < 1:
            raise ValueError("window_size must be >= 1")
        self.samples: deque = deque(maxlen=window_size)

    def __len__(self) -> int:
        return len(self.samples)

    def record(self, latency_ms: float) -> None:
        self.samples.append(float(latency_ms))

    def get_stats(self) -> Dict[str, float]:
        """
        Returns:
            count, avg, min, max and p50/p90/p95/p99 in milliseconds
        """
        if not self.samples:
            return {'count': 0, 'avg': 0.0, 'min': 0.0, 'max': 0.0,
                    **{f'p{p}': 0.0 for p in PERCENTILES}}

        values = np.fromiter(self.samples, dtype=float)
        stats = {
            'count': int(values.size),
            'avg': round(float(values.mean()), 2),
            'min': round(float(values.min()), 2),
            'max': round(float(values.max()), 2),
        }
        for p, value in zip(PERCENTILES, np.percentile(values, PERCENTILES)):
            stats[f'p{p}'] = round(float(value), 2)
        return stats

    def reset(self) -> None:
        self.samples.clear()
