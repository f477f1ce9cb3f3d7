# hybrid_ai/infrastructure/adapters/ai/functionality/quality_scorer.py

"""Advisory quality score"""

from ..models import QualityProfile


def quality_score(response_time_ms: float, error_count: int, profile: QualityProfile) -> float:
    """
    Pure function of latency and recent errors, clamped to [0, 100].

    timeScore decays by one point per ``profile.ms_per_point`` milliseconds;
    errorPenalty grows with error_count up to ``profile.penalty_cap``.
    """
    time_score = max(0.0, 100.0 - response_time_ms / profile.ms_per_point)
    error_penalty = min(profile.penalty_cap, max(0, error_count) * profile.penalty_per_error)
    return max(0.0, min(100.0, time_score - error_penalty))
