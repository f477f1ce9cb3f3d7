# hybrid_ai/infrastructure/adapters/ai/models/__init__.py

"""AI Models"""

from .ai_config import (
    AdapterConfig,
    BackoffConfig,
    BreakerConfig,
    OrchestratorConfig,
    QualityProfile,
    DEFAULT_CHAIN,
    DEFAULT_QUALITY_THRESHOLDS,
    default_adapter_configs
)
from .ai_metrics import AIRequestMetrics, AIStatistics
from .ai_request import AIRequest, AIResponse, RequestKind, normalize_confidence
from .circuit_state import (
    CircuitState,
    CircuitBreakerState,
    CircuitSnapshot,
    CLOSED_SNAPSHOT,
    DISABLED_SNAPSHOT
)
from .health_status import (
    BackendIdentity,
    ConnectionKind,
    HealthStatus,
    HealthCheckBackoff,
    OFFLINE_QUALITY_SCORE,
    offline_status
)

__all__ = [
    'AdapterConfig',
    'BackoffConfig',
    'BreakerConfig',
    'OrchestratorConfig',
    'QualityProfile',
    'DEFAULT_CHAIN',
    'DEFAULT_QUALITY_THRESHOLDS',
    'default_adapter_configs',
    'AIRequestMetrics',
    'AIStatistics',
    'AIRequest',
    'AIResponse',
    'RequestKind',
    'normalize_confidence',
    'CircuitState',
    'CircuitBreakerState',
    'CircuitSnapshot',
    'CLOSED_SNAPSHOT',
    'DISABLED_SNAPSHOT',
    'BackendIdentity',
    'ConnectionKind',
    'HealthStatus',
    'HealthCheckBackoff',
    'OFFLINE_QUALITY_SCORE',
    'offline_status'
]
