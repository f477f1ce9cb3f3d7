# hybrid_ai/infrastructure/adapters/ai/models/ai_request.py

"""Request / response value objects"""

import math
from enum import Enum
from dataclasses import dataclass, field
from datetime import datetime
from types import MappingProxyType
from typing import Any, Mapping, Optional

from .health_status import BackendIdentity


class RequestKind(str, Enum):
    """What the caller is asking for"""
    DRAFT_ANALYSIS = "draft_analysis"
    TRADE_EVALUATION = "trade_evaluation"
    LINEUP_OPTIMIZATION = "lineup_optimization"
    PLAYER_ANALYSIS = "player_analysis"
    GENERAL_ADVICE = "general_advice"  # free-form


@dataclass(frozen=True)
class AIRequest:
    """Caller-supplied request, immutable once submitted"""
    request_id: str
    kind: RequestKind
    query_text: str
    context_payload: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        if not self.request_id:
            raise ValueError("request_id must not be empty")
        if not isinstance(self.kind, RequestKind):
            object.__setattr__(self, 'kind', RequestKind(self.kind))
        object.__setattr__(self, 'context_payload', MappingProxyType(dict(self.context_payload)))

    def to_payload(self) -> dict:
        """Generic JSON body shared by the HTTP and socket transports"""
        return {
            'requestId': self.request_id,
            'type': self.kind.value,
            'query': self.query_text,
            'context': dict(self.context_payload)
        }


@dataclass
class AIResponse:
    """Exactly one per AIRequest"""
    request_id: str
    backend_used: BackendIdentity
    text: str
    confidence: float
    latency_ms: float
    analysis_payload: Optional[dict] = None
    timestamp: datetime = field(default_factory=datetime.now)

    @property
    def is_offline(self) -> bool:
        return self.backend_used == BackendIdentity.OFFLINE

    def to_dict(self) -> dict:
        """Export as dict"""
        return {
            'request_id': self.request_id,
            'backend_used': self.backend_used.value,
            'text': self.text,
            'confidence': round(self.confidence, 1),
            'latency_ms': round(self.latency_ms, 2),
            'analysis_payload': self.analysis_payload,
            'timestamp': self.timestamp.isoformat()
        }


def normalize_confidence(value: Any, default: float) -> float:
    """Map backend confidences onto [0, 100]; fractions in [0, 1] are scaled"""
    try:
        confidence = float(value)
    except (TypeError, ValueError):
        return default
    if not math.isfinite(confidence):
        return default
    if 0.0 <= confidence <= 1.0:
        confidence *= 100.0
    return max(0.0, min(100.0, confidence))
