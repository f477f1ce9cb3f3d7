"""Application Services"""

from hybrid_ai.application.services.hybrid_ai_service import HybridAIService
from hybrid_ai.application.services.status_publisher import StatusPublisher

__all__ = ['HybridAIService', 'StatusPublisher']
