# hybrid_ai/infrastructure/adapters/ai/cloud_function_adapter.py

"""Hosted serverless function backend"""

import structlog

from hybrid_ai.core.exceptions import TransportError
from .base_adapter import BackendReply, HttpBackendAdapter
from .models import AIRequest

logger = structlog.get_logger()


class CloudFunctionAdapter(HttpBackendAdapter):
    """
    Request-response adapter for the hosted coaching function.

    The function answers any POST with ``{"type": "health_check"}`` cheaply,
    so probes use the same endpoint as queries. Anything below HTTP 500
    counts as reachable.
    """

    FUNCTION_PATH = "/fantasy-ai-coach"

    async def _send(self, request: AIRequest) -> BackendReply:
        data = await self._post_json(self.FUNCTION_PATH, request.to_payload())

        text = data.get('response') or data.get('text') or ""
        if not isinstance(text, str) or not text.strip():
            raise TransportError(
                "Cloud function returned empty response",
                backend=self.identity.value
            )

        logger.debug("cloud_function_success", request_id=request.request_id, response_length=len(text))

        return BackendReply(
            text=text.strip(),
            confidence=data.get('confidence'),
            analysis=data.get('analysis')
        )

    async def _probe(self) -> bool:
        response = await self._request(
            "POST",
            self.FUNCTION_PATH,
            timeout=self.config.probe_timeout,
            json={'type': 'health_check'}
        )
        return response.status_code < 500
