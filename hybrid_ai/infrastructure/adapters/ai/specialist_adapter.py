# hybrid_ai/infrastructure/adapters/ai/specialist_adapter.py

"""Dedicated reasoning-model service"""

from hybrid_ai.core.exceptions import TransportError
from .base_adapter import BackendReply, HttpBackendAdapter
from .models import AIRequest
from .prompt_builder import build_user_prompt


class SpecialistAdapter(HttpBackendAdapter):
    """Request-response adapter for the specialist model service"""

    STATUS_PATH = "/api/deepseek/status"
    QUERY_PATH = "/api/deepseek/query"

    async def _send(self, request: AIRequest) -> BackendReply:
        data = await self._post_json(self.QUERY_PATH, {
            'requestId': request.request_id,
            'prompt': build_user_prompt(request),
            'context': dict(request.context_payload),
            'type': request.kind.value
        })

        text = data.get('response') or data.get('text') or ""
        if not isinstance(text, str) or not text.strip():
            raise TransportError(
                "Specialist returned empty response",
                backend=self.identity.value
            )

        return BackendReply(
            text=text.strip(),
            confidence=data.get('confidence'),
            analysis=data.get('analysis')
        )

    async def _probe(self) -> bool:
        response = await self._request("GET", self.STATUS_PATH, timeout=self.config.probe_timeout)
        return response.is_success
