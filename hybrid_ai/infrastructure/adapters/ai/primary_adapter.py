# hybrid_ai/infrastructure/adapters/ai/primary_adapter.py

"""Hosted general-purpose model (OpenAI-compatible chat API)"""

import time
from typing import Callable, Optional
import openai
import structlog
from openai import AsyncOpenAI

from hybrid_ai.core.exceptions import BackendTimeoutError, TransportError
from .base_adapter import BackendReply, BaseBackendAdapter
from .models import AdapterConfig, AIRequest
from .prompt_builder import build_system_prompt, build_user_prompt

logger = structlog.get_logger()


class PrimaryAdapter(BaseBackendAdapter):
    """
    Highest-fidelity backend. Runs without a circuit breaker by default:
    a failed query marks it unavailable until the next successful probe.
    """

    def __init__(
            self,
            config: AdapterConfig,
            client: Optional[AsyncOpenAI] = None,
            clock: Callable[[], float] = time.monotonic
    ):
        """
        Args:
            config: Adapter settings (api_key, model, base_url)
            client: Preconfigured client; built from config when omitted
            clock: Monotonic clock in seconds
        """
        super().__init__(
            config,
            clock=clock,
            initially_available=client is not None or bool(config.api_key)
        )
        self._client = client
        self._owns_client = client is None

        if not self._status.available:
            logger.warning("primary_api_key_missing", backend=self.identity.value)

    def _openai(self) -> AsyncOpenAI:
        if self._client is None:
            if not self.config.api_key:
                raise TransportError("No API key configured", backend=self.identity.value)
            self._client = AsyncOpenAI(
                api_key=self.config.api_key,
                base_url=self.config.base_url or None,
                timeout=self.config.request_timeout,
                max_retries=0
            )
        return self._client

    async def _send(self, request: AIRequest) -> BackendReply:
        try:
            response = await self._openai().chat.completions.create(
                model=self.config.model,
                messages=[
                    {"role": "system", "content": build_system_prompt()},
                    {"role": "user", "content": build_user_prompt(request)}
                ],
                temperature=self.config.temperature,
                max_tokens=self.config.max_tokens
            )
        except openai.APITimeoutError as e:
            raise BackendTimeoutError(
                f"Primary timeout after {self.config.request_timeout}s",
                backend=self.identity.value
            ) from e
        except openai.APIConnectionError as e:
            raise TransportError(f"Cannot connect to Primary: {e}", backend=self.identity.value) from e
        except openai.APIStatusError as e:
            raise TransportError(
                f"Primary API error: {e.status_code}",
                backend=self.identity.value,
                status_code=e.status_code
            ) from e

        answer = (response.choices[0].message.content or "").strip() if response.choices else ""
        if not answer:
            raise TransportError("Primary returned empty response", backend=self.identity.value)

        logger.debug("primary_response", request_id=request.request_id, response_length=len(answer))
        return BackendReply(text=answer)

    async def _probe(self) -> bool:
        await self._openai().models.list()
        return True

    async def close(self) -> None:
        if self._owns_client and self._client is not None:
            await self._client.close()
            self._client = None
