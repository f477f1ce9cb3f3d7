"""Tests for the request-response adapters (httpx)"""
import json

import httpx
import pytest

from hybrid_ai.core.exceptions import BackendTimeoutError, CircuitOpenError, TransportError
from hybrid_ai.infrastructure.adapters.ai.cloud_function_adapter import CloudFunctionAdapter
from hybrid_ai.infrastructure.adapters.ai.models import (
    AdapterConfig,
    BackendIdentity,
    BreakerConfig,
    CircuitState,
    ConnectionKind
)
from hybrid_ai.infrastructure.adapters.ai.specialist_adapter import SpecialistAdapter

from conftest import ManualClock, make_request


class Recorder:
    """MockTransport handler returning queued responses"""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        response = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(response, Exception):
            raise response
        return response


def cloud_adapter(handler, threshold=8, clock=None):
    config = AdapterConfig(
        identity=BackendIdentity.CLOUD_FUNCTION,
        base_url="http://cloud.test/functions",
        default_confidence=80.0,
        breaker=BreakerConfig(failure_threshold=threshold, timeout_ms=120000, half_open_max_calls=2)
    )
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url=config.base_url)
    return CloudFunctionAdapter(config, client=client, clock=clock or ManualClock())


def specialist_adapter(handler):
    config = AdapterConfig(
        identity=BackendIdentity.SPECIALIST,
        base_url="http://specialist.test",
        breaker=BreakerConfig(failure_threshold=3, timeout_ms=90000, half_open_max_calls=2)
    )
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url=config.base_url)
    return SpecialistAdapter(config, client=client, clock=ManualClock())


async def test_cloud_function_query():
    handler = Recorder(httpx.Response(200, json={
        'response': '  Start Bijan Robinson.  ',
        'confidence': 0.85,
        'analysis': {'strategyPoints': ['volume']}
    }))
    adapter = cloud_adapter(handler)

    response = await adapter.query(make_request("cf-1"))

    assert response.request_id == "cf-1"
    assert response.backend_used == BackendIdentity.CLOUD_FUNCTION
    assert response.text == "Start Bijan Robinson."
    assert response.confidence == pytest.approx(85.0)
    assert response.analysis_payload == {'strategyPoints': ['volume']}

    sent = handler.requests[0]
    assert sent.method == "POST"
    assert sent.url.path == "/functions/fantasy-ai-coach"
    assert json.loads(sent.content)['requestId'] == "cf-1"

    status = adapter.status()
    assert status.available is True
    assert status.connection_kind == ConnectionKind.REQUEST_RESPONSE


async def test_cloud_function_default_confidence():
    adapter = cloud_adapter(Recorder(httpx.Response(200, json={'response': 'ok'})))

    response = await adapter.query(make_request())

    assert response.confidence == 80.0


async def test_non_success_status_is_transport_error():
    adapter = cloud_adapter(Recorder(httpx.Response(502, text="bad gateway")))

    with pytest.raises(TransportError) as exc_info:
        await adapter.query(make_request())

    assert exc_info.value.status_code == 502
    assert adapter.status().error_count == 1


async def test_empty_or_invalid_payload_is_transport_error():
    adapter = cloud_adapter(Recorder(
        httpx.Response(200, json={'response': ''}),
        httpx.Response(200, text="<html>oops</html>")
    ))

    with pytest.raises(TransportError):
        await adapter.query(make_request("a"))
    with pytest.raises(TransportError):
        await adapter.query(make_request("b"))


async def test_connection_refused_and_timeout_are_mapped():
    adapter = cloud_adapter(Recorder(
        httpx.ConnectError("connection refused"),
        httpx.ReadTimeout("too slow")
    ))

    with pytest.raises(TransportError):
        await adapter.query(make_request("a"))
    with pytest.raises(BackendTimeoutError):
        await adapter.query(make_request("b"))


async def test_breaker_opens_and_blocks_network():
    handler = Recorder(httpx.Response(500))
    adapter = cloud_adapter(handler, threshold=2)

    for request_id in ("a", "b"):
        with pytest.raises(TransportError):
            await adapter.query(make_request(request_id))

    assert adapter.circuit_snapshot().state == CircuitState.OPEN
    with pytest.raises(CircuitOpenError):
        await adapter.query(make_request("c"))
    assert len(handler.requests) == 2
    assert adapter.is_dispatchable() is False


async def test_cloud_function_probe_accepts_client_errors():
    handler = Recorder(httpx.Response(404), httpx.Response(503))
    adapter = cloud_adapter(handler)

    assert await adapter.probe() is True
    assert await adapter.probe() is False
    assert json.loads(handler.requests[0].content) == {'type': 'health_check'}


async def test_probe_never_raises():
    adapter = cloud_adapter(Recorder(httpx.ConnectError("refused")))

    assert await adapter.probe() is False


async def test_specialist_query_builds_prompt():
    handler = Recorder(httpx.Response(200, json={'response': 'Trade accepted.', 'confidence': 72}))
    adapter = specialist_adapter(handler)

    response = await adapter.query(make_request("sp-1"))

    body = json.loads(handler.requests[0].content)
    assert handler.requests[0].url.path == "/api/deepseek/query"
    assert body['type'] == "general_advice"
    assert body['context'] == {'scoringSystem': 'ppr'}
    assert "Who should I start at flex?" in body['prompt']
    assert '"scoringSystem": "ppr"' in body['prompt']
    assert response.confidence == 72.0


async def test_specialist_probe():
    handler = Recorder(httpx.Response(200, json={'status': 'ok'}), httpx.Response(404))
    adapter = specialist_adapter(handler)

    assert await adapter.probe() is True
    assert await adapter.probe() is False
    assert handler.requests[0].method == "GET"
    assert handler.requests[0].url.path == "/api/deepseek/status"
