# hybrid_ai/infrastructure/adapters/ai/local_bridge_adapter.py

"""
Local bridge server adapter.

Queries go over a persistent websocket when one is open and fall back to
plain HTTP otherwise. Replies on the socket are matched to callers by
requestId through a table of pending futures.
"""

import asyncio
import json
import time
from typing import Callable, Dict, Optional, Tuple
import aiohttp
import structlog

from hybrid_ai.core.exceptions import (
    BackendTimeoutError,
    ConnectionLostError,
    DuplicateRequestError,
    TransportError
)
from .base_adapter import BackendReply, BaseBackendAdapter
from .models import AdapterConfig, AIRequest, ConnectionKind

logger = structlog.get_logger()

QUERY_MESSAGE_TYPE = "fantasy-query"
CONTROL_MESSAGE_TYPES = ("ping", "pong", "connection", "heartbeat")


class LocalBridgeAdapter(BaseBackendAdapter):
    """Websocket-first adapter with an HTTP fallback"""

    connection_kind = ConnectionKind.REQUEST_RESPONSE

    HEALTH_PATH = "/health"
    HTTP_QUERY_PATH = "/api/fantasy-ai"

    def __init__(
            self,
            config: AdapterConfig,
            session: Optional[aiohttp.ClientSession] = None,
            clock: Callable[[], float] = time.monotonic
    ):
        """
        Args:
            config: Adapter settings (socket_path, pending_timeout, reconnect policy)
            session: Shared aiohttp session (created lazily when omitted)
            clock: Monotonic clock in seconds
        """
        super().__init__(config, clock=clock, initially_available=False)
        self._session = session
        self._owns_session = session is None

        self._ws: Optional[aiohttp.ClientWebSocketResponse] = None
        self._reader_task: Optional[asyncio.Task] = None
        self._reconnect_task: Optional[asyncio.Task] = None
        self._connect_lock = asyncio.Lock()
        self._generation = 0
        self._closing = False
        self.reconnect_attempts = 0

        # requestId -> (future, socket generation at send time)
        self._pending: Dict[str, Tuple[asyncio.Future, int]] = {}

    # ========================================
    # Properties
    # ========================================

    @property
    def socket_connected(self) -> bool:
        return self._ws is not None and not self._ws.closed

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    @property
    def socket_url(self) -> str:
        base = self.config.base_url.rstrip('/')
        if base.startswith('https://'):
            base = 'wss://' + base[len('https://'):]
        elif base.startswith('http://'):
            base = 'ws://' + base[len('http://'):]
        return base + self.config.socket_path

    def _url(self, path: str) -> str:
        return self.config.base_url.rstrip('/') + path

    def _current_connection_kind(self) -> ConnectionKind:
        if self.socket_connected:
            return ConnectionKind.PERSISTENT_SOCKET
        if self._status.available:
            return ConnectionKind.REQUEST_RESPONSE
        return ConnectionKind.NONE

    def _query_deadline(self) -> float:
        # The socket wait enforces pending_timeout itself
        return max(self.config.request_timeout, self.config.pending_timeout) + 1.0

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
            self._owns_session = True
        return self._session

    # ========================================
    # Query
    # ========================================

    async def _send(self, request: AIRequest) -> BackendReply:
        if self.socket_connected:
            data = await self._send_socket(request)
        else:
            data = await self._send_http(request)
        return self._parse_reply(data)

    async def _send_socket(self, request: AIRequest) -> dict:
        """
        Raises:
            DuplicateRequestError: Same requestId already pending
            ConnectionLostError: Socket dropped before the reply arrived
            BackendTimeoutError: No reply within pending_timeout
        """
        loop = asyncio.get_running_loop()
        request_id = request.request_id

        async with self._lock:
            if request_id in self._pending:
                raise DuplicateRequestError(
                    f"Request {request_id} is already pending",
                    backend=self.identity.value
                )
            future = loop.create_future()
            generation = self._generation
            self._pending[request_id] = (future, generation)

        try:
            ws = self._ws
            if ws is None or ws.closed:
                raise ConnectionLostError("Socket closed before send", backend=self.identity.value)

            try:
                await ws.send_json({'type': QUERY_MESSAGE_TYPE, **request.to_payload()})
            except (aiohttp.ClientError, ConnectionError, RuntimeError) as e:
                raise ConnectionLostError(f"Socket send failed: {e}", backend=self.identity.value) from e

            try:
                return await asyncio.wait_for(future, timeout=self.config.pending_timeout)
            except asyncio.TimeoutError:
                if generation != self._generation or not self.socket_connected:
                    raise ConnectionLostError(
                        f"Connection lost while request {request_id} was pending",
                        backend=self.identity.value
                    )
                raise BackendTimeoutError(
                    f"No socket reply for {request_id} after {self.config.pending_timeout}s",
                    backend=self.identity.value
                )
        finally:
            # No await between lookup and removal
            entry = self._pending.get(request_id)
            if entry is not None and entry[0] is future:
                del self._pending[request_id]

    async def _send_http(self, request: AIRequest) -> dict:
        timeout = aiohttp.ClientTimeout(total=self.config.request_timeout)
        try:
            async with self._get_session().post(
                    self._url(self.HTTP_QUERY_PATH),
                    json=request.to_payload(),
                    timeout=timeout
            ) as response:
                if response.status >= 300:
                    raise TransportError(
                        f"Local bridge HTTP error: {response.status}",
                        backend=self.identity.value,
                        status_code=response.status
                    )
                data = await response.json(content_type=None)
        except asyncio.TimeoutError as e:
            raise BackendTimeoutError(
                f"Local bridge timeout after {self.config.request_timeout}s",
                backend=self.identity.value
            ) from e
        except (aiohttp.ClientError, ValueError) as e:
            raise TransportError(f"Local bridge HTTP failed: {e}", backend=self.identity.value) from e

        if not isinstance(data, dict):
            raise TransportError("Local bridge returned unexpected payload", backend=self.identity.value)
        return data

    def _parse_reply(self, data: dict) -> BackendReply:
        result = data.get('result') if isinstance(data.get('result'), dict) else data
        text = result.get('response') or result.get('text') or ""
        if not isinstance(text, str) or not text.strip():
            raise TransportError("Local bridge returned empty response", backend=self.identity.value)
        return BackendReply(
            text=text.strip(),
            confidence=result.get('confidence'),
            analysis=result.get('analysis')
        )

    # ========================================
    # Socket lifecycle
    # ========================================

    async def connect(self) -> bool:
        """Open the socket if it is not already open"""
        async with self._connect_lock:
            if self.socket_connected:
                return True
            if self._closing:
                return False

            try:
                ws = await asyncio.wait_for(
                    self._get_session().ws_connect(self.socket_url, autoping=True),
                    timeout=self.config.probe_timeout
                )
            except (aiohttp.ClientError, asyncio.TimeoutError, OSError) as e:
                logger.debug("local_bridge_connect_failed", url=self.socket_url, error=str(e))
                return False

            self._generation += 1
            self._ws = ws
            self.reconnect_attempts = 0
            self._reader_task = asyncio.get_running_loop().create_task(
                self._read_loop(ws, self._generation),
                name="local_bridge_reader"
            )

        async with self._lock:
            self._status.connection_kind = self._current_connection_kind()

        logger.info("local_bridge_socket_connected", url=self.socket_url)
        return True

    async def _read_loop(self, ws: aiohttp.ClientWebSocketResponse, generation: int) -> None:
        try:
            async for message in ws:
                if message.type == aiohttp.WSMsgType.TEXT:
                    self._handle_message(message.data)
                elif message.type in (aiohttp.WSMsgType.ERROR, aiohttp.WSMsgType.CLOSE):
                    break
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.warning("local_bridge_reader_failed", error=str(e))
        finally:
            await self._on_disconnect(generation)

    def _handle_message(self, raw: str) -> None:
        try:
            data = json.loads(raw)
        except ValueError:
            logger.debug("local_bridge_invalid_message", length=len(raw))
            return

        if not isinstance(data, dict) or data.get('type') in CONTROL_MESSAGE_TYPES:
            return

        entry = self._pending.get(data.get('requestId'))
        if entry is None:
            logger.debug("local_bridge_unmatched_reply", request_id=data.get('requestId'))
            return

        future = entry[0]
        if future.done():
            return

        message_type = str(data.get('type', ''))
        if message_type.endswith('error') or data.get('success') is False:
            future.set_exception(TransportError(
                f"Local bridge error: {data.get('error', 'unknown error')}",
                backend=self.identity.value
            ))
        else:
            future.set_result(data)

    async def _on_disconnect(self, generation: int) -> None:
        if generation != self._generation:
            return

        self._ws = None
        async with self._lock:
            self._status.connection_kind = self._current_connection_kind()

        if self._closing:
            return

        logger.info("local_bridge_socket_disconnected", pending=self.pending_count)

        if self.reconnect_attempts < self.config.max_reconnect_attempts:
            self._reconnect_task = asyncio.get_running_loop().create_task(
                self._reconnect_loop(),
                name="local_bridge_reconnect"
            )
        else:
            self._reject_pending("reconnect attempts exhausted")

    async def _reconnect_loop(self) -> None:
        while not self._closing and self.reconnect_attempts < self.config.max_reconnect_attempts:
            delay = self.config.reconnect_base_delay * (2 ** self.reconnect_attempts)
            self.reconnect_attempts += 1
            logger.debug(
                "local_bridge_reconnecting",
                attempt=self.reconnect_attempts,
                max_attempts=self.config.max_reconnect_attempts,
                delay_s=delay
            )
            await asyncio.sleep(delay)
            if await self.connect():
                return

        logger.warning("local_bridge_reconnect_exhausted", attempts=self.reconnect_attempts)
        self._reject_pending("reconnect attempts exhausted")

    def _reject_pending(self, reason: str) -> None:
        for request_id, (future, _) in list(self._pending.items()):
            if not future.done():
                future.set_exception(ConnectionLostError(
                    f"Request {request_id} dropped: {reason}",
                    backend=self.identity.value
                ))

    async def _send_ping(self) -> None:
        ws = self._ws
        if ws is None or ws.closed:
            return
        try:
            await ws.send_json({'type': 'ping', 'timestamp': int(time.time() * 1000)})
        except (aiohttp.ClientError, ConnectionError, RuntimeError) as e:
            logger.debug("local_bridge_ping_failed", error=str(e))

    # ========================================
    # Health
    # ========================================

    async def _probe(self) -> bool:
        async with self._get_session().get(
                self._url(self.HEALTH_PATH),
                headers={'Accept': 'application/json'},
                timeout=aiohttp.ClientTimeout(total=self.config.probe_timeout)
        ) as response:
            body = await response.text()
            if response.status != 200 or body.lstrip().startswith('<'):
                return False
            data = json.loads(body)

        healthy = isinstance(data, dict) and data.get('status') == 'healthy'
        if healthy:
            reconnecting = self._reconnect_task is not None and not self._reconnect_task.done()
            if not self.socket_connected and not reconnecting:
                await self.connect()
            else:
                await self._send_ping()
        return healthy

    async def close(self) -> None:
        self._closing = True

        if self._reconnect_task is not None:
            self._reconnect_task.cancel()
            self._reconnect_task = None

        ws, self._ws = self._ws, None
        if ws is not None and not ws.closed:
            await ws.close()

        if self._reader_task is not None:
            self._reader_task.cancel()
            try:
                await self._reader_task
            except asyncio.CancelledError:
                pass
            self._reader_task = None

        self._reject_pending("adapter closed")

        if self._owns_session and self._session is not None:
            await self._session.close()
            self._session = None
