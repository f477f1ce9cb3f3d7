"""Interactive command-line front end"""

import asyncio
import uuid
from typing import Optional, Tuple
import structlog

from hybrid_ai.application.services.hybrid_ai_service import HybridAIService
from hybrid_ai.infrastructure.adapters.ai.models import AIRequest, AIResponse, RequestKind

logger = structlog.get_logger()

EXIT_COMMANDS = ('quit', 'exit', ':q')


def parse_line(line: str) -> Tuple[RequestKind, str]:
    """
    Split an optional ``kind:`` prefix off a question.

    "trade_evaluation: Should I trade X for Y?" -> (TRADE_EVALUATION, "Should I ...")
    Anything else is general advice.
    """
    prefix, sep, rest = line.partition(':')
    if sep:
        try:
            return RequestKind(prefix.strip().lower()), rest.strip()
        except ValueError:
            pass
    return RequestKind.GENERAL_ADVICE, line.strip()


class ConsoleUI:
    """Reads questions from stdin and prints the answers"""

    def __init__(self, service: HybridAIService):
        self.service = service

    async def run(self) -> None:
        """Main UI loop"""
        self._print_header()

        async with self.service:
            while True:
                line = await self._read_line()
                if line is None or line.strip().lower() in EXIT_COMMANDS:
                    break
                if not line.strip():
                    continue
                await self._handle(line.strip())

    async def _read_line(self) -> Optional[str]:
        try:
            return await asyncio.to_thread(input, "> ")
        except EOFError:
            return None

    async def _handle(self, line: str) -> None:
        if line == '/status':
            self._print_status()
            return
        if line == '/stats':
            self._print_statistics()
            return

        kind, text = parse_line(line)
        request = AIRequest(request_id=uuid.uuid4().hex, kind=kind, query_text=text)
        response = await self.service.submit(request)
        self._print_response(response)

    def _print_header(self) -> None:
        print("\n" + "=" * 60)
        print("  Hybrid AI Coach".center(60))
        print("=" * 60)
        print("\n  Ask a question, optionally prefixed with a request kind:")
        print(f"  {', '.join(kind.value for kind in RequestKind)}")
        print("  /status shows backend health, /stats shows counters, 'quit' exits\n")
        print("=" * 60 + "\n")

    def _print_response(self, response: AIResponse) -> None:
        print(f"\n{response.text}\n")
        print(
            f"[{response.backend_used.value} | confidence {response.confidence:.0f} | "
            f"{response.latency_ms:.0f} ms]"
        )
        print("-" * 60 + "\n")

    def _print_status(self) -> None:
        summary = self.service.health_summary()
        print(f"\nSelected backend: {summary['selected_backend']}")
        for name, service in summary['services'].items():
            state = "up" if service['available'] else "down"
            print(f"  {name:<14} {state:<5} quality {service['quality_score']:>5}  errors {service['error_count']}")
        for identity, snapshot in self.service.circuit_breaker_snapshot().items():
            if snapshot.seconds_until_retry:
                print(f"  {identity.value} circuit {snapshot.state.value}, retry in {snapshot.seconds_until_retry}s")
        print()

    def _print_statistics(self) -> None:
        stats = self.service.get_statistics()
        print(f"\nRequests: {stats['total_requests']}  offline: {stats['offline_responses']}  "
              f"fallbacks: {stats['fallbacks']}  skipped: {stats['skipped']}")
        for name, latency in stats['latency'].items():
            if latency['count']:
                print(f"  {name:<14} avg {latency['avg']} ms  p95 {latency['p95']} ms")
        print()
