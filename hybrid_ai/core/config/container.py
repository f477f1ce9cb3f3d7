# hybrid_ai/core/config/container.py

"""
Dependency Injection Container
"""

import os
import time
from typing import Callable, Dict, List, Mapping, Optional
import structlog
from dotenv import load_dotenv

# Core imports
from hybrid_ai.core.config.settings import build_orchestrator_config
from hybrid_ai.core.config.user_config import UserConfig
from hybrid_ai.core.exceptions import ContainerInitializationError
from hybrid_ai.core.ports.i_backend_adapter import IBackendAdapter

# Application services
from hybrid_ai.application.services.hybrid_ai_service import HybridAIService
from hybrid_ai.application.services.status_publisher import StatusPublisher

# AI adapters
from hybrid_ai.infrastructure.adapters.ai.base_adapter import BaseBackendAdapter
from hybrid_ai.infrastructure.adapters.ai.cloud_function_adapter import CloudFunctionAdapter
from hybrid_ai.infrastructure.adapters.ai.disabled_adapter import DisabledAdapter
from hybrid_ai.infrastructure.adapters.ai.fallback_orchestrator import FallbackOrchestrator
from hybrid_ai.infrastructure.adapters.ai.functionality.health_monitor import HealthMonitor
from hybrid_ai.infrastructure.adapters.ai.local_bridge_adapter import LocalBridgeAdapter
from hybrid_ai.infrastructure.adapters.ai.models import BackendIdentity, OrchestratorConfig
from hybrid_ai.infrastructure.adapters.ai.primary_adapter import PrimaryAdapter
from hybrid_ai.infrastructure.adapters.ai.specialist_adapter import SpecialistAdapter

# Interface
from hybrid_ai.interfaces.cli.console_ui import ConsoleUI

logger = structlog.get_logger()

ADAPTER_CLASSES = {
    BackendIdentity.PRIMARY: PrimaryAdapter,
    BackendIdentity.LOCAL_BRIDGE: LocalBridgeAdapter,
    BackendIdentity.CLOUD_FUNCTION: CloudFunctionAdapter,
    BackendIdentity.SPECIALIST: SpecialistAdapter,
}


class Container:
    """
    Dependency Injection Container
    Builds settings, adapters, monitors, orchestrator and publisher, and
    hands them to HybridAIService, which owns their lifecycle.
    """

    def __init__(
            self,
            config_path: str = "config/orchestrator.yaml",
            user_config: Optional[UserConfig] = None,
            environ: Optional[Mapping[str, str]] = None,
            clock: Callable[[], float] = time.monotonic
    ):
        """
        Args:
            config_path: YAML configuration file
            user_config: Preloaded configuration (skips file access)
            environ: Environment mapping (defaults to os.environ after .env is loaded)
            clock: Monotonic clock shared by all circuit breakers
        """
        logger.info("container_initialization_started")
        self.clock = clock

        try:
            # Step 1: Environment and configuration
            self.environ = self._load_environment(environ)
            self.user_config = user_config or self._load_user_config(config_path)
            self.config = self._create_settings()

            # Step 2: Backend adapters and their health monitors
            self.adapters = self._create_adapters()
            self.monitors = self._create_monitors()

            # Step 3: Dispatch and status
            self.orchestrator = self._create_orchestrator()
            self.status_publisher = self._create_status_publisher()

            # Step 4: Caller-facing service
            self.service = self._create_service()

            logger.info("container_initialization_completed")

        except Exception as e:
            logger.error("container_initialization_failed", error=str(e), exc_info=True)
            raise ContainerInitializationError(f"Failed to initialize container: {e}") from e

    # ========================================
    # ENVIRONMENT & CONFIG
    # ========================================

    def _load_environment(self, environ: Optional[Mapping[str, str]]) -> Mapping[str, str]:
        """Load environment variables from .env file"""
        if environ is None:
            load_dotenv()
            environ = os.environ

        logger.info(
            "environment_loaded",
            primary_key_present=bool(environ.get("PRIMARY_API_KEY") or environ.get("OPENAI_API_KEY"))
        )
        return environ

    def _load_user_config(self, config_path: str) -> UserConfig:
        """Load and validate the configuration file"""
        config = UserConfig(config_path)
        logger.info("user_config_ready", path=config_path, valid=config.is_valid())
        return config

    def _create_settings(self) -> OrchestratorConfig:
        config = build_orchestrator_config(self.user_config, self.environ)
        logger.debug("settings_created", chain=[backend.value for backend in config.chain])
        return config

    # ========================================
    # ADAPTERS
    # ========================================

    def _create_adapters(self) -> Dict[BackendIdentity, IBackendAdapter]:
        """One adapter per backend; disabled backends get a DisabledAdapter"""
        adapters: Dict[BackendIdentity, IBackendAdapter] = {}

        for identity, adapter_config in self.config.adapters.items():
            if not adapter_config.enabled:
                adapters[identity] = DisabledAdapter(identity)
                logger.info("backend_disabled", backend=identity.value)
                continue

            adapters[identity] = ADAPTER_CLASSES[identity](adapter_config, clock=self.clock)
            logger.debug(
                "adapter_created",
                backend=identity.value,
                base_url=adapter_config.base_url,
                breaker=adapter_config.breaker.enabled
            )

        return adapters

    def _create_monitors(self) -> List[HealthMonitor]:
        monitors = [
            HealthMonitor(adapter, adapter.config.backoff)
            for adapter in self.adapters.values()
            if isinstance(adapter, BaseBackendAdapter)
        ]
        logger.debug("health_monitors_created", count=len(monitors))
        return monitors

    # ========================================
    # ORCHESTRATOR & PUBLISHER
    # ========================================

    def _create_orchestrator(self) -> FallbackOrchestrator:
        orchestrator = FallbackOrchestrator(
            adapters=self.adapters,
            chain=self.config.chain,
            quality_thresholds=self.config.quality_thresholds,
            offline_confidence=self.config.offline_confidence,
            latency_window=self.config.latency_window
        )
        logger.debug("orchestrator_created")
        return orchestrator

    def _create_status_publisher(self) -> StatusPublisher:
        publisher = StatusPublisher(self.adapters, interval_ms=self.config.status_interval_ms)
        logger.debug("status_publisher_created", interval_ms=self.config.status_interval_ms)
        return publisher

    def _create_service(self) -> HybridAIService:
        return HybridAIService(
            orchestrator=self.orchestrator,
            status_publisher=self.status_publisher,
            monitors=self.monitors,
            adapters=self.adapters
        )

    # ========================================
    # PUBLIC INTERFACE
    # ========================================

    def console_ui(self) -> ConsoleUI:
        """
        Create console UI interface

        Returns:
            ConsoleUI bound to the service
        """
        return ConsoleUI(service=self.service)


def setup_container(config_path: str = "config/orchestrator.yaml") -> Container:
    """
    Setup and initialize dependency injection container

    Returns:
        Fully initialized Container instance

    Raises:
        ContainerInitializationError: If initialization fails
    """
    return Container(config_path=config_path)
