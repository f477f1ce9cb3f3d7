"""Typed orchestrator settings built from UserConfig and the environment"""

import os
from typing import Mapping, Optional
import structlog

from hybrid_ai.core.config.user_config import BACKEND_KEYS, UserConfig
from hybrid_ai.core.exceptions import ConfigurationError
from hybrid_ai.infrastructure.adapters.ai.models import (
    AdapterConfig,
    BackendIdentity,
    BackoffConfig,
    BreakerConfig,
    OrchestratorConfig,
    QualityProfile,
    DEFAULT_CHAIN,
    DEFAULT_QUALITY_THRESHOLDS,
    default_adapter_configs
)

logger = structlog.get_logger()

# Endpoint overrides, applied on top of the YAML file
URL_ENV_VARS = {
    BackendIdentity.PRIMARY: "PRIMARY_BASE_URL",
    BackendIdentity.LOCAL_BRIDGE: "LOCAL_BRIDGE_URL",
    BackendIdentity.CLOUD_FUNCTION: "CLOUD_FUNCTION_URL",
    BackendIdentity.SPECIALIST: "SPECIALIST_URL",
}

TRUTHY = ('1', 'true', 'yes', 'on')


def _build_adapter_config(user_config: UserConfig, default: AdapterConfig) -> AdapterConfig:
    prefix = f"backends.{BACKEND_KEYS[default.identity]}"

    def get(key, fallback):
        return user_config.get(f"{prefix}.{key}", fallback)

    return AdapterConfig(
        identity=default.identity,
        enabled=get('enabled', default.enabled),
        base_url=get('base_url', default.base_url),
        request_timeout=get('request_timeout', default.request_timeout),
        probe_timeout=get('probe_timeout', default.probe_timeout),
        default_confidence=get('default_confidence', default.default_confidence),
        breaker=BreakerConfig(
            enabled=get('breaker.enabled', default.breaker.enabled),
            failure_threshold=get('breaker.failure_threshold', default.breaker.failure_threshold),
            timeout_ms=get('breaker.timeout_ms', default.breaker.timeout_ms),
            half_open_max_calls=get('breaker.half_open_max_calls', default.breaker.half_open_max_calls)
        ),
        backoff=BackoffConfig(
            base_interval_ms=get('health_check.base_interval_ms', default.backoff.base_interval_ms),
            max_interval_ms=get('health_check.max_interval_ms', default.backoff.max_interval_ms),
            multiplier=get('health_check.multiplier', default.backoff.multiplier),
            probe_on_start=get('health_check.probe_on_start', default.backoff.probe_on_start),
            log_sample_every=get('health_check.log_sample_every', default.backoff.log_sample_every)
        ),
        quality=QualityProfile(
            ms_per_point=get('quality.ms_per_point', default.quality.ms_per_point),
            penalty_per_error=get('quality.penalty_per_error', default.quality.penalty_per_error),
            penalty_cap=get('quality.penalty_cap', default.quality.penalty_cap)
        ),
        model=get('model', default.model),
        temperature=get('temperature', default.temperature),
        max_tokens=get('max_tokens', default.max_tokens),
        socket_path=get('socket_path', default.socket_path),
        pending_timeout=get('pending_timeout', default.pending_timeout),
        max_reconnect_attempts=get('max_reconnect_attempts', default.max_reconnect_attempts),
        reconnect_base_delay=get('reconnect_base_delay', default.reconnect_base_delay)
    )


def _apply_environment(adapters: dict, environ: Mapping[str, str]) -> None:
    primary = adapters[BackendIdentity.PRIMARY]
    primary.api_key = environ.get("PRIMARY_API_KEY") or environ.get("OPENAI_API_KEY") or primary.api_key

    for identity, name in URL_ENV_VARS.items():
        if environ.get(name):
            adapters[identity].base_url = environ[name]
            logger.debug("endpoint_overridden", backend=identity.value, env=name)

    enabled = environ.get("LOCAL_BRIDGE_ENABLED")
    if enabled is not None and enabled.strip():
        adapters[BackendIdentity.LOCAL_BRIDGE].enabled = enabled.strip().lower() in TRUTHY


def build_orchestrator_config(
        user_config: UserConfig,
        environ: Optional[Mapping[str, str]] = None
) -> OrchestratorConfig:
    """
    Merge defaults, the YAML file and environment overrides.

    Args:
        user_config: Loaded configuration file
        environ: Environment mapping (defaults to os.environ)

    Returns:
        OrchestratorConfig

    Raises:
        ConfigurationError: Chain or thresholds reference unknown backends
    """
    environ = os.environ if environ is None else environ

    adapters = {
        identity: _build_adapter_config(user_config, default)
        for identity, default in default_adapter_configs().items()
    }
    _apply_environment(adapters, environ)

    try:
        chain = [
            BackendIdentity.parse(str(name))
            for name in user_config.get('orchestrator.chain', [b.value for b in DEFAULT_CHAIN])
        ]

        thresholds = dict(DEFAULT_QUALITY_THRESHOLDS)
        for name, value in user_config.get('orchestrator.quality_thresholds', {}).items():
            thresholds[BackendIdentity.parse(str(name))] = float(value)

        return OrchestratorConfig(
            chain=chain,
            quality_thresholds=thresholds,
            adapters=adapters,
            status_interval_ms=user_config.get('orchestrator.status_interval_ms', 5000),
            offline_confidence=user_config.get('orchestrator.offline_confidence', 30.0),
            latency_window=user_config.get('orchestrator.latency_window', 50)
        )
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"Invalid orchestrator configuration: {e}") from e
