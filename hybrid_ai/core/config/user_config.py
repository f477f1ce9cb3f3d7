"""
User Configuration Manager
Loads the orchestrator YAML file and validates it
"""

import yaml
import structlog
from pathlib import Path
from typing import Dict, Any, TypeVar

from hybrid_ai.core.exceptions import ConfigurationError
from hybrid_ai.infrastructure.adapters.ai.models import (
    BackendIdentity,
    DEFAULT_CHAIN,
    DEFAULT_QUALITY_THRESHOLDS,
    default_adapter_configs
)

logger = structlog.get_logger()

T = TypeVar('T')

BACKEND_KEYS: Dict[BackendIdentity, str] = {
    BackendIdentity.PRIMARY: 'primary',
    BackendIdentity.LOCAL_BRIDGE: 'local_bridge',
    BackendIdentity.CLOUD_FUNCTION: 'cloud_function',
    BackendIdentity.SPECIALIST: 'specialist',
}


def default_config() -> Dict[str, Any]:
    """Default YAML document, generated from the dataclass defaults"""
    backends = {}
    for identity, adapter in default_adapter_configs().items():
        section = {
            'enabled': adapter.enabled,
            'base_url': adapter.base_url,
            'request_timeout': adapter.request_timeout,
            'probe_timeout': adapter.probe_timeout,
            'default_confidence': adapter.default_confidence,
            'breaker': adapter.breaker.to_dict(),
            'health_check': adapter.backoff.to_dict(),
            'quality': adapter.quality.to_dict()
        }
        if identity == BackendIdentity.PRIMARY:
            section.update({
                'model': adapter.model,
                'temperature': adapter.temperature,
                'max_tokens': adapter.max_tokens
            })
        if identity == BackendIdentity.LOCAL_BRIDGE:
            section.update({
                'socket_path': adapter.socket_path,
                'pending_timeout': adapter.pending_timeout,
                'max_reconnect_attempts': adapter.max_reconnect_attempts,
                'reconnect_base_delay': adapter.reconnect_base_delay
            })
        backends[BACKEND_KEYS[identity]] = section

    return {
        'orchestrator': {
            'chain': [backend.value for backend in DEFAULT_CHAIN],
            'status_interval_ms': 5000,
            'offline_confidence': 30.0,
            'latency_window': 50,
            'quality_thresholds': {
                backend.value: threshold for backend, threshold in DEFAULT_QUALITY_THRESHOLDS.items()
            }
        },
        'backends': backends
    }


class UserConfig:
    """Orchestrator configuration file with validation"""

    def __init__(self, config_path: str = "config/orchestrator.yaml", create_missing: bool = True):
        """
        Args:
            config_path: Path to the YAML file
            create_missing: Write the default file when it does not exist
        """
        self.config_path = Path(config_path)
        self.create_missing = create_missing
        self.config: Dict[str, Any] = {}
        self.validation_errors: list = []
        self._load_config()
        self._validate_config()

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "UserConfig":
        """Build from an in-memory document (no file access)"""
        instance = cls.__new__(cls)
        instance.config_path = None
        instance.create_missing = False
        instance.config = data or {}
        instance.validation_errors = []
        instance._validate_config()
        return instance

    def _load_config(self) -> None:
        """Load the YAML file"""
        try:
            if not self.config_path.exists():
                logger.warning("config_not_found", path=str(self.config_path))
                if self.create_missing:
                    self._create_default_config()
                else:
                    self.config = default_config()
                return

            with open(self.config_path, 'r', encoding='utf-8') as f:
                self.config = yaml.safe_load(f) or {}

            if not isinstance(self.config, dict):
                raise ValueError("top level must be a mapping")

            logger.info("user_config_loaded", path=str(self.config_path))

        except ConfigurationError:
            raise
        except Exception as e:
            logger.error("config_load_error", error=str(e))
            raise ConfigurationError(f"Failed to load config: {e}") from e

    def _create_default_config(self) -> None:
        """Write the default configuration file"""
        config = default_config()

        try:
            self.config_path.parent.mkdir(parents=True, exist_ok=True)

            with open(self.config_path, 'w', encoding='utf-8') as f:
                yaml.safe_dump(config, f, allow_unicode=True, default_flow_style=False, sort_keys=False)

            self.config = config
            logger.info("default_config_created", path=str(self.config_path))

        except Exception as e:
            logger.error("config_create_error", error=str(e))
            raise ConfigurationError(f"Failed to create default config: {e}") from e

    # ========================================
    # Validation
    # ========================================

    def _validate_config(self) -> None:
        """Collect validation warnings"""
        self.validation_errors = []

        self._validate_orchestrator_config()
        for key in BACKEND_KEYS.values():
            self._validate_backend_config(key)

        if self.validation_errors:
            logger.warning("config_validation_warnings",
                           errors=self.validation_errors,
                           count=len(self.validation_errors))

    def _validate_orchestrator_config(self) -> None:
        chain = self.get('orchestrator.chain', [])
        if not isinstance(chain, list):
            self.validation_errors.append(
                f"orchestrator.chain must be a list, got {type(chain).__name__}"
            )
        else:
            seen = set()
            for name in chain:
                try:
                    backend = BackendIdentity.parse(str(name))
                except ValueError:
                    self.validation_errors.append(f"orchestrator.chain: unknown backend '{name}'")
                    continue
                if backend == BackendIdentity.OFFLINE:
                    self.validation_errors.append("orchestrator.chain must not contain 'offline'")
                if backend in seen:
                    self.validation_errors.append(f"orchestrator.chain lists '{name}' twice")
                seen.add(backend)

        interval = self.get('orchestrator.status_interval_ms', 5000)
        if not isinstance(interval, (int, float)) or interval <= 0:
            self.validation_errors.append(
                f"orchestrator.status_interval_ms must be a positive number, got {interval}"
            )

        thresholds = self.get('orchestrator.quality_thresholds', {})
        if isinstance(thresholds, dict):
            for name, value in thresholds.items():
                if not isinstance(value, (int, float)) or not 0 <= value <= 100:
                    self.validation_errors.append(
                        f"orchestrator.quality_thresholds.{name} must be between 0-100, got {value}"
                    )

    def _validate_backend_config(self, key: str) -> None:
        prefix = f'backends.{key}'

        threshold = self.get(f'{prefix}.breaker.failure_threshold', 1)
        if not isinstance(threshold, int) or threshold < 1:
            self.validation_errors.append(
                f"{prefix}.breaker.failure_threshold must be integer >= 1, got {threshold}"
            )

        half_open = self.get(f'{prefix}.breaker.half_open_max_calls', 1)
        if not isinstance(half_open, int) or half_open < 1:
            self.validation_errors.append(
                f"{prefix}.breaker.half_open_max_calls must be integer >= 1, got {half_open}"
            )

        base = self.get(f'{prefix}.health_check.base_interval_ms', 1)
        maximum = self.get(f'{prefix}.health_check.max_interval_ms', base)
        if not isinstance(base, (int, float)) or base <= 0:
            self.validation_errors.append(
                f"{prefix}.health_check.base_interval_ms must be positive, got {base}"
            )
        elif isinstance(maximum, (int, float)) and maximum < base:
            self.validation_errors.append(
                f"{prefix}.health_check.max_interval_ms must be >= base_interval_ms, got {maximum}"
            )

        multiplier = self.get(f'{prefix}.health_check.multiplier', 1.0)
        if not isinstance(multiplier, (int, float)) or multiplier < 1.0:
            self.validation_errors.append(
                f"{prefix}.health_check.multiplier must be >= 1.0, got {multiplier}"
            )

        for timeout_key in ('request_timeout', 'probe_timeout'):
            timeout = self.get(f'{prefix}.{timeout_key}', 1.0)
            if not isinstance(timeout, (int, float)) or timeout <= 0:
                self.validation_errors.append(
                    f"{prefix}.{timeout_key} must be positive, got {timeout}"
                )

    # ========================================
    # Access
    # ========================================

    def get(self, key_path: str, default: Any = None) -> Any:
        """
        Read a value using dotted notation.

        Args:
            key_path: Path to the key (e.g. "backends.primary.model")
            default: Returned when the key is missing or has the wrong type

        Returns:
            Configured value or default
        """
        keys = key_path.split('.')
        value = self.config

        for key in keys:
            if isinstance(value, dict):
                value = value.get(key)
                if value is None:
                    return default
            else:
                return default

        if value is not None and default is not None and type(value) != type(default):
            # Integers are fine where a float is expected
            if isinstance(default, float) and isinstance(value, int) and not isinstance(value, bool):
                return float(value)

            logger.warning(
                "config_type_mismatch",
                key=key_path,
                expected=type(default).__name__,
                got=type(value).__name__,
                value=str(value)[:100]
            )
            return default

        return value

    def reload(self) -> None:
        """Reload the file"""
        if self.config_path is None:
            return
        logger.info("reloading_config")
        self._load_config()
        self._validate_config()

    def is_valid(self) -> bool:
        """Check if configuration is valid"""
        return len(self.validation_errors) == 0

    def get_validation_errors(self) -> list:
        """Get list of validation errors"""
        return self.validation_errors.copy()
