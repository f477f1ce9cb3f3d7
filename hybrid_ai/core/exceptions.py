"""
Custom exceptions for the hybrid AI orchestrator
"""


class OrchestratorError(Exception):
    """Base exception for orchestrator errors"""
    pass


class ConfigurationError(OrchestratorError):
    """Raised when configuration is invalid or missing"""
    pass


class ContainerInitializationError(OrchestratorError):
    """Raised when dependency injection container fails to initialize"""
    pass


class BackendError(OrchestratorError):
    """Raised when a backend adapter cannot produce a response"""

    def __init__(self, message: str, backend: str = None):
        super().__init__(message)
        self.backend = backend


class BackendTimeoutError(BackendError):
    """No response within the call's deadline"""
    pass


class TransportError(BackendError):
    """Connection refused, protocol mismatch or non-success status"""

    def __init__(self, message: str, backend: str = None, status_code: int = None):
        super().__init__(message, backend=backend)
        self.status_code = status_code


class ConnectionLostError(TransportError):
    """Persistent socket dropped while a request was pending"""
    pass


class DuplicateRequestError(TransportError):
    """A request with the same id is already in flight on this socket"""
    pass


class BackendDisabledError(TransportError):
    """Backend is turned off by configuration"""
    pass


class CircuitOpenError(BackendError):
    """Fast-fail: the breaker refused the call without touching the network"""

    def __init__(self, message: str, backend: str = None, seconds_until_retry: float = 0.0):
        super().__init__(message, backend=backend)
        self.seconds_until_retry = seconds_until_retry


class AllBackendsExhaustedError(OrchestratorError):
    """Internal signal: every chain entry was skipped or failed"""

    def __init__(self, message: str, errors: dict = None):
        super().__init__(message)
        self.errors = errors or {}
