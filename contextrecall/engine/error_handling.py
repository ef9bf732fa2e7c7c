"""Error taxonomy and per-source failure isolation.

This module implements the engine's degradation model:
- Exception types raised to callers (configuration only)
- Health tracking for every store and the embedding backend
- Isolated execution so one failing source never aborts a retrieval
"""

import traceback
from typing import Optional, Callable, Any, Awaitable, Dict, TypeVar
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from collections import deque

from loguru import logger

from .metrics import MetricsCollector


class ContextRecallError(Exception):
    """Base class for engine errors."""


class StoreError(ContextRecallError):
    """A backing store could not answer a query."""


class ConfigError(ContextRecallError):
    """Configuration could not be loaded or validated."""


class ServiceState(Enum):
    """Service health states."""
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"


class ErrorSeverity(Enum):
    """Error severity levels."""
    LOW = 1
    MEDIUM = 2
    HIGH = 3
    CRITICAL = 4


@dataclass
class ErrorEvent:
    """Represents an error event."""
    timestamp: datetime
    service: str
    error_type: str
    message: str
    severity: ErrorSeverity
    traceback: Optional[str] = None
    context: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict:
        return {
            'timestamp': self.timestamp.isoformat(),
            'service': self.service,
            'error_type': self.error_type,
            'message': self.message,
            'severity': self.severity.value,
            'context': self.context
        }


@dataclass
class ServiceHealth:
    """Tracks health of a store or backend."""
    name: str
    state: ServiceState = ServiceState.HEALTHY
    error_count: int = 0
    success_count: int = 0
    last_error: Optional[ErrorEvent] = None
    last_success: Optional[datetime] = None
    consecutive_failures: int = 0

    @property
    def error_rate(self) -> float:
        """Calculate error rate."""
        total = self.error_count + self.success_count
        if total == 0:
            return 0.0
        return self.error_count / total


class ErrorAggregator:
    """Aggregates errors and per-service health."""

    def __init__(self, window_size: int = 100):
        """
        Initialize error aggregator.

        Args:
            window_size: Number of errors to keep
        """
        self.window_size = window_size
        self.errors: deque = deque(maxlen=window_size)
        self.error_counts: Dict[str, int] = {}
        self.service_health: Dict[str, ServiceHealth] = {}

    def _health(self, service: str) -> ServiceHealth:
        if service not in self.service_health:
            self.service_health[service] = ServiceHealth(name=service)
        return self.service_health[service]

    def record_error(self, error_event: ErrorEvent):
        """Record an error event."""
        self.errors.append(error_event)

        key = f"{error_event.service}:{error_event.error_type}"
        self.error_counts[key] = self.error_counts.get(key, 0) + 1

        health = self._health(error_event.service)
        health.error_count += 1
        health.last_error = error_event
        health.consecutive_failures += 1

        if error_event.severity == ErrorSeverity.CRITICAL:
            health.state = ServiceState.UNHEALTHY
        elif health.consecutive_failures > 3 or health.error_rate > 0.5:
            health.state = ServiceState.UNHEALTHY
        else:
            health.state = ServiceState.DEGRADED

    def record_success(self, service: str):
        """Record a successful operation."""
        health = self._health(service)
        health.success_count += 1
        health.consecutive_failures = 0
        health.last_success = datetime.now()

        if health.error_rate < 0.1:
            health.state = ServiceState.HEALTHY

    def get_error_summary(self) -> Dict[str, Any]:
        """Get error summary."""
        top_errors = sorted(
            self.error_counts.items(),
            key=lambda x: x[1],
            reverse=True
        )[:5]

        return {
            'total_errors': len(self.errors),
            'top_errors': [{'error': k, 'count': v} for k, v in top_errors],
            'last_error': self.errors[-1].to_dict() if self.errors else None,
            'service_health': {
                service: {
                    'state': health.state.value,
                    'error_rate': health.error_rate,
                    'consecutive_failures': health.consecutive_failures
                }
                for service, health in self.service_health.items()
            }
        }

    def reset(self):
        self.errors.clear()
        self.error_counts.clear()
        self.service_health.clear()


T = TypeVar("T")


def classify_severity(error: Exception) -> ErrorSeverity:
    """Classify error severity."""
    if isinstance(error, (MemoryError, SystemError)):
        return ErrorSeverity.CRITICAL
    elif isinstance(error, (ConnectionError, TimeoutError, StoreError)):
        return ErrorSeverity.HIGH
    elif isinstance(error, (FileNotFoundError, PermissionError)):
        return ErrorSeverity.MEDIUM
    else:
        return ErrorSeverity.LOW


class IsolatedExecutor:
    """
    Runs a source operation so that its failure degrades to a fallback value.

    Cancellation is never intercepted: asyncio.CancelledError is not an
    Exception subclass and propagates to the caller.
    """

    def __init__(self,
                 aggregator: Optional[ErrorAggregator] = None,
                 metrics: Optional[MetricsCollector] = None):
        self.aggregator = aggregator or ErrorAggregator()
        self.metrics = metrics

    async def execute(self,
                      service: str,
                      func: Callable[..., Awaitable[T]],
                      *args,
                      fallback: T,
                      **kwargs) -> T:
        """
        Await func(*args, **kwargs), returning fallback if it raises.

        Args:
            service: Name used for health tracking and logs
            func: Coroutine function to run
            fallback: Value returned when func fails
        """
        try:
            result = await func(*args, **kwargs)
        except Exception as e:
            logger.error(f"{service} failed, continuing without it: {type(e).__name__}: {e}")
            self.aggregator.record_error(ErrorEvent(
                timestamp=datetime.now(),
                service=service,
                error_type=type(e).__name__,
                message=str(e),
                severity=classify_severity(e),
                traceback=traceback.format_exc()
            ))
            if self.metrics:
                self.metrics.increment_counter("store.failure")
            return fallback

        self.aggregator.record_success(service)
        return result

    def get_health_status(self) -> Dict[str, Any]:
        """Get overall health status."""
        return self.aggregator.get_error_summary()
