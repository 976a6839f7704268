"""
Circuit breaker for external service calls.

Short-circuits calls to the OpenAI and Instagram Graph APIs once they are
known to be failing. Transitions through three states:

  CLOSED    -> calls pass through normally
  OPEN      -> calls fail immediately
  HALF_OPEN -> a limited number of trial calls test recovery

Usage:
    breaker = get_circuit_breaker("openai", failure_threshold=5, recovery_timeout=60)
    result = await breaker.call(some_async_fn, arg1)
"""

import asyncio
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Optional

import structlog

logger = structlog.get_logger(__name__)


class CircuitState(str, Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


@dataclass
class CircuitStats:
    total_calls: int = 0
    total_failures: int = 0
    total_successes: int = 0
    consecutive_failures: int = 0
    state_changes: int = 0


class CircuitBreakerError(Exception):
    """Raised when a call is rejected because the circuit is not closed."""
    def __init__(self, name: str, state: CircuitState):
        self.name = name
        self.state = state
        super().__init__(f"Circuit breaker '{name}' is {state.value}")


class CircuitBreaker:
    """
    Async circuit breaker.

    Args:
        name: Identifier for this circuit (used in logging).
        failure_threshold: Consecutive failures before opening.
        recovery_timeout: Seconds before OPEN -> HALF_OPEN.
        half_open_max_calls: Trial calls allowed while HALF_OPEN.
    """

    def __init__(
        self,
        name: str,
        failure_threshold: int = 5,
        recovery_timeout: float = 30.0,
        half_open_max_calls: int = 1,
    ):
        self.name = name
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self.half_open_max_calls = half_open_max_calls

        self._state = CircuitState.CLOSED
        self._opened_at: Optional[float] = None
        self._half_open_calls = 0
        self._lock = asyncio.Lock()
        self.stats = CircuitStats()

    @property
    def state(self) -> CircuitState:
        """Current state, auto-transitioning OPEN -> HALF_OPEN after timeout."""
        if (
            self._state == CircuitState.OPEN
            and self._opened_at is not None
            and (time.monotonic() - self._opened_at) >= self.recovery_timeout
        ):
            self._transition(CircuitState.HALF_OPEN)
        return self._state

    def _transition(self, new_state: CircuitState):
        old = self._state
        self._state = new_state
        self.stats.state_changes += 1

        if new_state == CircuitState.OPEN:
            self._opened_at = time.monotonic()
        elif new_state == CircuitState.HALF_OPEN:
            self._half_open_calls = 0

        logger.info(
            "circuit_breaker_transition",
            name=self.name,
            from_state=old.value,
            to_state=new_state.value,
        )

    async def call(self, fn: Callable[..., Any], *args, **kwargs) -> Any:
        """Await ``fn`` through the breaker, raising CircuitBreakerError when open."""
        async with self._lock:
            current_state = self.state
            if current_state == CircuitState.OPEN:
                raise CircuitBreakerError(self.name, current_state)
            if current_state == CircuitState.HALF_OPEN:
                if self._half_open_calls >= self.half_open_max_calls:
                    raise CircuitBreakerError(self.name, current_state)
                self._half_open_calls += 1

        self.stats.total_calls += 1
        try:
            result = await fn(*args, **kwargs)
        except Exception:
            await self._on_failure()
            raise
        await self._on_success()
        return result

    async def _on_success(self):
        async with self._lock:
            self.stats.total_successes += 1
            self.stats.consecutive_failures = 0
            if self._state == CircuitState.HALF_OPEN:
                self._transition(CircuitState.CLOSED)

    async def _on_failure(self):
        async with self._lock:
            self.stats.total_failures += 1
            self.stats.consecutive_failures += 1
            if self._state == CircuitState.HALF_OPEN:
                self._transition(CircuitState.OPEN)
            elif self.stats.consecutive_failures >= self.failure_threshold:
                self._transition(CircuitState.OPEN)

    async def reset(self):
        """Manually reset the circuit breaker to CLOSED."""
        async with self._lock:
            self._transition(CircuitState.CLOSED)
            self.stats.consecutive_failures = 0


# ============================================
# GLOBAL REGISTRY
# ============================================

_registry: Dict[str, CircuitBreaker] = {}


def get_circuit_breaker(
    name: str,
    failure_threshold: int = 5,
    recovery_timeout: float = 30.0,
) -> CircuitBreaker:
    """Get or create a named circuit breaker (singleton per name)."""
    if name not in _registry:
        _registry[name] = CircuitBreaker(
            name=name,
            failure_threshold=failure_threshold,
            recovery_timeout=recovery_timeout,
        )
    return _registry[name]


def all_circuit_breakers() -> Dict[str, CircuitBreaker]:
    """Return all registered circuit breakers."""
    return dict(_registry)
