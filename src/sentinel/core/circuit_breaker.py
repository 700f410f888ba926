"""Circuit breaker around the generative analysis backend."""
import pybreaker
from loguru import logger

from src.sentinel.monitoring.metrics import CIRCUIT_STATE

_STATE_VALUES = {"closed": 0, "open": 1, "half-open": 2}


class BreakerStateListener(pybreaker.CircuitBreakerListener):
    """Logs breaker transitions and mirrors them into a gauge."""

    def state_change(self, cb, old_state, new_state):
        name = new_state.name if new_state is not None else "closed"
        if name == "open":
            logger.error(f"🔴 Circuit OPEN for {cb.name}")
        elif name == "half-open":
            logger.warning(f"🟡 Circuit HALF-OPEN for {cb.name}")
        else:
            logger.info(f"🟢 Circuit CLOSED for {cb.name}")
        CIRCUIT_STATE.labels(service=cb.name).set(_STATE_VALUES.get(name, 0))


# Shared by the health analyzer and the chat assistant
genai_breaker = pybreaker.CircuitBreaker(
    fail_max=5,              # Open after 5 consecutive failures
    reset_timeout=60,        # Try again after 60 seconds
    name="genai_backend",
    listeners=[BreakerStateListener()],
)
