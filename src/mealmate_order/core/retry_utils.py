"""
Retry logic and remote response validation.
Retries are only applied to idempotent reads (cart fetch, address refresh).
"""

import logging
import random
import time
from functools import wraps
from typing import Any, Callable, Optional, TypeVar

from .errors import SessionError, ToolError

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S"
)
logger = logging.getLogger(__name__)

T = TypeVar('T')

TOKEN_ERROR_MARKERS = ("token expired", "invalid token", "unauthorized", "not authenticated", "missing token")

# JSON-RPC parse, invalid request, unknown method and invalid params errors
PERMANENT_RPC_CODES = (-32700, -32600, -32601, -32602)


class RetryConfig:
    """Exponential backoff schedule for idempotent remote reads."""

    def __init__(
        self,
        max_retries: int = 2,
        initial_backoff: float = 0.5,
        backoff_multiplier: float = 2.0,
        max_backoff: float = 8.0,
        jitter: bool = True
    ):
        if max_retries < 0:
            raise ValueError("max_retries cannot be negative")
        self.max_retries = max_retries
        self.initial_backoff = initial_backoff
        self.backoff_multiplier = backoff_multiplier
        self.max_backoff = max_backoff
        self.jitter = jitter

    @property
    def attempts(self) -> int:
        return self.max_retries + 1

    def get_backoff_time(self, attempt: int) -> float:
        """Delay after failed attempt number `attempt` (0-based), capped at max_backoff."""
        delay = min(self.initial_backoff * self.backoff_multiplier ** attempt, self.max_backoff)
        return delay * random.uniform(0.5, 1.5) if self.jitter else delay


NO_RETRY = RetryConfig(max_retries=0)


def retry_with_backoff(
    func: Callable[..., T],
    config: Optional[RetryConfig] = None,
    error_handler: Optional[Callable[[Exception, int], None]] = None
) -> Callable[..., T]:
    """
    Wrap a remote read so retryable ToolErrors are retried with backoff.

    SessionError is not a ToolError and always propagates at once, as does
    a ToolError marked non-retryable. After the last attempt the final
    error is re-raised.

    Args:
        func: The read to wrap (cart fetch, address refresh)
        config: Backoff schedule, RetryConfig() when omitted
        error_handler: Called with (error, attempt) before each retry
    """
    config = config or RetryConfig()
    name = getattr(func, "__name__", "remote call")

    @wraps(func)
    def call_with_retries(*args, **kwargs) -> T:
        for attempt in range(config.attempts):
            try:
                result = func(*args, **kwargs)
            except ToolError as e:
                retries_left = config.max_retries - attempt
                if not e.retry_possible:
                    logger.error(f"[RETRY] {name}: permanent error from {e.tool}: {e.message}")
                    raise
                if retries_left == 0:
                    logger.error(f"[RETRY] {name}: giving up after {config.attempts} attempts: {e.message}")
                    raise

                delay = config.get_backoff_time(attempt)
                logger.warning(f"[RETRY] {name} failed ({e.message}), {retries_left} left, next in {delay:.2f}s")
                if error_handler:
                    error_handler(e, attempt)
                time.sleep(delay)
            else:
                if attempt:
                    logger.info(f"[RETRY] {name} succeeded on attempt {attempt + 1}")
                return result

    return call_with_retries


class RpcResponseValidator:
    """Validates JSON-RPC envelopes from the Instamart service before using them."""

    @staticmethod
    def validate(payload: Any, method: str, tool: str) -> Any:
        """
        Return the `result` member of a JSON-RPC response.

        Args:
            payload: Decoded response body
            method: JSON-RPC method that was called
            tool: Operation name reported on failure

        Returns:
            The result value (may be None for void methods)
        """
        if not isinstance(payload, dict):
            raise ToolError(f"Invalid response type from {method}: {type(payload).__name__}", tool,
                            retry_possible=False)

        error = payload.get("error")
        if error:
            code = error.get("code") if isinstance(error, dict) else None
            message = error.get("message", str(error)) if isinstance(error, dict) else str(error)
            if code in (401, 403) or any(m in message.lower() for m in TOKEN_ERROR_MARKERS):
                raise SessionError(f"Swiggy session rejected: {message}")
            raise ToolError(f"Swiggy MCP error: {message}", tool, retry_possible=code not in PERMANENT_RPC_CODES)

        if "result" not in payload:
            raise ToolError(f"Missing result in response from {method}", tool, retry_possible=False)

        return payload["result"]


def validate_tool_arguments(arguments: Any, required_keys: list) -> bool:
    """
    Validate that a tool call carries its required arguments.
    """
    if not isinstance(arguments, dict):
        logger.error(f"[TOOLS] Tool arguments are not a dict: {type(arguments)}")
        return False

    missing = [k for k in required_keys if arguments.get(k) in (None, "")]
    if missing:
        logger.error(f"[TOOLS] Tool arguments missing keys. Required: {required_keys}, Got: {list(arguments.keys())}")
        return False

    return True
