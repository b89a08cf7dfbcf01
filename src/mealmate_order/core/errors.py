"""
Error types raised across the order agent.
Tool and session failures come from the remote cart service; the rest are local.
"""

from typing import Optional


class OrderAgentError(Exception):
    """Base exception for order agent errors."""

    def __init__(self, message: str, retry_possible: bool = False):
        self.message = message
        self.retry_possible = retry_possible
        super().__init__(self.message)


class ToolError(OrderAgentError):
    """A single remote cart operation failed."""

    def __init__(
        self,
        message: str,
        tool: str,
        item: Optional[str] = None,
        retry_possible: bool = True
    ):
        self.tool = tool
        self.item = item
        super().__init__(message, retry_possible=retry_possible)


class SessionError(OrderAgentError):
    """The Swiggy login is missing, expired or rejected."""

    def __init__(self, message: str = "Swiggy session expired. Please reconnect your account."):
        super().__init__(message, retry_possible=False)


class AgentProtocolError(OrderAgentError):
    """The reasoning agent stopped for a reason the loop does not understand."""

    def __init__(self, stop_reason: Optional[str]):
        self.stop_reason = stop_reason
        super().__init__(f"Unexpected stop reason from agent: {stop_reason}")


class RequestValidationError(OrderAgentError):
    """Caller input rejected before any remote call."""

    def __init__(self, message: str, reason: str = "invalidRequest"):
        self.reason = reason
        super().__init__(message)


class FlowActionError(RequestValidationError):
    """Quick action not valid in the conversation's current state."""

    def __init__(self, action: str, state: str):
        self.action = action
        self.state = state
        super().__init__(f"Action {action} is not available in state {state}", reason="invalidAction")


class OrderTransitionError(OrderAgentError):
    """Order status change that the lifecycle does not allow."""

    def __init__(self, order_id: str, current: str, target: str):
        self.order_id = order_id
        self.current = current
        self.target = target
        super().__init__(f"Order {order_id} cannot move from {current} to {target}")


class TerminalRecordError(OrderTransitionError):
    """Mutation attempted on an order that already reached a terminal status."""
