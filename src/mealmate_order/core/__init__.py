"""
Core module initialization.
"""

from .errors import (
    OrderAgentError,
    ToolError,
    SessionError,
    AgentProtocolError,
    RequestValidationError,
    FlowActionError,
    OrderTransitionError,
    TerminalRecordError,
)

from .config import Settings, get_settings

from .retry_utils import (
    retry_with_backoff,
    RetryConfig,
    NO_RETRY,
    RpcResponseValidator,
    validate_tool_arguments,
)

from .db import get_db_connection, init_database

from .llm_engine import (
    ReasoningAgentClient,
    OllamaAgentClient,
    AnthropicAgentClient,
    create_agent_client,
)

__all__ = [
    # Errors
    "OrderAgentError",
    "ToolError",
    "SessionError",
    "AgentProtocolError",
    "RequestValidationError",
    "FlowActionError",
    "OrderTransitionError",
    "TerminalRecordError",
    # Config
    "Settings",
    "get_settings",
    # Retry and validation
    "retry_with_backoff",
    "RetryConfig",
    "NO_RETRY",
    "RpcResponseValidator",
    "validate_tool_arguments",
    # Database
    "get_db_connection",
    "init_database",
    # Reasoning agents
    "ReasoningAgentClient",
    "OllamaAgentClient",
    "AnthropicAgentClient",
    "create_agent_client",
]
