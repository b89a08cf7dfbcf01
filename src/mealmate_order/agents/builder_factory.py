"""
Choose between the agent-driven and the scripted cart builder.
"""

import logging
from typing import Callable, Optional

from ..core.config import Settings, get_settings
from ..core.llm_engine import ReasoningAgentClient, create_agent_client
from ..utils.instamart_client import CartTools
from .agent_loop import AgentCartBuilder
from .cart_builder import CartBuilder
from .scripted import ScriptedCartBuilder

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S"
)
logger = logging.getLogger(__name__)

BuilderFactory = Callable[[CartTools], CartBuilder]


def select_cart_builder(
    tools: CartTools,
    client: Optional[ReasoningAgentClient] = None,
    max_rounds: int = 50,
    db_path: Optional[str] = None,
) -> CartBuilder:
    """Agent builder when a reasoning agent is available, scripted builder otherwise."""
    if client is not None:
        return AgentCartBuilder(client, tools, max_rounds=max_rounds, db_path=db_path)
    logger.info("[BUILDER] No reasoning agent configured, using scripted cart builder")
    return ScriptedCartBuilder(tools)


def make_builder_factory(
    settings: Optional[Settings] = None,
    client: Optional[ReasoningAgentClient] = None,
) -> BuilderFactory:
    """Builder factory bound to one reasoning agent client, created from settings when not given."""
    settings = settings or get_settings()
    if client is None:
        client = create_agent_client(settings)

    def factory(tools: CartTools) -> CartBuilder:
        return select_cart_builder(tools, client, max_rounds=settings.max_agent_rounds, db_path=settings.db_path)

    return factory
