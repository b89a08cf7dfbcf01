"""
Reasoning agent backends for the cart-building loop.

Each client takes the system prompt, the tool schemas and a provider-neutral
message history, runs one round against its model and returns an
AgentResponse. History entries look like:

    {"role": "user", "content": "..."}
    {"role": "assistant", "content": "...", "tool_calls": [{"id", "name", "input"}]}
    {"role": "tool", "results": [{"tool_call_id", "name", "content", "is_error"}]}
"""

import json
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

import anthropic
import ollama

from ..models.state import AgentResponse, ToolCall
from .config import Settings

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S"
)
logger = logging.getLogger(__name__)

STOP_TOOL_USE = "tool_use"
STOP_END_TURN = "end_turn"


class ReasoningAgentClient(ABC):
    """One round of tool-using reasoning."""

    @abstractmethod
    def invoke(
        self,
        system: str,
        tools: List[Dict[str, Any]],
        messages: List[Dict[str, Any]],
    ) -> AgentResponse:
        """Send the conversation so far and return the agent's next move."""


def _result_text(content: Any) -> str:
    if isinstance(content, str):
        return content
    return json.dumps(content, default=str)


class OllamaAgentClient(ReasoningAgentClient):
    """Local model served by Ollama, using its native tool calling."""

    def __init__(
        self,
        model: str = "qwen2.5:7b",
        host: str = "http://localhost:11434",
        timeout: Optional[float] = None,
        client: Optional[ollama.Client] = None,
    ):
        self.model = model
        self._client = client or ollama.Client(host=host, timeout=timeout)
        self._call_counter = 0

    @staticmethod
    def to_ollama_tools(tools: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        return [
            {
                "type": "function",
                "function": {
                    "name": t["name"],
                    "description": t["description"],
                    "parameters": t["parameters"],
                },
            }
            for t in tools
        ]

    @staticmethod
    def to_ollama_messages(system: str, messages: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        converted = [{"role": "system", "content": system}]
        for m in messages:
            if m["role"] == "user":
                converted.append({"role": "user", "content": m["content"]})
            elif m["role"] == "assistant":
                entry = {"role": "assistant", "content": m.get("content") or ""}
                if m.get("tool_calls"):
                    entry["tool_calls"] = [
                        {"function": {"name": c["name"], "arguments": c["input"]}}
                        for c in m["tool_calls"]
                    ]
                converted.append(entry)
            elif m["role"] == "tool":
                for r in m["results"]:
                    converted.append({
                        "role": "tool",
                        "tool_name": r["name"],
                        "content": _result_text(r["content"]),
                    })
        return converted

    def invoke(self, system, tools, messages) -> AgentResponse:
        logger.info(f"[LLM] Ollama round with {len(messages)} messages")

        response = self._client.chat(
            model=self.model,
            messages=self.to_ollama_messages(system, messages),
            tools=self.to_ollama_tools(tools),
            stream=False,
            options={
                "temperature": 0.2,  # steady tool selection
            },
        )

        message = response["message"]
        calls = []
        for raw in message.get("tool_calls") or []:
            self._call_counter += 1
            arguments = raw["function"]["arguments"]
            if isinstance(arguments, str):
                arguments = json.loads(arguments or "{}")
            calls.append(ToolCall(
                id=f"call_{self._call_counter}",
                name=raw["function"]["name"],
                input=dict(arguments or {}),
            ))

        if calls:
            stop_reason = STOP_TOOL_USE
        elif response.get("done_reason") == "length":
            stop_reason = "max_tokens"
        else:
            stop_reason = STOP_END_TURN

        return AgentResponse(stop_reason=stop_reason, text=message.get("content") or "", tool_calls=calls)


class AnthropicAgentClient(ReasoningAgentClient):
    """Claude through the Anthropic Messages API."""

    def __init__(
        self,
        api_key: str = "",
        model: str = "claude-sonnet-4-5-20250929",
        max_tokens: int = 4096,
        timeout: Optional[float] = None,
        client: Optional[anthropic.Anthropic] = None,
    ):
        if client is None and not api_key:
            raise ValueError(
                "Anthropic API key is not configured. "
                "Set MEALMATE_ANTHROPIC_API_KEY or ANTHROPIC_API_KEY."
            )
        self.model = model
        self.max_tokens = max_tokens
        self._client = client or anthropic.Anthropic(api_key=api_key, timeout=timeout)

    @staticmethod
    def to_anthropic_tools(tools: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        return [
            {"name": t["name"], "description": t["description"], "input_schema": t["parameters"]}
            for t in tools
        ]

    @staticmethod
    def to_anthropic_messages(messages: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        converted = []
        for m in messages:
            if m["role"] == "user":
                converted.append({"role": "user", "content": m["content"]})
            elif m["role"] == "assistant":
                blocks = []
                if m.get("content"):
                    blocks.append({"type": "text", "text": m["content"]})
                for c in m.get("tool_calls") or []:
                    blocks.append({"type": "tool_use", "id": c["id"], "name": c["name"], "input": c["input"]})
                if blocks:
                    converted.append({"role": "assistant", "content": blocks})
            elif m["role"] == "tool":
                converted.append({
                    "role": "user",
                    "content": [
                        {
                            "type": "tool_result",
                            "tool_use_id": r["tool_call_id"],
                            "content": _result_text(r["content"]),
                            "is_error": r["is_error"],
                        }
                        for r in m["results"]
                    ],
                })
        return converted

    def invoke(self, system, tools, messages) -> AgentResponse:
        logger.info(f"[LLM] Claude round with {len(messages)} messages")

        response = self._client.messages.create(
            model=self.model,
            max_tokens=self.max_tokens,
            system=system,
            tools=self.to_anthropic_tools(tools),
            messages=self.to_anthropic_messages(messages),
        )

        text_parts = []
        calls = []
        for block in response.content:
            if block.type == "text":
                text_parts.append(block.text)
            elif block.type == "tool_use":
                calls.append(ToolCall(id=block.id, name=block.name, input=dict(block.input or {})))

        return AgentResponse(stop_reason=response.stop_reason, text="\n".join(text_parts), tool_calls=calls)


def create_agent_client(settings: Settings) -> Optional[ReasoningAgentClient]:
    """Build the configured reasoning agent client, or None when agent mode is off."""
    backend = settings.agent_backend
    if backend == "ollama":
        return OllamaAgentClient(
            model=settings.ollama_model,
            host=settings.ollama_host,
            timeout=settings.round_timeout_seconds,
        )
    if backend == "anthropic":
        return AnthropicAgentClient(
            api_key=settings.anthropic_api_key or "",
            model=settings.anthropic_model,
            max_tokens=settings.max_tokens,
            timeout=settings.round_timeout_seconds,
        )
    if backend == "none":
        return None
    raise ValueError(f"Unknown agent backend: {backend}")
