"""
Agent loop - lets a reasoning agent fill the cart through tool calls, using LangGraph.
Control flow: call_agent -> run_tools -> call_agent ... -> finalize.

The loop ends when the agent calls order_complete, stops on its own, returns
an unexpected stop reason, or hits the round cap. Every ending fetches the
final cart once and reports a CartBuildResult; only order_complete counts as
completion.
"""

import json
import logging
import uuid
from typing import Optional

from langgraph.graph import StateGraph, END

from ..core.errors import AgentProtocolError, SessionError, ToolError
from ..core.llm_engine import STOP_END_TURN, STOP_TOOL_USE, ReasoningAgentClient
from ..core.retry_utils import RetryConfig, retry_with_backoff
from ..models.state import AgentLoopState, CartBuildRequest, CartBuildResult, ToolCall, ToolResult
from ..utils.instamart_client import CartTools
from ..utils.memory_utils import save_memory
from .cart_builder import CartBuilder, dedupe, match_item_name
from .prompts import SYSTEM_PROMPT, build_order_instruction, extract_not_found
from .tools import ADD_TOOL, COMPLETE_TOOL, SEARCH_TOOL, CartToolbox, agent_tool_schemas

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S"
)
logger = logging.getLogger(__name__)

DEFAULT_MAX_ROUNDS = 50


def route_after_agent(state: AgentLoopState) -> str:
    if state.pending_calls:
        return "run_tools"
    return "finalize"


def route_after_tools(state: AgentLoopState) -> str:
    if state.completed or state.termination_reason:
        return "finalize"
    return "call_agent"


class AgentCartBuilder(CartBuilder):
    """Cart builder driven by a tool-using reasoning agent."""

    def __init__(
        self,
        client: ReasoningAgentClient,
        tools: CartTools,
        max_rounds: int = DEFAULT_MAX_ROUNDS,
        db_path: Optional[str] = None,
        retry_config: Optional[RetryConfig] = None,
    ):
        if max_rounds < 1:
            raise ValueError("max_rounds must be at least 1")
        self.client = client
        self.tools = tools
        self.toolbox = CartToolbox(tools)
        self.max_rounds = max_rounds
        self.db_path = db_path
        self.retry_config = retry_config or RetryConfig()
        self.graph = self.build_graph()

    # ------------------------------------------------------------------
    # Graph
    # ------------------------------------------------------------------

    def build_graph(self):
        workflow = StateGraph(AgentLoopState)

        workflow.add_node("call_agent", self.call_agent)
        workflow.add_node("run_tools", self.run_tools)
        workflow.add_node("finalize", self.finalize)

        workflow.set_entry_point("call_agent")

        workflow.add_conditional_edges("call_agent", route_after_agent)
        workflow.add_conditional_edges("run_tools", route_after_tools)
        workflow.add_edge("finalize", END)

        return workflow.compile()

    def call_agent(self, state: AgentLoopState) -> AgentLoopState:
        state.rounds += 1
        logger.info(f"[AGENT-LOOP] Round {state.rounds}/{state.max_rounds} for session {state.session_id}")

        try:
            response = self.client.invoke(SYSTEM_PROMPT, agent_tool_schemas(), state.messages)
        except SessionError:
            raise
        except Exception as e:
            logger.error(f"[AGENT-LOOP] Agent call failed: {str(e)}", exc_info=True)
            state.error = str(e)
            state.termination_reason = "agent_error"
            return state

        state.stop_reason = response.stop_reason
        state.messages.append({
            "role": "assistant",
            "content": response.text,
            "tool_calls": [c.model_dump() for c in response.tool_calls],
        })
        if response.text:
            self._trace(state, "agent_text", response.text)

        if response.stop_reason == STOP_TOOL_USE and response.tool_calls:
            state.pending_calls = list(response.tool_calls)
        elif response.stop_reason == STOP_END_TURN:
            logger.warning("[AGENT-LOOP] Agent ended its turn without calling order_complete")
            state.termination_reason = "end_turn"
        else:
            error = AgentProtocolError(response.stop_reason)
            logger.error(f"[AGENT-LOOP] {error.message}")
            state.error = error.message
            state.termination_reason = "protocol_error"

        return state

    def run_tools(self, state: AgentLoopState) -> AgentLoopState:
        results = []

        for call in state.pending_calls:
            self._trace(state, "tool_call", json.dumps(call.model_dump(), default=str))

            if call.name == COMPLETE_TOOL:
                result = self._complete(state, call)
            else:
                result = self.toolbox.execute(call)
                self._track(state, call, result)

            self._trace(
                state,
                "tool_error" if result.is_error else "tool_result",
                json.dumps(result.content, default=str),
            )
            results.append(result.model_dump())

        state.messages.append({"role": "tool", "results": results})
        state.pending_calls = []

        if state.completed:
            state.termination_reason = "completed"
        elif state.rounds >= state.max_rounds:
            logger.warning(f"[AGENT-LOOP] Round cap of {state.max_rounds} reached without completion")
            state.termination_reason = "round_cap"

        return state

    def finalize(self, state: AgentLoopState) -> AgentLoopState:
        # Also after an agent failure: earlier adds are still in the remote cart
        try:
            state.final_cart = retry_with_backoff(self.tools.get_cart, self.retry_config)()
            logger.info(
                f"[AGENT-LOOP] Final cart: {state.final_cart.item_count} items, "
                f"₹{state.final_cart.total:.2f}"
            )
        except ToolError as e:
            logger.warning(f"[AGENT-LOOP] Could not fetch final cart: {e.message}")

        return state

    # ------------------------------------------------------------------
    # Bookkeeping
    # ------------------------------------------------------------------

    def _complete(self, state: AgentLoopState, call: ToolCall) -> ToolResult:
        state.completed = True
        state.completion_summary = str(call.input.get("summary") or "")

        reported = call.input.get("items_not_found")
        if isinstance(reported, list):
            state.reported_not_found = [str(r) for r in reported if str(r).strip()]

        logger.info(f"[AGENT-LOOP] order_complete received: {state.completion_summary[:120]}")
        return ToolResult(tool_call_id=call.id, name=call.name, content={"acknowledged": True})

    def _track(self, state: AgentLoopState, call: ToolCall, result: ToolResult) -> None:
        if call.name == SEARCH_TOOL and not result.is_error:
            query = str(call.input.get("query", ""))
            state.last_query = query
            for product in result.content.get("products", []):
                state.product_queries[str(product["id"])] = query

        elif call.name == ADD_TOOL:
            product_id = str(call.input.get("product_id", ""))
            query = state.product_queries.get(product_id) or state.last_query or product_id
            item = match_item_name(query, state.item_names)
            if result.is_error:
                state.failed_queries.append(item)
            else:
                state.items_added += 1
                state.added_queries.append(item)

    def _trace(self, state: AgentLoopState, memory_type: str, content: str) -> None:
        if self.db_path:
            save_memory(state.session_id, memory_type, content, {"round": state.rounds}, db_path=self.db_path)

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------

    def build(self, request: CartBuildRequest, session_id: Optional[str] = None) -> CartBuildResult:
        session_id = session_id or str(uuid.uuid4())
        item_names = [i.name for i in request.grocery_items]

        logger.info(f"[AGENT-LOOP] Building cart for session {session_id}: {len(item_names)} items")

        initial_state = AgentLoopState(
            session_id=session_id,
            item_names=item_names,
            max_rounds=self.max_rounds,
            messages=[{
                "role": "user",
                "content": build_order_instruction(request.grocery_items, request.allergens, request.family_size),
            }],
        )

        # Two graph steps per round plus finalize
        result = self.graph.invoke(initial_state, config={"recursion_limit": 2 * self.max_rounds + 5})

        # LangGraph returns dict
        final_state = AgentLoopState(**result)
        build_result = self._summarize(final_state)

        logger.info(
            f"[AGENT-LOOP] Finished after {build_result.rounds} rounds ({build_result.termination_reason}): "
            f"{build_result.items_added} added, {len(build_result.items_not_found)} not found"
        )
        return build_result

    def _summarize(self, state: AgentLoopState) -> CartBuildResult:
        cart = state.final_cart
        added_names = dedupe(state.added_queries)
        added = {name.lower() for name in added_names}

        if state.termination_reason == "agent_error":
            if state.items_added:
                message = (
                    f"The agent failed after adding {len(added_names)} items ({state.error}); "
                    "the cart may be partial"
                )
            else:
                message = f"Failed to build order: {state.error}"
            return CartBuildResult(
                success=False,
                cart_id=(cart.id if cart and cart.id else None) or self.tools.cart_id,
                items_added=state.items_added,
                items_added_names=added_names,
                items_not_found=[name for name in state.item_names if name.lower() not in added],
                estimated_total=cart.total if cart else None,
                final_cart=cart,
                message=message,
                rounds=state.rounds,
                termination_reason="agent_error",
                error=state.error,
            )

        if state.reported_not_found is not None:
            reported = state.reported_not_found
        else:
            reported = extract_not_found(state.completion_summary)
        never_added = [name for name in state.failed_queries if name.lower() not in added]
        items_not_found = dedupe(list(reported) + never_added)

        return CartBuildResult(
            success=state.completed and state.items_added > 0,
            completed=state.completed,
            cart_id=(cart.id if cart and cart.id else None) or self.tools.cart_id,
            items_added=state.items_added,
            items_added_names=added_names,
            items_not_found=items_not_found,
            estimated_total=cart.total if cart else None,
            final_cart=cart,
            message=self._message(state),
            rounds=state.rounds,
            termination_reason=state.termination_reason,
            error=state.error,
        )

    @staticmethod
    def _message(state: AgentLoopState) -> str:
        if state.termination_reason == "completed":
            return state.completion_summary or "Cart built successfully"
        if state.termination_reason == "round_cap":
            return f"Stopped after {state.rounds} rounds without completion; the cart may be partial"
        if state.termination_reason == "end_turn":
            return "The agent stopped without confirming the cart was complete"
        return state.error or "The agent stopped unexpectedly"
