"""Bounded tool-calling loop for the chat assistant, built on LangGraph.

The graph has two nodes and one way out:

    START -> agent -> (tool calls requested?) -> tools -> agent -> ... -> END

``agent`` invokes the model with the conversation so far. When the model
answers without requesting tools, the loop ends. Otherwise ``tools`` runs
every requested call in order and appends one ``ToolMessage`` per call.
After ``max_iterations`` model invocations the loop stops regardless and the
last text the model produced (or a fallback) becomes the reply.

Only the visible exchange (user message + final reply) is persisted; the
intermediate tool turns live only for the duration of the request.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from langchain_core.language_models import BaseChatModel
from langchain_core.messages import (
    AIMessage,
    BaseMessage,
    HumanMessage,
    SystemMessage,
    ToolMessage,
)
from langchain_core.tools import BaseTool
from langgraph.graph import END, StateGraph
from pydantic import BaseModel, Field

from cardstack.core.logging_config import get_logger
from cardstack.models.db_models import utcnow
from cardstack.models.entities import CreatedEntities, Message, SendMessageResponse
from cardstack.services import repository
from cardstack.services.chat_tools import create_tools_for_user, execute_tool
from cardstack.services.database import SessionFactory, session_scope
from cardstack.services.llm_config import get_chat_llm, get_llm_config
from cardstack.services.prompts import format_system_prompt

logger = get_logger(__name__)

FALLBACK_REPLY = (
    "I wasn't able to finish that request. Please try again or rephrase what you need."
)


# =============================================================================
# Configuration and results
# =============================================================================


@dataclass(frozen=True)
class ChatAgentConfig:
    """Configuration for one run of the tool loop.

    Attributes:
        max_iterations: Maximum number of model invocations per user message.
        fallback_reply: Reply used when the model never produced any text.
        system_prompt: System prompt placed at the start of the conversation.
    """

    max_iterations: int = 5
    fallback_reply: str = FALLBACK_REPLY
    system_prompt: str = field(default_factory=format_system_prompt)

    def __post_init__(self) -> None:
        if self.max_iterations < 1:
            raise ValueError(f"max_iterations must be at least 1, got {self.max_iterations}")

    @classmethod
    def from_env(cls) -> ChatAgentConfig:
        return cls(max_iterations=get_llm_config().max_tool_iterations)


@dataclass
class ChatAgentResult:
    """Outcome of the tool loop for one user message."""

    content: str
    iterations: int
    tool_calls: list[str] = field(default_factory=list)
    hit_iteration_limit: bool = False


class ToolLoopState(BaseModel):
    """State flowing through the tool-loop graph."""

    messages: list[BaseMessage] = Field(default_factory=list)
    iterations: int = 0


# =============================================================================
# Helpers
# =============================================================================


def _content_text(content: Any) -> str:
    """Flatten message content (string or content blocks) into plain text."""
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts = []
        for block in content:
            if isinstance(block, str):
                parts.append(block)
            elif isinstance(block, dict) and block.get("type") == "text":
                parts.append(block.get("text", ""))
        return "".join(parts)
    return ""


def history_to_messages(history: list[Message]) -> list[BaseMessage]:
    """Map persisted chat messages to typed conversation turns."""
    turns: list[BaseMessage] = []
    for message in history:
        if message.role == "user":
            turns.append(HumanMessage(content=message.content))
        else:
            turns.append(AIMessage(content=message.content))
    return turns


# =============================================================================
# Agent
# =============================================================================


class ChatAgent:
    """Runs the bounded model/tool loop for a single user's tool set.

    Attributes:
        config: Loop limits and prompt.
        tools: Tools bound to the acting user.
        model: Chat model with the tools bound.
        graph: Compiled LangGraph for one loop execution.
    """

    def __init__(
        self,
        llm: BaseChatModel,
        tools: list[BaseTool],
        config: ChatAgentConfig | None = None,
    ) -> None:
        self.config = config or ChatAgentConfig()
        self.tools = tools
        self.model = llm.bind_tools(tools)
        self.graph = self._build_graph()

    def _build_graph(self) -> Any:
        graph = StateGraph(ToolLoopState)

        graph.add_node("agent", self._agent_node)
        graph.add_node("tools", self._tools_node)

        graph.set_entry_point("agent")
        graph.add_conditional_edges("agent", self._route_after_agent, {"tools": "tools", END: END})
        graph.add_conditional_edges("tools", self._route_after_tools, {"agent": "agent", END: END})

        return graph.compile()

    def _agent_node(self, state: ToolLoopState) -> dict[str, Any]:
        iteration = state.iterations + 1
        response = self.model.invoke(state.messages)
        tool_calls = getattr(response, "tool_calls", None) or []
        logger.debug(
            "Model responded",
            extra={
                "extra_data": {
                    "iteration": iteration,
                    "tool_calls": [call["name"] for call in tool_calls],
                }
            },
        )
        return {"messages": [*state.messages, response], "iterations": iteration}

    def _tools_node(self, state: ToolLoopState) -> dict[str, Any]:
        request = state.messages[-1]
        results: list[BaseMessage] = []
        # Sequential on purpose: a later call may depend on an earlier one
        for call in request.tool_calls:
            output = execute_tool(self.tools, call["name"], call.get("args") or {})
            results.append(
                ToolMessage(content=output, tool_call_id=call["id"], name=call["name"])
            )
        return {"messages": [*state.messages, *results]}

    def _route_after_agent(self, state: ToolLoopState) -> str:
        last = state.messages[-1]
        if isinstance(last, AIMessage) and last.tool_calls:
            return "tools"
        return END

    def _route_after_tools(self, state: ToolLoopState) -> str:
        if state.iterations >= self.config.max_iterations:
            logger.warning(
                "Tool loop reached iteration limit",
                extra={"extra_data": {"max_iterations": self.config.max_iterations}},
            )
            return END
        return "agent"

    def run(self, history: list[Message], content: str) -> ChatAgentResult:
        """Answer one user message, executing tool calls along the way.

        Args:
            history: Persisted messages of the chat, oldest first.
            content: The new user message.

        Returns:
            ChatAgentResult with the final reply text.
        """
        initial = ToolLoopState(
            messages=[
                SystemMessage(content=self.config.system_prompt),
                *history_to_messages(history),
                HumanMessage(content=content),
            ]
        )
        final_state = self.graph.invoke(
            initial, config={"recursion_limit": 2 * self.config.max_iterations + 2}
        )
        messages: list[BaseMessage] = final_state["messages"]
        iterations: int = final_state["iterations"]
        turn = messages[len(initial.messages):]

        reply = ""
        for message in reversed(turn):
            if isinstance(message, AIMessage):
                reply = _content_text(message.content).strip()
                if reply:
                    break

        last = messages[-1]
        return ChatAgentResult(
            content=reply or self.config.fallback_reply,
            iterations=iterations,
            tool_calls=[m.name for m in turn if isinstance(m, ToolMessage)],
            hit_iteration_limit=not isinstance(last, AIMessage) or bool(last.tool_calls),
        )


# =============================================================================
# Entry point
# =============================================================================


def process_chat_message(
    session_factory: SessionFactory,
    user_id: str,
    chat_id: str,
    content: str,
    llm: BaseChatModel | None = None,
    config: ChatAgentConfig | None = None,
    llm_factory: Callable[[], BaseChatModel] | None = None,
) -> SendMessageResponse:
    """Run the assistant for one user message and persist the exchange.

    Args:
        session_factory: Factory for database sessions.
        user_id: Authenticated user id; the tools are bound to it.
        chat_id: Chat the message belongs to.
        content: The user's message text.
        llm: Optional chat model; defaults to the configured OpenAI model.
        config: Optional loop configuration.
        llm_factory: Builds the chat model when ``llm`` is not given. It runs
            only after the chat is found, so configuration errors never mask
            a missing chat.

    Returns:
        SendMessageResponse with the persisted pair and created entities.

    Raises:
        ChatNotFoundError: If the chat does not belong to the user.
    """
    received_at: datetime = utcnow()

    with session_scope(session_factory) as session:
        history = repository.get_chat_with_messages(session, chat_id, user_id).messages

    created = CreatedEntities()
    tools = create_tools_for_user(user_id, session_factory, created)
    if llm is None:
        llm = (llm_factory or get_chat_llm)()
    agent = ChatAgent(llm, tools, config or ChatAgentConfig.from_env())

    log = logger.bind(user_id=user_id, chat_id=chat_id)
    log.info(
        "Processing chat message",
        extra={
            "extra_data": {
                "history_length": len(history),
                "message_preview": content[:100],
            }
        },
    )
    result = agent.run(history, content)

    with session_scope(session_factory) as session:
        user_message, assistant_message = repository.save_chat_exchange(
            session,
            chat_id,
            user_id,
            user_content=content,
            assistant_content=result.content,
            user_created_at=received_at,
        )

    log.info(
        "Chat message processed",
        extra={
            "extra_data": {
                "iterations": result.iterations,
                "tool_calls": result.tool_calls,
                "hit_iteration_limit": result.hit_iteration_limit,
            }
        },
    )

    return SendMessageResponse(
        user_message=user_message,
        assistant_message=assistant_message,
        created_entities=created,
    )
