"""
LangGraph agent definition for the AI mentor.

This module defines the agent graph that:
1. Receives the prompt assembled from a thread
2. Processes it with the mentor model
3. Executes tools (judge, lesson document search)
4. Returns the mentor's reply

``MentorAgent`` wraps the graph with the thread lifecycle: system prompt
and welcome message on start, summarization and persistence per turn.
"""

import json
import logging
from collections.abc import Callable
from typing import Literal

from langchain_anthropic import ChatAnthropic
from langchain_core.language_models import BaseChatModel
from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage, ToolMessage
from langchain_core.runnables import RunnableConfig
from langgraph.graph import END, StateGraph
from langgraph.graph.state import CompiledStateGraph
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from agent.prompts import build_summary_prompt, build_system_prompt, build_welcome_prompt
from agent.state import AgentState
from agent.tools import create_mentor_tools
from mentor.exceptions import ForbiddenError, InvalidInputError, MentorError, NotFoundError
from mentor.models import Message, MessageCreate, MessageRole, Thread
from mentor.services import message_service
from mentor.services.ingestion.embedding import Embedder
from mentor.services.thread_service import (
    ThreadNotActiveError,
    get_active_thread,
    get_mentor_lesson_context,
    get_thread,
)
from mentor.services.token_service import count_tokens
from mentor.settings import Settings, get_settings
from mentor.tools import ToolError
from mentor.utils.llm import content_text

logger = logging.getLogger(__name__)

# Agent/tool round trips allowed per user message
RECURSION_LIMIT = 12

# =============================================================================
# Node Functions
# =============================================================================


async def agent_node(
    state: AgentState,
    config: RunnableConfig,
) -> dict:
    """
    Main agent node: invoke the mentor model on the conversation.

    The system prompt is already the first message of the state.
    """
    configurable = config.get("configurable", {})
    model = configurable.get("model")
    tools = configurable.get("tools", [])

    if not model:
        raise ValueError("Model not configured. Pass model in configurable.")

    # Bind tools to model if available
    if tools:
        model_with_tools = model.bind_tools(tools)
    else:
        model_with_tools = model

    response = await model_with_tools.ainvoke(list(state.messages), config)

    return {"messages": [response]}


def _tool_error(e: Exception) -> str:
    if isinstance(e, NotFoundError):
        code = "NOT_FOUND"
    elif isinstance(e, ForbiddenError):
        code = "PERMISSION_DENIED"
    elif isinstance(e, ThreadNotActiveError):
        code = "INVALID_STATE"
    elif isinstance(e, (InvalidInputError, ValidationError)):
        code = "VALIDATION_FAILED"
    elif isinstance(e, MentorError):
        code = "EXTERNAL_ERROR"
    else:
        code = "INTERNAL_ERROR"
    return ToolError(error_code=code, message=str(e)).model_dump_json()


async def tool_node(
    state: AgentState,
    config: RunnableConfig,
) -> dict:
    """
    Tool execution node that runs requested tools.

    Tool failures are returned to the model as ToolError payloads.
    """
    configurable = config.get("configurable", {})
    tools = configurable.get("tools", [])

    if not tools:
        return {"messages": []}

    tools_by_name = {tool.name: tool for tool in tools}

    last_message = state.messages[-1]
    if not isinstance(last_message, AIMessage) or not last_message.tool_calls:
        return {"messages": []}

    outputs = []
    for tool_call in last_message.tool_calls:
        tool_name = tool_call["name"]
        tool_args = tool_call["args"]

        if tool_name not in tools_by_name:
            result = json.dumps({"error_code": "UNKNOWN_TOOL", "message": f"Unknown tool: {tool_name}"})
        else:
            try:
                result = await tools_by_name[tool_name].ainvoke(tool_args)
            except Exception as e:
                logger.warning(f"Tool {tool_name} failed on thread {state.thread_id}: {e}")
                result = _tool_error(e)

        outputs.append(
            ToolMessage(
                content=result,
                name=tool_name,
                tool_call_id=tool_call["id"],
            )
        )

    return {"messages": outputs}


def should_continue(state: AgentState) -> Literal["tools", "end"]:
    """
    Determine if the agent should continue to tools or end.

    Returns 'tools' if the last message has tool calls, otherwise 'end'.
    """
    if not state.messages:
        return "end"

    last_message = state.messages[-1]

    if isinstance(last_message, AIMessage) and last_message.tool_calls:
        return "tools"

    return "end"


# =============================================================================
# Graph Construction
# =============================================================================


def create_graph() -> StateGraph:
    """
    Create the agent graph structure.

    Returns an uncompiled StateGraph.
    """
    workflow = StateGraph(AgentState)

    workflow.add_node("agent", agent_node)
    workflow.add_node("tools", tool_node)

    workflow.set_entry_point("agent")

    workflow.add_conditional_edges(
        "agent",
        should_continue,
        {
            "tools": "tools",
            "end": END,
        },
    )

    workflow.add_edge("tools", "agent")

    return workflow


def to_langchain_messages(prompt: list[dict[str, str]]) -> list[BaseMessage]:
    """
    Convert ``{"role", "content"}`` dicts to LangChain messages.

    Leading system entries (system prompt, summary) become one
    SystemMessage; chat models accept a single system message up front.
    """
    system_parts = []
    index = 0
    while index < len(prompt) and prompt[index]["role"] == "system":
        system_parts.append(prompt[index]["content"])
        index += 1

    classes = {"system": SystemMessage, "user": HumanMessage, "assistant": AIMessage}
    messages: list[BaseMessage] = []
    if system_parts:
        messages.append(SystemMessage(content="\n\n".join(system_parts)))
    messages.extend(classes[item["role"]](content=item["content"]) for item in prompt[index:])
    return messages


# =============================================================================
# Mentor agent
# =============================================================================


class MentorAgent:
    """
    Conversation orchestrator for AI-mentor threads.

    All handles are explicit: the session factory, the mentor and judge
    models, and an optional embedder enabling document search.
    """

    def __init__(
        self,
        session_factory: Callable[[], AsyncSession],
        model: BaseChatModel,
        judge_model: BaseChatModel | None = None,
        embedder: Embedder | None = None,
        settings: Settings | None = None,
    ):
        self.session_factory = session_factory
        self.model = model
        self.judge_model = judge_model if judge_model is not None else model
        self.embedder = embedder
        self.settings = settings or get_settings()
        self.graph: CompiledStateGraph = create_graph().compile()

    def _count(self, text: str) -> int:
        return count_tokens(self.settings.token_model, text)

    async def _add_message(
        self,
        session: AsyncSession,
        thread_id: str,
        role: MessageRole,
        content: str,
        tool_name: str | None = None,
    ) -> Message:
        return await message_service.create_message(
            session,
            MessageCreate(
                thread_id=thread_id,
                role=role,
                content=content,
                token_count=self._count(content),
                tool_name=tool_name,
            ),
            commit=False,
        )

    async def start_conversation(self, thread_id: str, user_id: str) -> Message:
        """
        Write the system prompt and a model-generated welcome message.

        Returns:
            The welcome message
        """
        async with self.session_factory() as session:
            thread = await get_thread(session, thread_id, user_id)
            lesson = await get_mentor_lesson_context(session, thread_id)

            system_prompt = build_system_prompt(
                lesson, thread_id=thread.id, user_id=thread.user_id, language=thread.user_language
            )
            await self._add_message(session, thread_id, MessageRole.SYSTEM, system_prompt)

            response = await self.model.ainvoke([HumanMessage(content=build_welcome_prompt(system_prompt))])
            welcome = await self._add_message(
                session, thread_id, MessageRole.ASSISTANT, content_text(response)
            )
            await session.commit()

        logger.info(f"Started conversation on thread {thread_id}")
        return welcome

    async def summarize_if_needed(self, session: AsyncSession, thread: Thread) -> bool:
        """
        Summarize the conversation once unarchived tokens pass the threshold.

        Old messages are archived and the thread's single summary is
        replaced with one covering the previous summary and them.
        """
        total = await message_service.get_token_sum(session, thread.id)
        if total <= self.settings.summary_threshold:
            return False

        previous = await message_service.get_first_by_role(session, thread.id, MessageRole.SUMMARY)
        history = await message_service.get_history(session, thread.id, archived=False)

        lines = [f"summary: {previous.content}"] if previous else []
        lines.extend(f"{m.role.value}: {m.content}" for m in history)
        transcript = "\n".join(lines)

        response = await self.model.ainvoke(
            [HumanMessage(content=build_summary_prompt(transcript, thread.user_language))]
        )
        summary = content_text(response)
        await message_service.upsert_summary(session, thread.id, summary, self._count(summary))

        logger.info(f"Summarized thread {thread.id} at {total} tokens")
        return True

    def _tools(self, thread: Thread) -> list:
        return create_mentor_tools(
            self.session_factory,
            user_id=thread.user_id,
            lesson_id=thread.lesson_id,
            judge_model=self.judge_model,
            settings=self.settings,
            embedder=self.embedder,
        )

    async def send_message(self, thread_id: str, user_id: str, content: str) -> Message:
        """
        Answer a user message on an active, owned thread.

        Persists the user message, any tool results and the final
        assistant reply, in that order. The user message is committed
        before the model runs so tools (the judge) can read it.

        Returns:
            The assistant message

        Raises:
            ThreadNotFoundError / ThreadAccessDeniedError / ThreadNotActiveError
        """
        async with self.session_factory() as session:
            thread = await get_active_thread(session, thread_id, user_id)
            await self.summarize_if_needed(session, thread)
            prompt = await message_service.build_prompt(session, thread_id, content)
            await self._add_message(session, thread_id, MessageRole.USER, content)
            await session.commit()

        input_messages = to_langchain_messages(prompt)
        config: RunnableConfig = {
            "configurable": {"model": self.model, "tools": self._tools(thread)},
            "recursion_limit": RECURSION_LIMIT,
        }
        result = await self.graph.ainvoke(
            {"thread_id": thread_id, "user_id": user_id, "messages": input_messages},
            config,
        )
        produced = result["messages"][len(input_messages) :]

        async with self.session_factory() as session:
            for message in produced:
                if isinstance(message, ToolMessage):
                    await self._add_message(
                        session, thread_id, MessageRole.TOOL, content_text(message), message.name
                    )

            reply = content_text(produced[-1]) if produced else ""
            assistant = await self._add_message(session, thread_id, MessageRole.ASSISTANT, reply)
            await session.commit()

        return assistant


def create_mentor_agent(
    session_factory: Callable[[], AsyncSession],
    settings: Settings | None = None,
    embedder: Embedder | None = None,
) -> MentorAgent:
    """
    Create a MentorAgent with Anthropic models from settings.

    Args:
        session_factory: Callable that returns a fresh AsyncSession
        settings: Application settings (uses cached settings if not provided)
        embedder: Optional embedder enabling lesson document search
    """
    settings = settings or get_settings()

    model = ChatAnthropic(
        model=settings.tutor_model,
        temperature=settings.temperature,
        max_tokens=settings.max_tokens,
        api_key=settings.anthropic_api_key or None,
    )
    judge_model = ChatAnthropic(
        model=settings.judge_model,
        temperature=0,
        max_tokens=settings.max_tokens,
        api_key=settings.anthropic_api_key or None,
    )

    return MentorAgent(
        session_factory=session_factory,
        model=model,
        judge_model=judge_model,
        embedder=embedder,
        settings=settings,
    )
