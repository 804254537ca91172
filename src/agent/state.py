"""
Agent state definition for the AI mentor.

The state holds the conversation for one turn: the prompt assembled
from the thread (system prompt, summary, history, new user message) plus
whatever the agent and tools add while answering.
"""

from typing import Annotated

from langchain_core.messages import BaseMessage
from langgraph.graph.message import add_messages
from pydantic import BaseModel, Field


class AgentState(BaseModel):
    """State for the mentor agent."""

    thread_id: str
    user_id: str

    # Conversation history - uses add_messages reducer for proper merging
    messages: Annotated[list[BaseMessage], add_messages] = Field(default_factory=list)
