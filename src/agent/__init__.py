"""
AI Mentor Agent - A LangGraph-based conversation partner for lessons.

The mentor plays a persona (a curious beginner or a role-play character)
that the student teaches. It can search the lesson's documents and call
the judge when the student asks to be checked.

Usage:
    from agent import create_mentor_agent

    agent = create_mentor_agent(session_factory, settings, embedder=embedder)
    welcome = await agent.start_conversation(thread_id, user_id)
    reply = await agent.send_message(thread_id, user_id, "Hello!")
"""

from agent.graph import MentorAgent, create_mentor_agent
from agent.state import AgentState
from agent.tools import create_mentor_tools

__all__ = [
    "MentorAgent",
    "create_mentor_agent",
    "create_mentor_tools",
    "AgentState",
]
