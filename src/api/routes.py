"""
API routes for the AI mentor.

Provides endpoints for:
- Threads: create (with welcome message), read, list, close
- Chat: send a message and get the mentor's reply
- Judge: grade the thread on request
"""

import logging
from typing import Literal

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from agent.graph import MentorAgent
from api.agents import get_agent
from api.auth import UserContext, get_user_context
from api.database import get_session
from mentor.models import Message, Thread, ThreadCreate, ThreadStatus
from mentor.services import thread_service
from mentor.services.judge_service import JudgeResult
from mentor.settings import get_settings
from mentor.tools.judge import judge

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/ai", tags=["mentor"])


# =============================================================================
# Request/Response Models
# =============================================================================


class CreateThreadRequest(BaseModel):
    """Request to open a thread on a mentor-lesson."""

    ai_mentor_lesson_id: str = Field(..., min_length=1, description="Mentor-lesson to talk to")
    user_language: str = Field("en", min_length=2, max_length=20, description="Language of the conversation")


class CreateThreadResponse(BaseModel):
    data: Thread
    welcome: Message = Field(..., description="The mentor's opening message")


class ThreadResponse(BaseModel):
    data: Thread


class ThreadListResponse(BaseModel):
    data: list[Thread]


class MessageListResponse(BaseModel):
    data: list[Message]


class ChatRequest(BaseModel):
    """Request to chat with the mentor."""

    thread_id: str = Field(..., min_length=1, description="Active thread owned by the caller")
    message: str = Field(..., min_length=1, description="The user's message")


class ChatResponse(BaseModel):
    data: Message = Field(..., description="The mentor's reply")


class UpdateThreadRequest(BaseModel):
    status: Literal["completed", "abandoned"]


# =============================================================================
# Threads
# =============================================================================


@router.post("/thread", response_model=CreateThreadResponse, status_code=201)
async def create_thread(
    request: CreateThreadRequest,
    ctx: UserContext = Depends(get_user_context),
    session: AsyncSession = Depends(get_session),
    agent: MentorAgent = Depends(get_agent),
):
    """Create a thread, then write its system prompt and welcome message."""
    settings = get_settings()
    result = await thread_service.create_thread(
        session,
        ThreadCreate(
            ai_mentor_lesson_id=request.ai_mentor_lesson_id,
            user_id=ctx.user_id,
            user_language=request.user_language,
            tenant_id=ctx.tenant_id,
        ),
        role=ctx.role,
        access_check=thread_service.lesson_access_check_for(settings.enforce_lesson_access),
    )
    thread = result["data"]

    welcome = await agent.start_conversation(thread.id, ctx.user_id)
    return CreateThreadResponse(data=thread, welcome=welcome)


@router.get("/thread/{thread_id}", response_model=ThreadResponse)
async def get_thread(
    thread_id: str,
    ctx: UserContext = Depends(get_user_context),
    session: AsyncSession = Depends(get_session),
):
    thread = await thread_service.get_thread(session, thread_id, ctx.user_id)
    return ThreadResponse(data=thread)


@router.patch("/thread/{thread_id}", response_model=ThreadResponse)
async def update_thread_status(
    thread_id: str,
    request: UpdateThreadRequest,
    ctx: UserContext = Depends(get_user_context),
    session: AsyncSession = Depends(get_session),
):
    """Complete or abandon an active thread."""
    thread = await thread_service.set_thread_status(
        session, thread_id, ctx.user_id, ThreadStatus(request.status)
    )
    return ThreadResponse(data=thread)


@router.get("/threads", response_model=ThreadListResponse)
async def list_threads(
    lesson: str = Query(..., min_length=1, description="Lesson ID"),
    ctx: UserContext = Depends(get_user_context),
    session: AsyncSession = Depends(get_session),
):
    threads = await thread_service.list_threads(session, lesson, ctx.user_id)
    return ThreadListResponse(data=threads)


@router.get("/thread/{thread_id}/messages", response_model=MessageListResponse)
async def get_thread_messages(
    thread_id: str,
    ctx: UserContext = Depends(get_user_context),
    session: AsyncSession = Depends(get_session),
):
    messages = await thread_service.get_thread_messages(session, thread_id, ctx.user_id)
    return MessageListResponse(data=messages)


# =============================================================================
# Chat / Judge
# =============================================================================


@router.post("/chat", response_model=ChatResponse)
async def chat(
    request: ChatRequest,
    ctx: UserContext = Depends(get_user_context),
    agent: MentorAgent = Depends(get_agent),
):
    """Send a message on an active thread and return the mentor's reply."""
    reply = await agent.send_message(request.thread_id, ctx.user_id, request.message)
    return ChatResponse(data=reply)


@router.post("/judge/{thread_id}", response_model=JudgeResult)
async def judge_thread(
    thread_id: str,
    ctx: UserContext = Depends(get_user_context),
    session: AsyncSession = Depends(get_session),
    agent: MentorAgent = Depends(get_agent),
):
    """Grade the caller's thread against the lesson's completion conditions."""
    result = await judge(
        {"thread_id": thread_id, "user_id": ctx.user_id},
        caller_id=ctx.user_id,
        session=session,
        model=agent.judge_model,
    )
    logger.info(f"Judged thread {thread_id}: {result.score}/{result.max_score}")
    return result
