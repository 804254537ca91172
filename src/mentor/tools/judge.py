"""
Judge tool: lets the mentor model grade the student's work on request.

The caller identity is bound by the host when the tool is created. The
payload the model sends is never trusted for identity: it must name the
bound caller and a thread that caller owns.
"""

from collections.abc import Mapping
from typing import Any

from langchain_core.language_models import BaseChatModel
from sqlalchemy.ext.asyncio import AsyncSession

from mentor.services.judge_service import JudgeResult, run_judge
from mentor.services.thread_service import ThreadAccessDeniedError, get_thread
from mentor.tools.schemas import ThreadOwnershipInput, parse_tool_input

JUDGE_TOOL_NAME = "judge"
JUDGE_TOOL_DESCRIPTION = "Run when the user indicates task completion or asks to be checked."


async def check_thread_ownership(
    session: AsyncSession, input: ThreadOwnershipInput, caller_id: str
) -> None:
    """
    Verify the payload names the caller and a thread the caller owns.

    Raises:
        ThreadAccessDeniedError: If the payload user is not the caller
        ThreadNotFoundError / ThreadAccessDeniedError: From the thread lookup
    """
    if input.user_id != caller_id:
        raise ThreadAccessDeniedError("Judge payload does not match the calling user")

    await get_thread(session, input.thread_id, caller_id)


async def judge(
    payload: Mapping[str, Any],
    caller_id: str,
    session: AsyncSession,
    model: BaseChatModel,
) -> JudgeResult:
    """
    Validate, authorize and run the judging routine.

    Args:
        payload: Raw tool arguments (``thread_id``, ``user_id``)
        caller_id: Identity bound by the host
        session: Database session
        model: Chat model used for grading

    Raises:
        InvalidToolInputError: If the payload is malformed
        ThreadAccessDeniedError: If ownership does not check out
    """
    input = parse_tool_input(ThreadOwnershipInput, payload)
    await check_thread_ownership(session, input, caller_id)
    return await run_judge(session, model, input.thread_id, input.user_id)
