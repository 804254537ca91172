"""
Mentor tools - host-side implementations of the tools the mentor model can call.

Usage:
    from mentor.tools import judge, JUDGE_TOOL_NAME

    result = await judge({"thread_id": tid, "user_id": uid}, caller_id=uid,
                         session=session, model=model)
"""

from mentor.tools.documents import (
    SEARCH_TOOL_DESCRIPTION,
    SEARCH_TOOL_NAME,
    search_lesson_documents,
)
from mentor.tools.judge import (
    JUDGE_TOOL_DESCRIPTION,
    JUDGE_TOOL_NAME,
    check_thread_ownership,
    judge,
)
from mentor.tools.schemas import (
    DocumentPassage,
    InvalidToolInputError,
    SearchDocumentsInput,
    SearchDocumentsOutput,
    ThreadOwnershipInput,
    ToolError,
    parse_tool_input,
)

__all__ = [
    # Judge
    "JUDGE_TOOL_DESCRIPTION",
    "JUDGE_TOOL_NAME",
    "check_thread_ownership",
    "judge",
    # Document search
    "SEARCH_TOOL_DESCRIPTION",
    "SEARCH_TOOL_NAME",
    "search_lesson_documents",
    # Schemas
    "DocumentPassage",
    "InvalidToolInputError",
    "SearchDocumentsInput",
    "SearchDocumentsOutput",
    "ThreadOwnershipInput",
    "ToolError",
    "parse_tool_input",
]
