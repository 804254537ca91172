"""
LangGraph tool wrappers for the mentor tools.

These tools wrap ``mentor.tools`` to work with LangGraph's tool calling.
Each tool opens its own session from the factory and is bound to the
thread's owner, so the model can never act for another user.
"""

from collections.abc import Callable

from langchain_core.language_models import BaseChatModel
from langchain_core.tools import StructuredTool
from sqlalchemy.ext.asyncio import AsyncSession

from mentor.services.ingestion.embedding import Embedder
from mentor.settings import Settings
from mentor.tools import (
    JUDGE_TOOL_DESCRIPTION,
    JUDGE_TOOL_NAME,
    SEARCH_TOOL_DESCRIPTION,
    SEARCH_TOOL_NAME,
    SearchDocumentsInput,
    ThreadOwnershipInput,
)
from mentor.tools import judge as mentor_judge
from mentor.tools import search_lesson_documents as mentor_search


def create_mentor_tools(
    session_factory: Callable[[], AsyncSession],
    user_id: str,
    lesson_id: str,
    judge_model: BaseChatModel,
    settings: Settings,
    embedder: Embedder | None = None,
) -> list[StructuredTool]:
    """
    Create LangGraph tools bound to a session factory and the calling user.

    Args:
        session_factory: Callable that returns a fresh AsyncSession
        user_id: Identity of the user the agent is talking to
        lesson_id: Lesson of the thread (scopes document search)
        judge_model: Chat model used by the judge
        settings: Application settings (retrieval parameters)
        embedder: Embedder for document search; no search tool without one

    Returns:
        List of StructuredTool instances ready for LangGraph
    """
    # The judge payload carries its own user_id; this is the one it must match
    caller_id = user_id

    async def judge(thread_id: str, user_id: str) -> str:
        async with session_factory() as session:
            result = await mentor_judge(
                {"thread_id": thread_id, "user_id": user_id},
                caller_id=caller_id,
                session=session,
                model=judge_model,
            )
            return result.model_dump_json(indent=2)

    tools = [
        StructuredTool.from_function(
            coroutine=judge,
            name=JUDGE_TOOL_NAME,
            description=JUDGE_TOOL_DESCRIPTION,
            args_schema=ThreadOwnershipInput,
        )
    ]

    if embedder is not None:

        async def search_lesson_documents(query: str) -> str:
            async with session_factory() as session:
                result = await mentor_search(
                    {"query": query},
                    lesson_id=lesson_id,
                    session=session,
                    embedder=embedder,
                    top_k=settings.retrieval_top_k,
                    neighbour_count=settings.retrieval_neighbour_count,
                    similarity_threshold=settings.retrieval_similarity_threshold,
                )
                return result.model_dump_json(indent=2)

        tools.append(
            StructuredTool.from_function(
                coroutine=search_lesson_documents,
                name=SEARCH_TOOL_NAME,
                description=SEARCH_TOOL_DESCRIPTION,
                args_schema=SearchDocumentsInput,
            )
        )

    return tools
