"""
Pydantic schemas for mentor tool inputs and outputs.

All tools use typed inputs/outputs for validation and serialization.
"""

from collections.abc import Mapping
from typing import Any, TypeVar

from pydantic import BaseModel, Field, ValidationError

from mentor.exceptions import InvalidInputError

InputT = TypeVar("InputT", bound=BaseModel)


class InvalidToolInputError(InvalidInputError):
    """Raised when a tool payload fails schema validation."""

    pass


# =============================================================================
# Judge Tool Schemas
# =============================================================================


class ThreadOwnershipInput(BaseModel):
    """Input for the judge tool: the thread to grade and its owner."""

    thread_id: str = Field(..., min_length=1, description="Thread to judge")
    user_id: str = Field(..., min_length=1, description="Owner of the thread")


# =============================================================================
# Document Search Tool Schemas
# =============================================================================


class SearchDocumentsInput(BaseModel):
    """Input for the search_lesson_documents tool."""

    query: str = Field(..., min_length=1, description="What to look up in the lesson documents")


class DocumentPassage(BaseModel):
    """A retrieved passage from a lesson document."""

    document_id: str
    chunk_index: int
    page_number: int | None = None
    content: str
    similarity: float | None = Field(None, description="Cosine similarity; None for neighbours")


class SearchDocumentsOutput(BaseModel):
    """Output from search_lesson_documents tool."""

    passages: list[DocumentPassage]
    total: int


# =============================================================================
# Errors
# =============================================================================


class ToolError(BaseModel):
    """Error payload returned to the model when a tool fails."""

    error_code: str
    message: str
    details: Any | None = None


def parse_tool_input(schema: type[InputT], payload: Mapping[str, Any]) -> InputT:
    """
    Validate a raw tool payload against its schema.

    Raises:
        InvalidToolInputError: If the payload does not match the schema
    """
    try:
        return schema.model_validate(dict(payload))
    except ValidationError as e:
        raise InvalidToolInputError(f"Invalid input for {schema.__name__}: {e}") from e
