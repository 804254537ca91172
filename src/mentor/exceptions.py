"""
Error taxonomy shared by the mentor services.

Service modules declare their own exceptions next to the code that raises
them, subclassing one of these so the API layer can map them to responses.
"""


class MentorError(Exception):
    """Base exception for mentor operations."""


class NotFoundError(MentorError):
    """A referenced entity does not exist."""


class ForbiddenError(MentorError):
    """The caller is not allowed to perform the operation."""


class InvalidInputError(MentorError):
    """Input failed validation (file limits, malformed tool payloads, ...)."""


class ExternalServiceError(MentorError):
    """A call to an external service (LLM, embeddings, tokenizer) failed."""
