"""Embedding clients for lesson documents."""

from typing import Protocol, runtime_checkable

from openai import AsyncOpenAI

from mentor.models import PageRecord


@runtime_checkable
class Embedder(Protocol):
    """Interface for embedding services.

    Implementations: OpenAIEmbedder (production), fakes in tests.
    """

    async def embed_pages(self, pages: list[PageRecord]) -> list[list[float]]:
        """Embed page records; one vector per page, in input order."""
        ...

    async def embed_query(self, text: str) -> list[float]:
        """Embed a search query."""
        ...


class OpenAIEmbedder:
    """OpenAI implementation of the embedder."""

    def __init__(
        self,
        api_key: str | None = None,
        model: str = "text-embedding-3-small",
        batch_size: int = 100,
        client: AsyncOpenAI | None = None,
    ):
        """
        Args:
            api_key: OpenAI API key (the SDK reads OPENAI_API_KEY if not provided)
            model: Embedding model name
            batch_size: Maximum inputs per API request
            client: Preconfigured client, mainly for tests
        """
        self.client = client or AsyncOpenAI(api_key=api_key or None)
        self.model = model
        self.batch_size = batch_size

    async def _embed(self, texts: list[str]) -> list[list[float]]:
        vectors: list[list[float]] = []

        # Process in batches to stay under API input limits
        for i in range(0, len(texts), self.batch_size):
            batch = texts[i : i + self.batch_size]
            response = await self.client.embeddings.create(model=self.model, input=batch)
            data = sorted(response.data, key=lambda item: item.index)
            vectors.extend([float(x) for x in item.embedding] for item in data)

        return vectors

    async def embed_pages(self, pages: list[PageRecord]) -> list[list[float]]:
        if not pages:
            return []
        return await self._embed([page.page_content for page in pages])

    async def embed_query(self, text: str) -> list[float]:
        vectors = await self._embed([text])
        return vectors[0]
