"""
Document stores: the vector-search collaborator of the retrieval
chains.

A DocumentStore wraps a LangChain VectorStore, exposing the two
operations used by the chains, `add(documents)` and
`search(query, k)`, in synchronous and asynchronous form. The vector
index itself (embedding, similarity computation) is the VectorStore's
business.

    ```python
    from lmchain.retrieval import DocumentStore

    store = DocumentStore.from_settings()    # in-memory, config.toml
    store.add([
        "Logistic regression models a binary outcome.",
        "The link function relates the mean to the predictor.",
    ])
    docs = store.search("What is the link function?", k=1)
    ```

Failures of the backend (for example, of a remote embedding service)
are raised as RemoteInvocationError.
"""

from collections.abc import Sequence

from langchain_core.documents import Document
from langchain_core.vectorstores import InMemoryVectorStore, VectorStore

from lmchain.config.config import EmbeddingSettings, Settings
from lmchain.core.errors import RemoteInvocationError
from lmchain.core.stream import run_sync
from lmchain.language_models.models import (
    create_embedding_model_from_settings,
)
from lmchain.utils import logger as default_logger
from lmchain.utils.logging import LoggerBase


def as_document(item: Document | str) -> Document:
    """Wraps a text into a Document."""
    if isinstance(item, Document):
        return item
    return Document(page_content=item)


class DocumentStore:
    """Adds and searches documents in a LangChain vector store.

    Args:
        vector_store: the LangChain vector store
        name: the store name, used in error messages
        logger: failures are reported here
    """

    def __init__(
        self,
        vector_store: VectorStore,
        *,
        name: str | None = None,
        logger: LoggerBase | None = None,
    ) -> None:
        self.vector_store = vector_store
        self.name = name or type(vector_store).__name__
        self.logger = logger if logger is not None else default_logger

    @classmethod
    def from_settings(
        cls,
        settings: Settings | EmbeddingSettings | None = None,
        *,
        logger: LoggerBase | None = None,
    ) -> 'DocumentStore':
        """An in-memory store over the embeddings given by the
        settings (read from config.toml if None)."""
        match settings:
            case None:
                embedding_settings = Settings().embeddings
            case Settings():
                embedding_settings = settings.embeddings
            case _:
                embedding_settings = settings
        embeddings = create_embedding_model_from_settings(
            embedding_settings
        )
        return cls(
            InMemoryVectorStore(embedding=embeddings),
            name=f"InMemoryVectorStore:{embedding_settings.dense_model}",
            logger=logger,
        )

    def _failure(self, operation: str, exc: Exception) -> Exception:
        message = f"{operation} failed: {type(exc).__name__}: {exc}"
        self.logger.error(f"{self.name}: {message}")
        return RemoteInvocationError(self.name, message)

    async def aadd(
        self, documents: Sequence[Document | str]
    ) -> list[str]:
        """Adds documents (or texts) to the store.

        Returns:
            the ids of the added documents.
        """
        docs = [as_document(d) for d in documents]
        if not docs:
            return []
        try:
            ids = await self.vector_store.aadd_documents(docs)
        except Exception as e:
            raise self._failure("add", e) from e
        self.logger.info(f"{self.name}: added {len(ids)} documents")
        return ids

    async def asearch(self, query: str, k: int = 4) -> list[Document]:
        """The k documents nearest to query, nearest first (fewer if
        the store holds less than k documents).

        Raises:
            ValueError: if k < 1
            RemoteInvocationError: if the search fails
        """
        if k < 1:
            raise ValueError(f"k must be at least 1, got {k}")
        try:
            return await self.vector_store.asimilarity_search(query, k=k)
        except Exception as e:
            raise self._failure("search", e) from e

    def add(self, documents: Sequence[Document | str]) -> list[str]:
        """Synchronous aadd."""
        return run_sync(self.aadd(documents))

    def search(self, query: str, k: int = 4) -> list[Document]:
        """Synchronous asearch."""
        return run_sync(self.asearch(query, k))
