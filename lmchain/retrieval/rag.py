"""
Retrieval units and the retrieval-augmented generation chain.

    ```python
    from lmchain.retrieval import DocumentStore, create_rag_chain

    store = DocumentStore.from_settings()
    store.add(texts)
    chain = create_rag_chain(store, k=3)
    answer: str = chain.invoke("What is the link function?")
    ```

The chain is

    ParallelGroup{
        context: Retriever | DocumentFormatter,
        question: Passthrough,
    } | Template(rag_answer) | ModelInvoker | StrOutputTransformer

so that the question is searched in the store while it is also
forwarded to the prompt. When streaming, the answer streams from the
model; the template buffers the output of the parallel group.
"""

from collections.abc import Sequence

from langchain_core.documents import Document

from lmchain.core.parallel import ParallelGroup
from lmchain.core.pipeline import Pipeline
from lmchain.core.units import Passthrough, Unit
from lmchain.language_models.chains import (
    UserSettings,
    create_chain,
    resolve_settings,
)
from lmchain.utils.logging import LoggerBase

from .vectorstore import DocumentStore


def format_documents(
    documents: Sequence[Document], separator: str = "\n\n"
) -> str:
    """Joins the text content of documents."""
    return separator.join(doc.page_content for doc in documents)


class Retriever(Unit[str, list[Document]]):
    """Searches the k documents nearest to the input query."""

    input_type = str
    output_type = list[Document]

    def __init__(
        self,
        store: DocumentStore,
        k: int = 4,
        *,
        name: str | None = None,
        logger: LoggerBase | None = None,
    ) -> None:
        if k < 1:
            raise ValueError(f"k must be at least 1, got {k}")
        super().__init__(name or f"Retriever[{store.name}]", logger)
        self.store = store
        self.k = k

    async def ainvoke(self, value: str) -> list[Document]:
        return await self.store.asearch(value, self.k)


class DocumentFormatter(Unit[list[Document], str]):
    """Formats documents into a text for a prompt."""

    input_type = list[Document]
    output_type = str

    def __init__(
        self,
        separator: str = "\n\n",
        *,
        name: str | None = None,
        logger: LoggerBase | None = None,
    ) -> None:
        super().__init__(name, logger)
        self.separator = separator

    async def ainvoke(self, value: list[Document]) -> str:
        return format_documents(value, self.separator)


def create_rag_chain(
    store: DocumentStore,
    user_settings: UserSettings = None,
    *,
    k: int | None = None,
    system_prompt: str | None = None,
) -> Pipeline:
    """
    Creates a chain answering a question (a string) from the documents
    of the store.

    Args:
        store: the document store searched for context
        user_settings: the language model settings (see create_chain)
        k: number of documents retrieved (defaults to the retrieval
            settings)
        system_prompt: overrides the system prompt of 'rag_answer'

    Returns:
        a Pipeline mapping a question to the answer text.
    """
    settings = resolve_settings(user_settings)
    context = Pipeline(
        Retriever(store, k if k is not None else settings.retrieval.k),
        DocumentFormatter(settings.retrieval.separator),
        name="context",
    )
    return Pipeline(
        ParallelGroup(
            {'context': context, 'question': Passthrough()},
            input_type=str,
        ),
        create_chain("rag_answer", settings, system_prompt),
        name="rag",
    )
