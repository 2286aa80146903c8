"""
Retrieval-augmented generation: document stores over LangChain
vector stores, retrieval units and the RAG chain.
"""

# pyright: reportUnusedImport=false
# flake8: noqa

from .vectorstore import DocumentStore, as_document
from .rag import (
    Retriever,
    DocumentFormatter,
    format_documents,
    create_rag_chain,
)
