"""Retrieval layer: vector index and RAG orchestration."""

from parrot.rag.models import (
    ConversationMessage,
    ConversationThread,
    EmbeddedConversation,
    EmbeddedMessage,
    SearchResult,
    SimilarPair,
)
from parrot.rag.rag_manager import EmbeddingRunStats, RAGManager, build_conversation_threads
from parrot.rag.vector_store import VectorStore, cosine_similarity

__all__ = [
    "ConversationMessage",
    "ConversationThread",
    "EmbeddedConversation",
    "EmbeddedMessage",
    "EmbeddingRunStats",
    "RAGManager",
    "SearchResult",
    "SimilarPair",
    "VectorStore",
    "build_conversation_threads",
    "cosine_similarity",
]
