"""Data contracts shared across Parrot components."""

from parrot.contracts.backends import EmbeddingClient, GenerationClient, HistorySource
from parrot.contracts.messages import Contact, Message, Sender, find_conversation_pairs

__all__ = [
    "Contact",
    "EmbeddingClient",
    "GenerationClient",
    "HistorySource",
    "Message",
    "Sender",
    "find_conversation_pairs",
]
