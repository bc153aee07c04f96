"""Parrot - auto-replies for WhatsApp that sound like you.

Learns how you write to each contact from your chat history and drafts
replies in that style, optionally grounded on similar past conversations.
"""

from parrot.config import ParrotConfig, load_config
from parrot.context import AppContext

__version__ = "1.0.0"

__all__ = [
    "AppContext",
    "ParrotConfig",
    "load_config",
]
