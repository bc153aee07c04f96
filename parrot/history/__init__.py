"""Message history sources: the local store, chat exports and the WhatsApp database."""

from parrot.history.chat_parser import ChatParser, ParsedMessage
from parrot.history.store import MessageStore
from parrot.history.whatsapp_db import WhatsAppChat, WhatsAppDatabase, WhatsAppMessage

__all__ = [
    "ChatParser",
    "MessageStore",
    "ParsedMessage",
    "WhatsAppChat",
    "WhatsAppDatabase",
    "WhatsAppMessage",
]
