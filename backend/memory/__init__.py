from .conversation_store import DEFAULT_MAX_MESSAGES, DEFAULT_TTL, ConversationStore
from .models import Conversation, Entity, Message, NLUAnnotation

__all__ = [
    "DEFAULT_MAX_MESSAGES",
    "DEFAULT_TTL",
    "Conversation",
    "ConversationStore",
    "Entity",
    "Message",
    "NLUAnnotation",
]
