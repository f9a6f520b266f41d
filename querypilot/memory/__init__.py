"""
Conversation session history
"""

from querypilot.memory.session_store import (
    ConversationTurn,
    InMemorySessionStore,
    SessionStore,
    format_conversation_context,
    run_session_sweeper,
)

__all__ = [
    "ConversationTurn",
    "InMemorySessionStore",
    "SessionStore",
    "format_conversation_context",
    "run_session_sweeper",
]
