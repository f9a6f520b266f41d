"""
Session history store.

Keeps the last few turns of each conversation so follow-up questions get
their context. The store never runs background work itself: the owner of the
event loop runs ``run_session_sweeper`` to expire idle sessions.
"""

import asyncio
import time
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Protocol

from loguru import logger


@dataclass(frozen=True)
class ConversationTurn:
    question: str
    sql: str
    success: bool
    created_at: float = field(default_factory=time.time)


class SessionStore(Protocol):
    async def get(self, session_id: str) -> List[ConversationTurn]:
        ...

    async def put(self, session_id: str, turn: ConversationTurn) -> None:
        ...

    async def expire(self, now: Optional[float] = None) -> int:
        ...


@dataclass
class _Session:
    turns: List[ConversationTurn] = field(default_factory=list)
    updated_at: float = 0.0


class InMemorySessionStore:
    """Process-local store; sessions idle longer than ``ttl_seconds`` are expired."""

    def __init__(self, ttl_seconds: float = 24 * 3600, max_turns: int = 5):
        self.ttl_seconds = ttl_seconds
        self.max_turns = max_turns
        self._sessions: Dict[str, _Session] = {}
        self._lock = asyncio.Lock()

    async def get(self, session_id: str) -> List[ConversationTurn]:
        async with self._lock:
            session = self._sessions.get(session_id)
            return list(session.turns) if session else []

    async def put(self, session_id: str, turn: ConversationTurn) -> None:
        async with self._lock:
            session = self._sessions.setdefault(session_id, _Session())
            session.turns.append(turn)
            del session.turns[: -self.max_turns]
            session.updated_at = time.time()

    async def expire(self, now: Optional[float] = None) -> int:
        now = time.time() if now is None else now
        async with self._lock:
            stale = [sid for sid, s in self._sessions.items() if now - s.updated_at > self.ttl_seconds]
            for sid in stale:
                del self._sessions[sid]
        if stale:
            logger.info(f"Expired {len(stale)} idle session(s)")
        return len(stale)

    def __len__(self) -> int:
        return len(self._sessions)


def format_conversation_context(turns: List[ConversationTurn]) -> Optional[str]:
    """
    Render previous turns for the generation prompt.

    Example:
        >>> format_conversation_context([ConversationTurn("list patients", "SELECT ...;", True)])
        'Q: list patients\\nSQL: SELECT ...;'
    """
    if not turns:
        return None
    return "\n".join(f"Q: {t.question}\nSQL: {t.sql}" for t in turns)


async def run_session_sweeper(
    store: SessionStore,
    interval_seconds: float,
    stop_event: Optional[asyncio.Event] = None,
) -> None:
    """Expire idle sessions every ``interval_seconds`` until ``stop_event`` is set."""
    stop_event = stop_event or asyncio.Event()
    logger.debug(f"Session sweeper started (interval={interval_seconds}s)")
    while not stop_event.is_set():
        try:
            await asyncio.wait_for(stop_event.wait(), timeout=interval_seconds)
        except asyncio.TimeoutError:
            pass
        if stop_event.is_set():
            break
        try:
            await store.expire()
        except Exception as e:
            logger.error(f"Session sweep failed: {e}")
    logger.debug("Session sweeper stopped")
