from __future__ import annotations

import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from .cache import CacheService
from .errors import InvalidIdentifierError

logger = logging.getLogger("product_assistant.conversation")

MAX_HISTORY = 10
CONVERSATION_TTL = timedelta(hours=24)
KEY_PREFIX = "conversation:"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def conversation_key(conversation_id: str) -> str:
    return f"{KEY_PREFIX}{conversation_id}"


class QueryHistoryEntry(BaseModel):
    """One question/answer exchange in a conversation."""
    query: str
    response: Optional[str] = None
    timestamp: datetime


class ConversationSession(BaseModel):
    """Short-lived conversation state cached per session id."""
    id: str
    history: List[QueryHistoryEntry] = Field(default_factory=list)
    last_product: Optional[str] = None
    session_data: Dict[str, str] = Field(default_factory=dict)
    created_at: datetime
    last_activity: datetime

    @classmethod
    def start(cls, conversation_id: Optional[str] = None) -> ConversationSession:
        """Purpose: Create a fresh, empty session.
        Inputs/Outputs: Input is an optional id; output is a new ConversationSession.
        Side Effects / State: None; the session is not persisted here.
        Dependencies: Uses uuid4 for generated ids.
        Failure Modes: A blank explicit id raises InvalidIdentifierError.
        If Removed: Callers would have to assemble timestamps and ids by hand.
        Testing Notes: start() yields unique ids; start("abc") keeps "abc".
        """
        # Generate an opaque id only when none was supplied.
        if conversation_id is None:
            conversation_id = str(uuid.uuid4())
        elif not conversation_id.strip():
            raise InvalidIdentifierError("Conversation ID cannot be empty")
        now = _utcnow()
        return cls(id=conversation_id, created_at=now, last_activity=now)

    def append_query(self, query: str, response: Optional[str] = None) -> None:
        """Purpose: Record an exchange, keeping only the most recent entries.
        Inputs/Outputs: Inputs are the query and optional answer; no return value.
        Side Effects / State: Appends to history, drops the oldest beyond
            MAX_HISTORY, bumps last_activity.
        Dependencies: None.
        Failure Modes: None.
        If Removed: Follow-up questions lose their context.
        Testing Notes: After 15 appends only the last 10, in order, remain.
        """
        # Trim from the front so retained entries stay in append order.
        now = _utcnow()
        self.history.append(QueryHistoryEntry(query=query, response=response, timestamp=now))
        if len(self.history) > MAX_HISTORY:
            self.history = self.history[-MAX_HISTORY:]
        self.last_activity = now

    def set_last_product(self, product_name: str) -> None:
        self.last_product = product_name
        self.last_activity = _utcnow()

    def is_expired(self, timeout: timedelta) -> bool:
        # Diagnostic only; routine expiry is the cache TTL.
        return _utcnow() - self.last_activity > timeout

    def recent_queries(self, count: int = 3) -> List[str]:
        if count <= 0:
            return []
        return [entry.query for entry in self.history[-count:]]


class ConversationStore:
    """Conversation persistence on top of the cache-aside layer."""

    def __init__(self, cache: CacheService, ttl: timedelta = CONVERSATION_TTL) -> None:
        """Purpose: Bind the store to a cache and session TTL.
        Inputs/Outputs: Inputs are a CacheService and TTL; no return value.
        Side Effects / State: None.
        Dependencies: CacheService for all persistence.
        Failure Modes: None at init.
        If Removed: Sessions cannot survive between requests.
        Testing Notes: Use a CacheService without a shared tier for unit tests.
        """
        self._cache = cache
        self._ttl = ttl

    def get_or_create(self, conversation_id: Optional[str]) -> ConversationSession:
        """Purpose: Fetch a session or start one, never failing on a miss.
        Inputs/Outputs: Input is an optional id; output is a ConversationSession.
        Side Effects / State: Reads the cache only when an id is given.
        Dependencies: Uses get and ConversationSession.start.
        Failure Modes: None expected; cache errors degrade to a new session.
        If Removed: The orchestrator has no session to record into.
        Testing Notes: Unknown ids come back as empty sessions with the same id.
        """
        # No id: always a brand-new session, no cache lookup.
        if not conversation_id:
            return ConversationSession.start()
        session = self.get(conversation_id)
        if session is None:
            logger.debug("conversation miss id=%s; starting new session", conversation_id)
            return ConversationSession.start(conversation_id)
        return session

    def get(self, conversation_id: str) -> Optional[ConversationSession]:
        try:
            return self._cache.get(conversation_key(conversation_id), ConversationSession)
        except Exception:
            logger.exception("Error getting conversation id=%s", conversation_id)
            return None

    def save(self, session: ConversationSession) -> None:
        """Persist a session for the configured TTL; failures are logged only."""
        try:
            self._cache.set(conversation_key(session.id), session, self._ttl)
        except Exception:
            logger.exception("Error saving conversation id=%s", session.id)

    def delete(self, conversation_id: str) -> None:
        try:
            self._cache.remove(conversation_key(conversation_id))
        except Exception:
            logger.exception("Error deleting conversation id=%s", conversation_id)

    def start(self) -> ConversationSession:
        session = ConversationSession.start()
        self.save(session)
        return session
