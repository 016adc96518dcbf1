from __future__ import annotations

import asyncio
import time
import uuid
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from .errors import UnknownSessionError
from .models import StoredMessage, WordPressCredentials


@dataclass
class Turn:
    """Cancellation token for one in-flight user turn."""
    turn_id: str
    cancelled: bool = False
    finished: bool = False
    llm_task: Optional[asyncio.Task] = None

    def cancel(self) -> bool:
        """Mark the turn cancelled and abort the pending model call, if any."""
        if self.finished or self.cancelled:
            return False
        self.cancelled = True
        if self.llm_task is not None and not self.llm_task.done():
            self.llm_task.cancel()
        return True


@dataclass
class Conversation:
    """Per-session state: credentials, transcript and the single-flight lock."""
    session_id: str
    credentials: WordPressCredentials
    messages: List[StoredMessage] = field(default_factory=list)
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    current_turn: Optional[Turn] = None
    updated_at: float = field(default_factory=time.time)

    def add_message(self, role: str, content: str) -> None:
        timestamp = time.time()
        self.messages.append(StoredMessage(role=role, content=content, timestamp=timestamp))
        self.updated_at = timestamp

    def history(self, limit: Optional[int] = None) -> List[Dict[str, str]]:
        """Most recent transcript entries as plain role/content dicts."""
        selected = self.messages if not limit or limit <= 0 else self.messages[-limit:]
        return [{"role": message.role, "content": message.content} for message in selected]

    def begin_turn(self) -> Turn:
        self.current_turn = Turn(turn_id=uuid.uuid4().hex)
        return self.current_turn


class ConversationStore:
    """In-memory conversations keyed by session id; nothing is written to disk."""

    def __init__(self, max_sessions: Optional[int] = None) -> None:
        """Purpose: Initialize an empty conversation registry.
        Inputs/Outputs: Input is an optional max_sessions cap; no return.
        Side Effects / State: Holds conversations (and their credentials) in memory only.
        Dependencies: Conversation, Turn.
        Failure Modes: None.
        If Removed: Turns cannot be serialized per session or cancelled.
        Testing Notes: Verify pruning keeps the most recently used sessions.
        """
        self._max_sessions = max_sessions
        self._conversations: Dict[str, Conversation] = {}

    def create(self, credentials: WordPressCredentials) -> Conversation:
        conversation = Conversation(session_id=uuid.uuid4().hex, credentials=credentials)
        self._conversations[conversation.session_id] = conversation
        self._prune_sessions()
        return conversation

    def get(self, session_id: str) -> Conversation:
        """Return the conversation or raise UnknownSessionError."""
        conversation = self._conversations.get(session_id)
        if conversation is None:
            raise UnknownSessionError(session_id)
        return conversation

    def __len__(self) -> int:
        return len(self._conversations)

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._conversations

    def _prune_sessions(self) -> bool:
        """Purpose: Enforce max_sessions by dropping least recently used idle sessions.
        Inputs/Outputs: No inputs; returns True if any sessions were removed.
        Side Effects / State: Mutates the conversation registry.
        Dependencies: Uses _max_sessions and updated_at ordering.
        Failure Modes: None; sessions with a turn in progress are never dropped.
        If Removed: Memory grows with every login.
        Testing Notes: Set a low max_sessions and verify pruning order.
        """
        if not self._max_sessions or self._max_sessions <= 0:
            return False
        if len(self._conversations) <= self._max_sessions:
            return False

        ordered = sorted(self._conversations.values(), key=lambda c: c.updated_at)
        excess = len(self._conversations) - self._max_sessions
        removed = []
        for conversation in ordered:
            if len(removed) >= excess:
                break
            if conversation.lock.locked():
                continue
            removed.append(conversation.session_id)
        for session_id in removed:
            self._conversations.pop(session_id, None)
        return bool(removed)
