"""Conversation loop: login, one model call per user turn, dispatch, cancellation.

Each conversation runs at most one turn at a time (its own asyncio.Lock); a stop
request cancels the pending model call and marks the turn so that any dispatch
result that still arrives is discarded instead of shown or recorded.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from . import replies
from .conversation_store import Conversation, ConversationStore, Turn
from .dispatcher import ActionDispatcher
from .models import LoginResponse, StoredMessage, WordPressCredentials
from .utils import mask_secret

logger = logging.getLogger("catagent.assistant")

CONNECTED = "connected"
ERROR = "error"


@dataclass
class TurnResult:
    """What the UI renders for one user turn."""
    session_id: str
    answer_text: Optional[str]
    action: str = "NONE"
    cancelled: bool = False
    thinking_logs: List[Dict[str, str]] = field(default_factory=list)


class CategoryAssistant:
    def __init__(
        self,
        gemini: Any,
        dispatcher: ActionDispatcher,
        directory: Any,
        store: ConversationStore,
        history_limit: int = 20,
    ) -> None:
        """Purpose: Assemble the conversation loop from its collaborators.
        Inputs/Outputs: Inputs are the LLM client (get_response/validate_api_key), the
            dispatcher, the directory client (validate_connection), the store and the
            number of transcript entries sent to the model; no return.
        Side Effects / State: None at init.
        Dependencies: GeminiClient, ActionDispatcher, WordPressCategoryClient, ConversationStore.
        Failure Modes: None at init.
        If Removed: The HTTP layer has nothing to drive.
        Testing Notes: Build with AsyncMock collaborators.
        """
        self._gemini = gemini
        self._dispatcher = dispatcher
        self._directory = directory
        self._store = store
        self._history_limit = history_limit

    async def login(self, credentials: WordPressCredentials) -> LoginResponse:
        """Purpose: Validate WordPress and Gemini access and open a conversation.
        Inputs/Outputs: Input is WordPressCredentials; output is LoginResponse with a
            session id and welcome message only when both checks pass.
        Side Effects / State: Creates an in-memory conversation on success.
        Dependencies: directory.validate_connection and gemini.validate_api_key, run concurrently.
        Failure Modes: Validation failures are reported as "error" statuses, not raised.
        If Removed: No session can be opened.
        Testing Notes: Fail either check and assert no session is created.
        """
        wp_ok, gemini_ok = await asyncio.gather(
            self._directory.validate_connection(credentials),
            self._gemini.validate_api_key(),
        )
        logger.info(
            "login url=%s user=%s wordpress=%s gemini=%s",
            credentials.wp_url,
            mask_secret(credentials.username),
            wp_ok,
            gemini_ok,
        )
        response = LoginResponse(
            wordpress_status=CONNECTED if wp_ok else ERROR,
            gemini_status=CONNECTED if gemini_ok else ERROR,
        )
        if not (wp_ok and gemini_ok):
            return response

        conversation = self._store.create(credentials)
        conversation.add_message("assistant", replies.WELCOME)
        response.session_id = conversation.session_id
        response.welcome = replies.WELCOME
        return response

    async def handle_message(self, session_id: str, text: str) -> TurnResult:
        """Purpose: Run one user turn: model call, dispatch, transcript update.
        Inputs/Outputs: Inputs are the session id and user text; output is TurnResult.
        Side Effects / State: Appends the user message (and the reply unless cancelled
            or silent) to the transcript; may write one category through dispatch.
        Dependencies: Conversation.lock for single-flight, GeminiClient, ActionDispatcher.
        Failure Modes: UnknownSessionError for unknown sessions; model errors become an
            apology message; a stop request yields cancelled=True.
        If Removed: Chat requests cannot be served.
        Testing Notes: Stop while the model call is pending and assert nothing is dispatched.
        """
        conversation = self._store.get(session_id)
        if not text or not text.strip():
            return TurnResult(session_id=session_id, answer_text=None)

        # Turns of the same conversation queue up on its lock.
        async with conversation.lock:
            turn = conversation.begin_turn()
            try:
                return await self._run_turn(conversation, turn, text)
            finally:
                turn.finished = True

    def stop(self, session_id: str) -> bool:
        """Cancel the in-flight turn of a session; False when nothing was running."""
        conversation = self._store.get(session_id)
        turn = conversation.current_turn
        if turn is None:
            return False
        stopped = turn.cancel()
        if stopped:
            logger.info("session=%s turn=%s stop requested", session_id, turn.turn_id)
        return stopped

    def transcript(self, session_id: str) -> List[StoredMessage]:
        return list(self._store.get(session_id).messages)

    async def _run_turn(self, conversation: Conversation, turn: Turn, text: str) -> TurnResult:
        session_id = conversation.session_id
        history = conversation.history(self._history_limit)
        conversation.add_message("user", text)
        logger.info("session=%s turn=%s question=%s", session_id, turn.turn_id, text)

        turn.llm_task = asyncio.ensure_future(self._gemini.get_response(text, history))
        try:
            raw = await turn.llm_task
        except asyncio.CancelledError:
            if not turn.cancelled:
                raise
            logger.info("session=%s turn=%s model call cancelled", session_id, turn.turn_id)
            return TurnResult(session_id=session_id, answer_text=None, cancelled=True)
        except Exception:
            logger.exception("session=%s turn=%s model call failed", session_id, turn.turn_id)
            conversation.add_message("assistant", replies.LLM_APOLOGY)
            return TurnResult(session_id=session_id, answer_text=replies.LLM_APOLOGY)

        if turn.cancelled:
            return TurnResult(session_id=session_id, answer_text=None, cancelled=True)

        if not raw or not raw.strip():
            # Blocked or empty model reply.
            logger.warning("session=%s turn=%s empty model reply", session_id, turn.turn_id)
            conversation.add_message("assistant", replies.LLM_APOLOGY)
            return TurnResult(session_id=session_id, answer_text=replies.LLM_APOLOGY)

        result = await self._dispatcher.dispatch(raw, conversation.credentials)

        # Backend calls already issued are allowed to finish, but their outcome is dropped.
        if turn.cancelled:
            logger.info(
                "session=%s turn=%s discarded result action=%s", session_id, turn.turn_id, result.action_name
            )
            return TurnResult(session_id=session_id, answer_text=None, action=result.action_name, cancelled=True)

        if result.text is not None:
            conversation.add_message("assistant", result.text)
        logger.info("session=%s turn=%s action=%s answer=%s", session_id, turn.turn_id, result.action_name, result.text)
        return TurnResult(
            session_id=session_id,
            answer_text=result.text,
            action=result.action_name,
            thinking_logs=result.thinking_logs,
        )
