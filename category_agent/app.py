from __future__ import annotations

import logging
from pathlib import Path

from dotenv import load_dotenv
from fastapi import FastAPI, HTTPException

from .assistant import CategoryAssistant
from .config import load_settings
from .conversation_store import ConversationStore
from .dispatcher import ActionDispatcher
from .errors import UnknownSessionError
from .gemini_client import GeminiClient
from .models import ChatRequest, ChatResponse, LoginResponse, StopResponse, WordPressCredentials
from .wordpress_client import WordPressCategoryClient

BASE_DIR = Path(__file__).resolve().parent

ENV_PATH = BASE_DIR / ".env"
if ENV_PATH.exists():
    load_dotenv(ENV_PATH, override=True)
else:
    load_dotenv()

settings = load_settings()

log_level = getattr(logging, settings.log_level, logging.INFO)
if not logging.getLogger().handlers:
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

logging.getLogger("catagent").setLevel(log_level)

app = FastAPI(title="WordPress Category Assistant")

wordpress = WordPressCategoryClient(timeout=settings.wp_request_timeout, per_page=settings.wp_per_page)
gemini = GeminiClient(settings)
dispatcher = ActionDispatcher(
    directory=wordpress,
    max_suggestions=settings.max_suggestions,
    suggestion_threshold=settings.suggestion_threshold,
)
assistant = CategoryAssistant(
    gemini=gemini,
    dispatcher=dispatcher,
    directory=wordpress,
    store=ConversationStore(max_sessions=settings.max_sessions),
    history_limit=settings.history_limit,
)


@app.get("/api/health")
async def health() -> dict:
    return {"status": "ok"}


@app.post("/api/login", response_model=LoginResponse)
async def login(credentials: WordPressCredentials) -> LoginResponse:
    """Purpose: Validate WordPress and Gemini access and open a chat session.
    Inputs/Outputs: Input is WordPressCredentials; output is LoginResponse.
    Side Effects / State: Creates an in-memory conversation when both checks pass.
    Dependencies: CategoryAssistant.login.
    Failure Modes: Failed checks are reported in the statuses with no session_id.
    If Removed: Clients cannot obtain a session id.
    Testing Notes: Post credentials and verify statuses and welcome text.
    """
    return await assistant.login(credentials)


@app.post("/api/chat", response_model=ChatResponse)
async def chat(request: ChatRequest) -> ChatResponse:
    """Purpose: Handle one chat turn and return the assistant's answer.
    Inputs/Outputs: Input is ChatRequest; output is ChatResponse.
    Side Effects / State: Updates the session transcript; may update a category.
    Dependencies: CategoryAssistant.handle_message.
    Failure Modes: Unknown session -> 404; unexpected errors propagate as 500.
    If Removed: Core chat functionality is unavailable.
    Testing Notes: Send a message for a known session and verify response schema.
    """
    try:
        result = await assistant.handle_message(request.session_id, request.message)
    except UnknownSessionError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return ChatResponse(
        session_id=result.session_id,
        answer_text=result.answer_text,
        action=result.action,
        cancelled=result.cancelled,
        thinking_logs=result.thinking_logs,
    )


@app.post("/api/chat/{session_id}/stop", response_model=StopResponse)
async def stop(session_id: str) -> StopResponse:
    # Cancels the pending model call of the session's current turn.
    try:
        stopped = assistant.stop(session_id)
    except UnknownSessionError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return StopResponse(stopped=stopped)


@app.get("/api/sessions/{session_id}")
async def get_session(session_id: str) -> dict:
    """Return the in-memory transcript of a session."""
    try:
        messages = assistant.transcript(session_id)
    except UnknownSessionError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return {
        "session_id": session_id,
        "messages": [message.model_dump() for message in messages],
    }
