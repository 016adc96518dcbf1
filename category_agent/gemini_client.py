from __future__ import annotations

import asyncio
import logging
from typing import Dict, List, Optional

import google.generativeai as genai

from .config import Settings
from .prompt_loader import load_prompt, render_prompt

logger = logging.getLogger("catagent.gemini")

SYSTEM_PROMPT_FILE = "system_instruction.txt"
CONVERSATION_LANGUAGE = "French"

DEFAULT_SAFETY_SETTINGS = [
    {"category": "HARM_CATEGORY_HARASSMENT", "threshold": "BLOCK_NONE"},
    {"category": "HARM_CATEGORY_HATE_SPEECH", "threshold": "BLOCK_NONE"},
    {"category": "HARM_CATEGORY_SEXUALLY_EXPLICIT", "threshold": "BLOCK_NONE"},
    {"category": "HARM_CATEGORY_DANGEROUS_CONTENT", "threshold": "BLOCK_NONE"},
]


class GeminiClient:
    """Thin async wrapper around the Gemini SDK bound to one model and system instruction."""

    def __init__(self, settings: Settings, system_instruction: Optional[str] = None) -> None:
        """Purpose: Configure the Gemini SDK and build the chat model.
        Inputs/Outputs: Inputs are Settings and an optional instruction override; no return.
        Side Effects / State: Configures the SDK global API key; reads the prompt file.
        Dependencies: Uses google.generativeai, load_prompt and render_prompt.
        Failure Modes: Raises ValueError if API key or model name is missing;
            FileNotFoundError if the prompt file is absent.
        If Removed: No model reply can be produced and every turn fails.
        Testing Notes: Validate missing key raises ValueError.
        """
        if not settings.gemini_api_key:
            raise ValueError("GEMINI_API_KEY is required")
        model_name = _normalize_model_name(settings.gemini_model)
        if not model_name:
            raise ValueError("Gemini model name is required")

        genai.configure(api_key=settings.gemini_api_key)
        if system_instruction is None:
            template = load_prompt(settings.prompts_dir / SYSTEM_PROMPT_FILE)
            system_instruction = render_prompt(template, {"LANGUAGE": CONVERSATION_LANGUAGE})

        self._model_name = model_name
        self._temperature = settings.gemini_temperature
        self._model = genai.GenerativeModel(model_name, system_instruction=system_instruction)

    @property
    def model_name(self) -> str:
        return self._model_name

    async def get_response(self, user_text: str, history: List[Dict[str, str]]) -> str:
        """Purpose: Ask the model for the reply to one user message.
        Inputs/Outputs: Inputs are the user text and prior transcript entries
            ({"role", "content"}); output is the stripped reply text ("" when blocked).
        Side Effects / State: One network call to Gemini.
        Dependencies: GenerativeModel.generate_content_async and build_contents.
        Failure Modes: SDK/network errors propagate; asyncio cancellation aborts the call.
        If Removed: The assistant cannot turn chat text into actions.
        Testing Notes: Mock the model and check roles map user->user, assistant->model.
        """
        contents = build_contents(history, user_text)
        response = await self._model.generate_content_async(
            contents,
            generation_config={"temperature": self._temperature},
            safety_settings=DEFAULT_SAFETY_SETTINGS,
        )
        try:
            text: Optional[str] = response.text
        except ValueError:
            # Raised by the SDK when the candidate has no text parts (e.g. blocked).
            logger.warning("gemini reply has no text model=%s", self._model_name)
            text = None
        return (text or "").strip()

    async def validate_api_key(self) -> bool:
        """Return True when the configured key can read the model description."""
        try:
            await asyncio.to_thread(genai.get_model, f"models/{self._model_name}")
        except Exception as exc:
            logger.warning("gemini validation failed model=%s error=%s", self._model_name, exc)
            return False
        return True


def build_contents(history: List[Dict[str, str]], user_text: str) -> List[dict]:
    """Map transcript entries to Gemini role/parts contents, ending with the new user turn."""
    contents = []
    for message in history:
        content = message.get("content", "")
        if not content:
            continue
        role = "user" if message.get("role") == "user" else "model"
        contents.append({"role": role, "parts": [{"text": content}]})
    contents.append({"role": "user", "parts": [{"text": user_text}]})
    return contents


def _normalize_model_name(name: Optional[str]) -> str:
    # Strip "models/" prefix and whitespace.
    if not name:
        return ""
    cleaned = name.strip()
    if cleaned.startswith("models/"):
        return cleaned.split("/", 1)[1]
    return cleaned
