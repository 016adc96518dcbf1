from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent


@dataclass(frozen=True)
class Settings:
    """Configuration container for the model, the WordPress client, and matching limits."""
    gemini_api_key: str
    gemini_model: str
    gemini_temperature: float
    prompts_dir: Path
    wp_request_timeout: float
    wp_per_page: int
    max_suggestions: int
    suggestion_threshold: float
    history_limit: int
    max_sessions: int
    log_level: str


def load_settings() -> Settings:
    """Purpose: Load configuration from environment variables and defaults.
    Inputs/Outputs: No inputs; returns a Settings instance.
    Side Effects / State: Reads environment variables.
    Dependencies: Uses os.getenv and BASE_DIR for the default prompts path.
    Failure Modes: Invalid numeric env values raise ValueError; a per-page size
        outside 1..100 (the WordPress REST limit) raises ValueError.
    If Removed: App cannot configure the model, backend client or resolver.
    Testing Notes: Verify defaults and overrides via environment variables.
    """
    # Resolve the prompts directory, then coerce numeric settings.
    prompts_path = os.getenv("PROMPTS_DIR")
    prompts_dir = Path(prompts_path) if prompts_path else (BASE_DIR / "prompts").resolve()

    per_page = int(os.getenv("WP_PER_PAGE", "100"))
    if not 1 <= per_page <= 100:
        raise ValueError("WP_PER_PAGE must be between 1 and 100")

    return Settings(
        gemini_api_key=os.getenv("GEMINI_API_KEY", ""),
        gemini_model=os.getenv("GEMINI_MODEL", "gemini-2.5-flash"),
        gemini_temperature=float(os.getenv("GEMINI_TEMPERATURE", "0.1")),
        prompts_dir=prompts_dir,
        wp_request_timeout=float(os.getenv("WP_REQUEST_TIMEOUT", "15")),
        wp_per_page=per_page,
        max_suggestions=int(os.getenv("MAX_SUGGESTIONS", "5")),
        suggestion_threshold=float(os.getenv("SUGGESTION_THRESHOLD", "0.5")),
        history_limit=int(os.getenv("HISTORY_LIMIT", "20")),
        max_sessions=int(os.getenv("MAX_SESSIONS", "50")),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
    )
