from __future__ import annotations

from typing import Dict, List, Optional

from pydantic import BaseModel, Field, field_validator


class WordPressCredentials(BaseModel):
    """Backend URL and application-password pair supplied at login."""
    wp_url: str
    username: str
    app_password: str

    @field_validator("wp_url")
    @classmethod
    def _strip_url(cls, value: str) -> str:
        cleaned = value.strip().rstrip("/")
        if not cleaned:
            raise ValueError("wp_url must not be empty")
        if not cleaned.startswith(("http://", "https://")):
            cleaned = f"https://{cleaned}"
        return cleaned

    @property
    def api_base(self) -> str:
        """Root of the WordPress core REST namespace."""
        return f"{self.wp_url}/wp-json/wp/v2"


class LoginResponse(BaseModel):
    """Result of validating WordPress and Gemini connectivity."""
    session_id: Optional[str] = None
    wordpress_status: str
    gemini_status: str
    welcome: Optional[str] = None


class ChatRequest(BaseModel):
    """Request payload for chat API."""
    session_id: str
    message: str = Field(min_length=1)


class ChatResponse(BaseModel):
    """Response payload returned by the chat API."""
    session_id: str
    answer_text: Optional[str]
    action: str
    cancelled: bool = False
    thinking_logs: List[Dict[str, str]] = Field(default_factory=list)


class StopResponse(BaseModel):
    stopped: bool


class StoredMessage(BaseModel):
    """In-memory transcript entry."""
    role: str
    content: str
    timestamp: float
