"""Domain exceptions raised by the category assistant."""

from __future__ import annotations

from typing import Optional


class AgentError(Exception):
    """Base class for category assistant errors."""


class DirectoryConnectionError(AgentError, ConnectionError):
    """The category backend is unreachable or rejected the credentials."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class CategoryUpdateError(AgentError):
    """The category backend refused or failed to apply a patch."""

    def __init__(self, category_id: int, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.category_id = category_id
        self.status_code = status_code


class UnknownSessionError(AgentError, KeyError):
    """No conversation is registered under the given session id."""

    def __init__(self, session_id: str) -> None:
        super().__init__(session_id)
        self.session_id = session_id

    def __str__(self) -> str:
        return f"unknown session: {self.session_id}"
