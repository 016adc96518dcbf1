"""Decoding of the model's structured replies into typed actions.

The model answers either with plain conversational text or with a JSON object
of the form ``{"action": "...", "payload": {...}}``. Anything that does not
validate against the expected shape for its action degrades to ``NoOp`` so the
raw text is shown to the user instead.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional, Union

from .utils import safe_json_loads

logger = logging.getLogger("catagent.intents")

LIST_CATEGORIES = "LIST_CATEGORIES"
GET_CATEGORY_METADATA = "GET_CATEGORY_METADATA"
UPDATE_CATEGORY_METADATA = "UPDATE_CATEGORY_METADATA"
COPY_META_DESCRIPTION = "COPY_YOAST_META_DESC_TO_DESC"

CATEGORY_NAME_KEY = "categoryName"
UPDATE_KEYS = {
    "name": "name",
    "slug": "slug",
    "description": "description",
    "metaTitle": "meta_title",
    "metaDescription": "meta_description",
    "focusKeyphrase": "focus_keyphrase",
}


@dataclass(frozen=True)
class ListCategories:
    pass


@dataclass(frozen=True)
class GetCategoryMetadata:
    category_name: Optional[str]


@dataclass(frozen=True)
class UpdateCategoryMetadata:
    """Requested changes; None means the field was absent from the payload."""
    category_name: Optional[str]
    name: Optional[str] = None
    slug: Optional[str] = None
    description: Optional[str] = None
    meta_title: Optional[str] = None
    meta_description: Optional[str] = None
    focus_keyphrase: Optional[str] = None


@dataclass(frozen=True)
class CopyMetaDescriptionToDescription:
    category_name: Optional[str]


@dataclass(frozen=True)
class NoOp:
    """Plain chat reply shown verbatim."""
    text: str


Action = Union[
    ListCategories,
    GetCategoryMetadata,
    UpdateCategoryMetadata,
    CopyMetaDescriptionToDescription,
    NoOp,
]


class _InvalidPayload(ValueError):
    pass


def action_name(action: Action) -> str:
    """Wire name of an action, or NONE for plain replies."""
    if isinstance(action, ListCategories):
        return LIST_CATEGORIES
    if isinstance(action, GetCategoryMetadata):
        return GET_CATEGORY_METADATA
    if isinstance(action, UpdateCategoryMetadata):
        return UPDATE_CATEGORY_METADATA
    if isinstance(action, CopyMetaDescriptionToDescription):
        return COPY_META_DESCRIPTION
    return "NONE"


def parse(raw_text: str) -> Action:
    """Purpose: Turn a raw model reply into a typed Action.
    Inputs/Outputs: Input is the raw model text; output is one Action variant.
    Side Effects / State: Logs why a JSON-looking reply was rejected.
    Dependencies: safe_json_loads for tolerant decoding, _decode_payload per action.
    Failure Modes: Never raises; every failure becomes NoOp(raw_text).
    If Removed: The dispatcher has nothing to route and every reply is plain text.
    Testing Notes: Feed malformed JSON, unknown actions, extra keys and non-string
        values; all must yield NoOp.
    """
    text = raw_text if isinstance(raw_text, str) else ""
    data = safe_json_loads(text)
    if data is None:
        return NoOp(text)

    action = data.get("action")
    if not isinstance(action, str) or not action.strip():
        return NoOp(text)
    action = action.strip().upper()

    try:
        return _decode_payload(action, data.get("payload"))
    except _InvalidPayload as exc:
        logger.info("intent rejected action=%s reason=%s", action, exc)
        return NoOp(text)


def _decode_payload(action: str, payload: Any) -> Action:
    if action == LIST_CATEGORIES:
        if payload is not None and not isinstance(payload, dict):
            raise _InvalidPayload("payload must be an object")
        return ListCategories()

    if action not in (GET_CATEGORY_METADATA, UPDATE_CATEGORY_METADATA, COPY_META_DESCRIPTION):
        raise _InvalidPayload("unknown action")
    if not isinstance(payload, dict):
        raise _InvalidPayload("payload must be an object")

    if action == UPDATE_CATEGORY_METADATA:
        allowed = {CATEGORY_NAME_KEY, *UPDATE_KEYS}
        _reject_unknown_keys(payload, allowed)
        fields = {UPDATE_KEYS[key]: _optional_string(payload, key) for key in UPDATE_KEYS}
        return UpdateCategoryMetadata(category_name=_category_name(payload), **fields)

    _reject_unknown_keys(payload, {CATEGORY_NAME_KEY})
    if action == GET_CATEGORY_METADATA:
        return GetCategoryMetadata(category_name=_category_name(payload))
    return CopyMetaDescriptionToDescription(category_name=_category_name(payload))


def _reject_unknown_keys(payload: Dict[str, Any], allowed: set) -> None:
    unknown = set(payload) - allowed
    if unknown:
        raise _InvalidPayload(f"unknown keys {sorted(unknown)}")


def _optional_string(payload: Dict[str, Any], key: str) -> Optional[str]:
    value = payload.get(key)
    if value is None or isinstance(value, str):
        return value
    raise _InvalidPayload(f"{key} must be a string")


def _category_name(payload: Dict[str, Any]) -> Optional[str]:
    # Blank names are treated like absent ones so the dispatcher asks for them.
    value = _optional_string(payload, CATEGORY_NAME_KEY)
    if value is None or not value.strip():
        return None
    return value.strip()
