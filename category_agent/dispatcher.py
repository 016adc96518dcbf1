"""Action dispatch state machine for category chat turns.

Role:
    Takes the raw model reply for one turn, decodes it into an Action, resolves the
    addressed category against a freshly fetched catalog and performs the read or
    write, producing exactly one user-facing response (or none, for the silent
    copy branch). Nothing is kept between calls.

States:
    IDLE -> DISPATCHING -> RESOLVING -> EXECUTING -> RESPONDED
    Any state may jump straight to RESPONDED once a response is fixed
    (plain replies, listings, missing names, ambiguity, not found, backend errors).

Step contracts:
    Dispatch:
        Parses raw text; answers NoOp and ListCategories directly; answers
        missing category names.
    Resolve:
        Fetches the catalog and resolves the name; answers Suggestions/not found.
    Execute:
        Formats metadata or builds the sparse patch and writes it.
    Finalize:
        Always runs; marks the turn RESPONDED.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from . import replies
from .errors import CategoryUpdateError, DirectoryConnectionError
from .intents import (
    Action,
    CopyMetaDescriptionToDescription,
    GetCategoryMetadata,
    ListCategories,
    NoOp,
    UpdateCategoryMetadata,
    action_name,
    parse,
)
from .models import WordPressCredentials
from .resolver import DEFAULT_LIMIT, DEFAULT_THRESHOLD, ExactMatch, ResolutionResult, resolve
from .step_runner import PipelineStep, StepRunner
from .wordpress_client import Category

logger = logging.getLogger("catagent.dispatcher")

# Fields that only apply with a non-blank value; description may be cleared.
NON_BLANK_FIELDS = ("name", "slug", "meta_title", "meta_description", "focus_keyphrase")
CLEARABLE_FIELDS = ("description",)


class DispatchState(str, Enum):
    IDLE = "idle"
    DISPATCHING = "dispatching"
    RESOLVING = "resolving"
    EXECUTING = "executing"
    RESPONDED = "responded"


@dataclass
class DispatchContext:
    """Mutable context passed through each dispatch step."""
    raw_text: str
    credentials: WordPressCredentials
    state: DispatchState = DispatchState.IDLE
    action: Action = field(default_factory=lambda: NoOp(""))
    resolution: Optional[ResolutionResult] = None
    category: Optional[Category] = None
    response: Optional[str] = None
    responded: bool = False
    states: List[DispatchState] = field(default_factory=lambda: [DispatchState.IDLE])
    thinking_logs: List[Dict[str, str]] = field(default_factory=list)

    def transition(self, state: DispatchState, detail: str = "") -> None:
        """Move to `state` and record it for the UI trace."""
        self.state = state
        self.states.append(state)
        self.thinking_logs.append(
            {
                "event": state.value,
                "step": state.value,
                "detail": detail,
                "status": "success",
            }
        )
        logger.debug("dispatch state=%s detail=%s", state.value, detail)

    def respond(self, text: Optional[str]) -> None:
        self.response = text
        self.responded = True


@dataclass
class DispatchResult:
    """Outcome of one dispatch call."""
    text: Optional[str]
    action: Action
    states: List[DispatchState]
    thinking_logs: List[Dict[str, str]]

    @property
    def action_name(self) -> str:
        return action_name(self.action)


def _has_responded(context: DispatchContext) -> bool:
    return context.responded


class ActionDispatcher:
    def __init__(
        self,
        directory: Any,
        max_suggestions: int = DEFAULT_LIMIT,
        suggestion_threshold: float = DEFAULT_THRESHOLD,
    ) -> None:
        """Purpose: Wire the dispatcher to a category directory and resolver limits.
        Inputs/Outputs: Inputs are an object exposing async list_all/update (normally
            WordPressCategoryClient) and the suggestion cap/floor; no return value.
        Side Effects / State: Builds the StepRunner with the ordered dispatch steps.
        Dependencies: StepRunner/PipelineStep and the step methods on this class.
        Failure Modes: None at init.
        If Removed: Parsed actions are never executed against WordPress.
        Testing Notes: Use a fake directory with AsyncMock methods and count calls.
        """
        self._directory = directory
        self._max_suggestions = max_suggestions
        self._suggestion_threshold = suggestion_threshold
        self._runner = StepRunner(
            steps=[
                PipelineStep("dispatch", self._step_dispatch),
                PipelineStep("resolve", self._step_resolve, skip_if=_has_responded),
                PipelineStep("execute", self._step_execute, skip_if=_has_responded),
                PipelineStep("finalize", self._step_finalize, always_run=True),
            ]
        )

    async def dispatch(self, raw_text: str, credentials: WordPressCredentials) -> DispatchResult:
        """Purpose: Run one raw model reply through the dispatch state machine.
        Inputs/Outputs: Inputs are the raw model text and the session credentials;
            output is a DispatchResult whose `text` is the response (None only for the
            silent copy branch).
        Side Effects / State: At most one catalog read and one category write.
        Dependencies: parse, resolve, and the directory's list_all/update.
        Failure Modes: Backend errors are turned into chat messages; unexpected
            exceptions propagate to the caller.
        If Removed: The assistant can only echo model text.
        Testing Notes: Cover each action with exact, ambiguous and unknown names.
        """
        context = DispatchContext(raw_text=raw_text, credentials=credentials)
        await self._runner.run(context)
        return DispatchResult(
            text=context.response,
            action=context.action,
            states=context.states,
            thinking_logs=context.thinking_logs,
        )

    async def _step_dispatch(self, context: DispatchContext) -> None:
        """Decode the action and answer everything that needs no name resolution."""
        action = parse(context.raw_text)
        context.action = action
        context.transition(DispatchState.DISPATCHING, action_name(action))
        logger.info("dispatch action=%s", action_name(action))

        if isinstance(action, NoOp):
            context.respond(action.text)
            return

        if isinstance(action, ListCategories):
            categories = await self._load_catalog(context)
            if categories is not None:
                context.respond(replies.category_list(categories))
            return

        if action.category_name is None:
            if isinstance(action, GetCategoryMetadata):
                context.respond(replies.ASK_CATEGORY_NAME)
            elif isinstance(action, UpdateCategoryMetadata):
                context.respond(replies.ASK_CATEGORY_NAME_UPDATE)
            else:
                # Copy without a name ends the turn with no message.
                context.respond(None)

    async def _step_resolve(self, context: DispatchContext) -> None:
        """Fetch the catalog and pin the action to exactly one category."""
        action = context.action
        context.transition(DispatchState.RESOLVING, action.category_name)
        categories = await self._load_catalog(context)
        if categories is None:
            return

        resolution = resolve(
            categories,
            action.category_name,
            limit=self._max_suggestions,
            threshold=self._suggestion_threshold,
        )
        context.resolution = resolution
        if isinstance(resolution, ExactMatch):
            context.category = resolution.category
            logger.info("dispatch resolved query=%s category_id=%s", action.category_name, resolution.category.id)
            return

        for_update = not isinstance(action, GetCategoryMetadata)
        if resolution:
            logger.info("dispatch ambiguous query=%s suggestions=%s", action.category_name, resolution.names)
            context.respond(replies.suggestions(action.category_name, resolution.names, for_update=for_update))
        else:
            logger.info("dispatch not_found query=%s", action.category_name)
            context.respond(replies.not_found(action.category_name, for_update=for_update))

    async def _step_execute(self, context: DispatchContext) -> None:
        """Read or write the resolved category."""
        action = context.action
        category = context.category
        context.transition(DispatchState.EXECUTING, category.name)

        if isinstance(action, GetCategoryMetadata):
            context.respond(replies.category_metadata(category))
            return

        if isinstance(action, UpdateCategoryMetadata):
            patch = build_update_patch(action)
            if not patch:
                context.respond(replies.NOTHING_TO_CHANGE)
                return
            await self._apply_patch(context, patch, replies.update_success(patch.get("name", category.name)))
            return

        if isinstance(action, CopyMetaDescriptionToDescription):
            meta_description = category.seo.meta_description
            if not meta_description:
                context.respond(replies.nothing_to_copy(category.name))
                return
            patch = {"description": meta_description}
            await self._apply_patch(context, patch, replies.copy_success(category.name))

    async def _step_finalize(self, context: DispatchContext) -> None:
        context.transition(DispatchState.RESPONDED, "silent" if context.response is None else "")
        logger.info(
            "dispatch done action=%s states=%s",
            action_name(context.action),
            ",".join(state.value for state in context.states),
        )

    async def _load_catalog(self, context: DispatchContext) -> Optional[List[Category]]:
        # Read-path failures become the generic apology; no retry.
        try:
            return await self._directory.list_all(context.credentials)
        except DirectoryConnectionError as exc:
            logger.warning("dispatch catalog unavailable error=%s", exc)
            context.respond(replies.CONNECTION_APOLOGY)
            return None

    async def _apply_patch(self, context: DispatchContext, patch: Dict[str, str], success_text: str) -> None:
        category = context.category
        try:
            await self._directory.update(context.credentials, category.id, patch)
        except CategoryUpdateError as exc:
            logger.warning("dispatch update failed category_id=%s error=%s", category.id, exc)
            context.respond(replies.update_failure(category.name))
            return
        logger.info("dispatch updated category_id=%s fields=%s", category.id, sorted(patch))
        context.respond(success_text)


def build_update_patch(action: UpdateCategoryMetadata) -> Dict[str, str]:
    """Purpose: Build the sparse patch for an update action.
    Inputs/Outputs: Input is an UpdateCategoryMetadata; output is a dict holding only
        the fields to change, keyed by wordpress_client.PATCH_KEYS.
    Side Effects / State: None.
    Dependencies: NON_BLANK_FIELDS and CLEARABLE_FIELDS.
    Failure Modes: None; an empty dict means nothing to change.
    If Removed: Updates cannot tell "clear the description" from "leave it alone".
    Testing Notes: {"metaTitle": "T"} -> {"meta_title": "T"};
        {"description": ""} -> {"description": ""}; {"name": "  "} -> {}.
    """
    patch: Dict[str, str] = {}
    for key in CLEARABLE_FIELDS:
        value = getattr(action, key)
        if value is not None:
            patch[key] = value
    for key in NON_BLANK_FIELDS:
        value = getattr(action, key)
        if value is not None and value.strip():
            patch[key] = value.strip()
    return patch
