"""
Template editing lifecycle.

    IDLE -> EDITING (open) -> VALIDATING (content change, debounced)
         -> INVALID | VALID -> SUBMITTING (submit) -> IDLE | EDITING (failure)

cancel() returns to IDLE from any state.
"""
import logging
from enum import Enum
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from fastapi import HTTPException
from pydantic import BaseModel, ValidationError

from textock.modules.auth.schemas import SessionContext
from textock.modules.editor.debounce import Debouncer
from textock.modules.editor.workspace import TemplateWorkspace
from textock.modules.templates.quota import quota_exceeded_message
from textock.modules.templates.schemas import (
    DEFAULT_CATEGORY, TemplateCreate, TemplateResponse, TemplateUpdate, VariableDefinition,
)
from textock.modules.templates.variables import extract_variables, validate_template

logger = logging.getLogger(__name__)

DRAFT_FIELDS = ("title", "content", "description", "category", "tags", "is_markdown")
UNEXPECTED_SAVE_ERROR = "Something went wrong while saving the template. Please try again."


def _detail_message(detail: Any) -> str:
    if isinstance(detail, str):
        return detail
    if isinstance(detail, dict) and detail.get("message"):
        return str(detail["message"])
    return "Failed to save template"


class EditorState(str, Enum):
    IDLE = "idle"
    EDITING = "editing"
    VALIDATING = "validating"
    INVALID = "invalid"
    VALID = "valid"
    SUBMITTING = "submitting"


class EditorError(Exception):
    """Raised when the editor is driven out of order (e.g. change with no open draft)."""


class TemplateDraft(BaseModel):
    template_id: Optional[str] = None
    title: str = ""
    content: str = ""
    description: str = ""
    category: str = DEFAULT_CATEGORY
    tags: str = ""  # comma-separated, as typed
    is_markdown: bool = False
    base_updated_at: Optional[datetime] = None

    @classmethod
    def from_template(cls, template: TemplateResponse) -> "TemplateDraft":
        return cls(
            template_id=template.id,
            title=template.title,
            content=template.content,
            description=template.description or "",
            category=template.category,
            tags=", ".join(template.tags),
            is_markdown=template.is_markdown,
            base_updated_at=template.updated_at,
        )


class EditorSession:
    def __init__(
        self,
        session: SessionContext,
        workspace: TemplateWorkspace,
        debounce_seconds: float = 0.3,
        on_change: Optional[Callable[["EditorSession"], None]] = None,
    ):
        self.session = session
        self.workspace = workspace
        self.on_change = on_change
        self.state = EditorState.IDLE
        self.draft: Optional[TemplateDraft] = None
        self.variables: List[VariableDefinition] = []
        self.errors: List[str] = []
        self.field_errors: Dict[str, str] = {}
        self.last_error: Optional[str] = None
        self._generation = 0
        self._debouncer = Debouncer(debounce_seconds, self._run_checks)

    def _notify(self) -> None:
        if self.on_change is not None:
            self.on_change(self)

    def _reset(self) -> None:
        self._debouncer.cancel()
        self._generation += 1
        self.state = EditorState.IDLE
        self.draft = None
        self.variables = []
        self.errors = []
        self.field_errors = {}

    def _run_checks(self) -> None:
        if self.draft is None:
            return
        self.variables = extract_variables(self.draft.content)
        is_valid, self.errors = validate_template(self.draft.content)
        self.state = EditorState.VALID if is_valid else EditorState.INVALID
        self._notify()

    def open(self, template_id: Optional[str] = None) -> None:
        """Start a create draft, or an edit draft for an existing template."""
        if self.state == EditorState.SUBMITTING:
            raise EditorError("A save is in progress")
        if template_id is None:
            quota = self.workspace.quota()
            if quota.reached_limit:
                raise EditorError(quota_exceeded_message(quota.limit))
            template = None
        else:
            template = self.workspace.get(template_id)
            if template is None:
                raise EditorError("Template not found")

        self._reset()
        self.last_error = None
        if template is None:
            self.draft = TemplateDraft()
            self.state = EditorState.EDITING
            self._notify()
        else:
            self.draft = TemplateDraft.from_template(template)
            self._run_checks()

    def change(self, **fields: Any) -> None:
        """Apply typed field values. Content changes are re-validated after a quiet period."""
        if self.draft is None or self.state == EditorState.SUBMITTING:
            raise EditorError("No draft open for editing")
        unknown = set(fields) - set(DRAFT_FIELDS)
        if unknown:
            raise EditorError(f"Unknown draft field(s): {', '.join(sorted(unknown))}")

        try:
            self.draft = TemplateDraft.model_validate({**self.draft.model_dump(), **fields})
        except ValidationError as e:
            invalid = sorted({str(err["loc"][0]) for err in e.errors() if err["loc"]})
            raise EditorError(f"Invalid value for {', '.join(invalid)}")
        for name in fields:
            self.field_errors.pop(name, None)
        if "content" in fields:
            self.state = EditorState.VALIDATING
            self._debouncer.trigger()
        self._notify()

    def cancel(self) -> None:
        self._reset()
        self.last_error = None
        self._notify()

    def _form_errors(self) -> Dict[str, str]:
        errors: Dict[str, str] = {}
        if not self.draft.title.strip():
            errors["title"] = "Title is required"
        if self.state == EditorState.INVALID:
            errors["content"] = ", ".join(self.errors)
        return errors

    async def submit(self) -> Optional[TemplateResponse]:
        """Save the draft. Returns the saved template, or None when the draft is blocked or the save failed."""
        if self.draft is None:
            raise EditorError("No draft open for editing")
        if self.state == EditorState.SUBMITTING:
            raise EditorError("A save is in progress")

        if not self._debouncer.flush() and self.state == EditorState.EDITING:
            self._run_checks()
        self.field_errors = self._form_errors()
        if self.field_errors:
            self._notify()
            return None

        draft = self.draft
        generation = self._generation
        self.state = EditorState.SUBMITTING
        self.last_error = None
        self._notify()

        try:
            if draft.template_id is None:
                saved = await self.workspace.create(TemplateCreate(
                    title=draft.title,
                    content=draft.content,
                    description=draft.description,
                    category=draft.category,
                    tags=draft.tags,
                    is_markdown=draft.is_markdown,
                ))
            else:
                saved = await self.workspace.update(draft.template_id, TemplateUpdate(
                    title=draft.title,
                    content=draft.content,
                    description=draft.description,
                    category=draft.category,
                    tags=draft.tags,
                    is_markdown=draft.is_markdown,
                    expected_updated_at=draft.base_updated_at,
                ))
        except HTTPException as e:
            return self._fail(generation, _detail_message(e.detail))
        except Exception as e:
            logger.exception(f"Unexpected error while saving template: {e}")
            return self._fail(generation, UNEXPECTED_SAVE_ERROR)

        if generation == self._generation:
            self._reset()
            self._notify()
        return saved

    def _fail(self, generation: int, message: str) -> None:
        # Cancelled while the save was in flight
        if generation != self._generation:
            return None
        self.state = EditorState.EDITING
        self.last_error = message
        self._notify()
        return None

    def snapshot(self) -> Dict[str, Any]:
        return {
            "type": "editor",
            "state": self.state.value,
            "draft": self.draft.model_dump(mode="json") if self.draft else None,
            "variables": [v.model_dump() for v in self.variables],
            "errors": list(self.errors),
            "field_errors": dict(self.field_errors),
            "error": self.last_error,
            "quota": self.workspace.quota().model_dump(),
            "loading": self.session.loading,
        }
