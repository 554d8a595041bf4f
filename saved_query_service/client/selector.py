from dataclasses import dataclass, field
from enum import Enum
from typing import Callable

from ..models import StoredSavedQueryModel
from .api import SavedQueryApi

__all__ = [
    "LOAD_ERROR_MESSAGE",
    "FlowState",
    "InvalidTransition",
    "Flow",
    "SavedQuerySelector",
]

LOAD_ERROR_MESSAGE = "Could not get your saved queries"


class FlowState(str, Enum):
    IDLE = "idle"
    CONFIRMING = "confirming"
    SUBMITTING = "submitting"
    DONE = "done"
    ERROR = "error"


class InvalidTransition(Exception):
    pass


# Allowed (from -> to) moves for the edit and remove flows.
_TRANSITIONS: dict[FlowState, frozenset[FlowState]] = {
    FlowState.IDLE: frozenset({FlowState.CONFIRMING}),
    FlowState.CONFIRMING: frozenset({FlowState.IDLE, FlowState.CONFIRMING, FlowState.SUBMITTING}),
    FlowState.SUBMITTING: frozenset({FlowState.DONE, FlowState.ERROR}),
    FlowState.DONE: frozenset({FlowState.CONFIRMING}),
    FlowState.ERROR: frozenset({FlowState.CONFIRMING}),
}


@dataclass
class Flow:
    name: str
    state: FlowState = FlowState.IDLE
    target: int | None = None
    error: Exception | None = None

    def move(self, to: FlowState) -> None:
        if to not in _TRANSITIONS[self.state]:
            raise InvalidTransition(f"{self.name}: cannot move from {self.state.value} to {to.value}")
        self.state = to

    @property
    def submitting(self) -> bool:
        return self.state == FlowState.SUBMITTING


@dataclass
class SavedQuerySelector:
    """
    UI-agnostic state for picking, editing and removing the saved queries of one project. Selecting a query is a
    pure callback; editing and removing each go through an explicit confirm/submit state machine.
    """

    api: SavedQueryApi
    project_id: int
    on_select: Callable[[StoredSavedQueryModel], None] | None = None

    queries: list[StoredSavedQueryModel] = field(default_factory=list)
    loading: bool = False
    load_error: str | None = None
    selected_id: int | None = None

    draft: str = ""
    edit: Flow = field(default_factory=lambda: Flow("edit"))
    remove: Flow = field(default_factory=lambda: Flow("remove"))

    async def load(self, type_: str | None = None) -> None:
        self.loading = True
        self.load_error = None
        try:
            self.queries = list(await self.api.list(self.project_id, type_))
        except Exception:
            self.load_error = LOAD_ERROR_MESSAGE
        finally:
            self.loading = False

    def select(self, query: StoredSavedQueryModel) -> None:
        self.selected_id = query.id
        if self.on_select is not None:
            self.on_select(query)

    # Edit flow -------------------------------------------------------------------------------------------------------

    def request_edit(self, query: StoredSavedQueryModel) -> None:
        self.edit.move(FlowState.CONFIRMING)
        self.edit.target = query.id
        self.edit.error = None
        self.draft = query.summary

    def set_draft(self, summary: str) -> None:
        if self.edit.state != FlowState.CONFIRMING:
            raise InvalidTransition("edit: draft can only be changed while confirming")
        self.draft = summary

    def cancel_edit(self) -> None:
        self.edit.move(FlowState.IDLE)
        self.edit.target = None
        self.draft = ""

    async def confirm_edit(self) -> StoredSavedQueryModel | None:
        if self.edit.state == FlowState.CONFIRMING and not self.draft.strip():
            raise InvalidTransition("edit: summary cannot be empty")

        self.edit.move(FlowState.SUBMITTING)
        target, self.edit.target = self.edit.target, None

        try:
            updated = await self.api.update(self.project_id, target, self.draft)
        except Exception as e:
            self.edit.error = e
            self.edit.move(FlowState.ERROR)
            return None

        self.queries = [updated if q.id == updated.id else q for q in self.queries]
        self.draft = ""
        self.edit.move(FlowState.DONE)
        return updated

    # Remove flow -----------------------------------------------------------------------------------------------------

    def request_remove(self, query_id: int) -> None:
        self.remove.move(FlowState.CONFIRMING)
        self.remove.target = query_id
        self.remove.error = None

    def cancel_remove(self) -> None:
        self.remove.move(FlowState.IDLE)
        self.remove.target = None

    async def confirm_remove(self) -> bool:
        self.remove.move(FlowState.SUBMITTING)
        target, self.remove.target = self.remove.target, None

        try:
            await self.api.remove(self.project_id, target)
        except Exception as e:
            self.remove.error = e
            self.remove.move(FlowState.ERROR)
            return False

        self.queries = [q for q in self.queries if q.id != target]
        if self.selected_id == target:
            self.selected_id = None
        self.remove.move(FlowState.DONE)
        return True
