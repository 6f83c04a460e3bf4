"""Quote session state and its update function.

``QuoteState`` is immutable. Every change goes through ``apply`` which
returns a new state; ``diff`` and ``StateChannel`` let listeners follow the
changes without holding a reference to the state itself.
"""
import logging
import threading
import time
from typing import Any, Callable, Dict, List, Literal, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict

from blindquote.models.quote import Customer, LineItem
from blindquote.services.validation import Validator

logger = logging.getLogger(__name__)

Step = Literal["customer", "items", "review", "quotation"]
ViewMode = Literal["customer", "internal"]

STEPS = ("customer", "items", "review", "quotation")
VIEW_MODES = ("customer", "internal")


class StateError(ValueError):
    """Raised when an action does not fit the current state."""


def generate_quote_number() -> str:
    return "QU" + str(int(time.time() * 1000))[-6:]


class QuoteState(BaseModel):
    model_config = ConfigDict(frozen=True)

    quote_number: str
    customer: Optional[Customer] = None
    items: Tuple[LineItem, ...] = ()
    step: Step = "customer"
    editing_index: Optional[int] = None
    view_mode: ViewMode = "customer"


def new_state(quote_number: Optional[str] = None) -> QuoteState:
    return QuoteState(quote_number=quote_number or generate_quote_number())


# --- actions ---

class SetCustomer(BaseModel):
    customer: Customer


class SubmitItem(BaseModel):
    item: LineItem


class UpdateItem(BaseModel):
    index: int
    item: LineItem


class DeleteItem(BaseModel):
    index: int


class BeginEdit(BaseModel):
    index: int


class CancelEdit(BaseModel):
    pass


class SetStep(BaseModel):
    step: str


class SetViewMode(BaseModel):
    view_mode: str


class Reset(BaseModel):
    pass


Action = Union[SetCustomer, SubmitItem, UpdateItem, DeleteItem, BeginEdit,
               CancelEdit, SetStep, SetViewMode, Reset]


def _check_index(state: QuoteState, index: int) -> None:
    if isinstance(index, bool) or not isinstance(index, int) or not 0 <= index < len(state.items):
        raise StateError(f"invalid item index: {index!r}")


def _set_customer(state: QuoteState, action: SetCustomer) -> QuoteState:
    result = Validator().validate_customer(action.customer.model_dump())
    if result["decision"] == "rejected":
        raise StateError("invalid customer: " + ",".join(result["issues"]))
    return state.model_copy(update={"customer": action.customer})


def _submit_item(state: QuoteState, action: SubmitItem) -> QuoteState:
    if state.customer is None:
        raise StateError("customer details are required before adding items")
    if state.editing_index is not None:
        return _update_item(state, UpdateItem(index=state.editing_index, item=action.item))
    return state.model_copy(update={"items": state.items + (action.item,)})


def _update_item(state: QuoteState, action: UpdateItem) -> QuoteState:
    _check_index(state, action.index)
    items = list(state.items)
    items[action.index] = action.item
    return state.model_copy(update={"items": tuple(items), "editing_index": None})


def _delete_item(state: QuoteState, action: DeleteItem) -> QuoteState:
    _check_index(state, action.index)
    items = state.items[:action.index] + state.items[action.index + 1:]
    editing = state.editing_index
    if editing is not None:
        if editing == action.index:
            editing = None
        elif editing > action.index:
            editing -= 1
    update: Dict[str, Any] = {"items": items, "editing_index": editing}
    # nothing left to review
    if not items and state.step in ("review", "quotation"):
        update["step"] = "items"
    return state.model_copy(update=update)


def _begin_edit(state: QuoteState, action: BeginEdit) -> QuoteState:
    _check_index(state, action.index)
    return state.model_copy(update={"editing_index": action.index, "step": "items"})


def _cancel_edit(state: QuoteState, action: CancelEdit) -> QuoteState:
    return state.model_copy(update={"editing_index": None})


def _set_step(state: QuoteState, action: SetStep) -> QuoteState:
    if action.step not in STEPS:
        raise StateError(f"invalid step: {action.step!r}")
    if action.step != "customer" and state.customer is None:
        raise StateError("customer details are required first")
    if action.step in ("review", "quotation") and not state.items:
        raise StateError("add at least one item first")
    return state.model_copy(update={"step": action.step})


def _set_view_mode(state: QuoteState, action: SetViewMode) -> QuoteState:
    if action.view_mode not in VIEW_MODES:
        raise StateError(f"invalid view mode: {action.view_mode!r}")
    return state.model_copy(update={"view_mode": action.view_mode})


def _reset(state: QuoteState, action: Reset) -> QuoteState:
    # the quote number belongs to the session and survives a reset
    return new_state(state.quote_number)


_HANDLERS: Dict[type, Callable[[QuoteState, Any], QuoteState]] = {
    SetCustomer: _set_customer,
    SubmitItem: _submit_item,
    UpdateItem: _update_item,
    DeleteItem: _delete_item,
    BeginEdit: _begin_edit,
    CancelEdit: _cancel_edit,
    SetStep: _set_step,
    SetViewMode: _set_view_mode,
    Reset: _reset,
}


def apply(state: QuoteState, action: Action) -> QuoteState:
    handler = _HANDLERS.get(type(action))
    if handler is None:
        raise StateError(f"unknown action: {type(action).__name__}")
    return handler(state, action)


def diff(old: QuoteState, new: QuoteState) -> Dict[str, Any]:
    """Top-level fields of ``new`` that differ from ``old``."""
    before = old.model_dump(mode="json")
    after = new.model_dump(mode="json")
    return {key: value for key, value in after.items() if before.get(key) != value}


Listener = Callable[[str, Dict[str, Any]], None]


class StateChannel:
    """Publishes state diffs to subscribers, keyed by quote number."""

    def __init__(self):
        self._lock = threading.Lock()
        self._listeners: List[Listener] = []

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def publish(self, quote_number: str, changes: Dict[str, Any]) -> None:
        if not changes:
            return
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(quote_number, changes)
            except Exception:
                logger.exception("State listener failed for quote=%s", quote_number)
