from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel
from typing import Any, Dict
import logging

from blindquote.models.quote import Customer, ItemInput
from blindquote.services.items import build_line_item, to_item_input
from blindquote.services.pricing import compute_totals
from blindquote.services.sessions import SessionNotFound, get_store
from blindquote.services.state import (
    Action,
    BeginEdit,
    CancelEdit,
    DeleteItem,
    QuoteState,
    Reset,
    SetCustomer,
    SetStep,
    SetViewMode,
    StateError,
    SubmitItem,
    UpdateItem,
)
from blindquote.services.validation import Validator

logger = logging.getLogger(__name__)
router = APIRouter()


class StepUpdate(BaseModel):
    step: str


class ViewModeUpdate(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    view_mode: str


def state_response(state: QuoteState) -> Dict[str, Any]:
    return {
        "quoteNumber": state.quote_number,
        "customer": state.customer.model_dump(by_alias=True) if state.customer else None,
        "items": [item.model_dump(by_alias=True) for item in state.items],
        "step": state.step,
        "editingIndex": state.editing_index,
        "viewMode": state.view_mode,
        "totals": compute_totals(state.items).model_dump(by_alias=True),
    }


def load_state(quote_number: str) -> QuoteState:
    try:
        return get_store().get(quote_number)
    except SessionNotFound:
        raise HTTPException(status_code=404, detail="quote not found")


def dispatch(quote_number: str, action: Action) -> QuoteState:
    try:
        return get_store().dispatch(quote_number, action)
    except SessionNotFound:
        raise HTTPException(status_code=404, detail="quote not found")
    except StateError as e:
        logger.info("Rejected %s for quote=%s: %s", type(action).__name__, quote_number, e)
        raise HTTPException(status_code=409, detail=str(e))


def _priced_item(data: ItemInput):
    result = build_line_item(data)
    if not result.ok:
        raise HTTPException(status_code=422, detail={"message": "Unable to price item", "issues": result.issues})
    return result.item


@router.post("/", status_code=201)
def create_quote():
    state = get_store().create()
    return state_response(state)


@router.get("/{quote_number}")
def get_quote(quote_number: str):
    return state_response(load_state(quote_number))


@router.delete("/{quote_number}")
def reset_quote(quote_number: str):
    state = dispatch(quote_number, Reset())
    logger.info("Reset quote=%s", quote_number)
    return state_response(state)


@router.put("/{quote_number}/customer")
def set_customer(quote_number: str, customer: Customer):
    validation = Validator().validate_customer(customer.model_dump())
    if validation["decision"] == "rejected":
        raise HTTPException(status_code=422, detail={"message": "Invalid customer", "issues": validation["issues"]})
    dispatch(quote_number, SetCustomer(customer=customer))
    state = dispatch(quote_number, SetStep(step="items"))
    logger.info("Customer saved for quote=%s", quote_number)
    return state_response(state)


@router.post("/{quote_number}/items")
def submit_item(quote_number: str, data: ItemInput):
    load_state(quote_number)
    item = _priced_item(data)
    state = dispatch(quote_number, SubmitItem(item=item))
    logger.info("Item saved for quote=%s unit_price=%s quantity=%s items=%s",
                quote_number, item.unit_price, item.quantity, len(state.items))
    return state_response(state)


@router.put("/{quote_number}/items/{index}")
def update_item(quote_number: str, index: int, data: ItemInput):
    load_state(quote_number)
    item = _priced_item(data)
    state = dispatch(quote_number, UpdateItem(index=index, item=item))
    logger.info("Item %s updated for quote=%s", index, quote_number)
    return state_response(state)


@router.delete("/{quote_number}/items/{index}")
def delete_item(quote_number: str, index: int):
    state = dispatch(quote_number, DeleteItem(index=index))
    logger.info("Item %s deleted from quote=%s", index, quote_number)
    return state_response(state)


@router.post("/{quote_number}/items/{index}/edit")
def begin_edit(quote_number: str, index: int):
    state = dispatch(quote_number, BeginEdit(index=index))
    return {
        "input": to_item_input(state.items[index]).model_dump(by_alias=True, exclude_none=True),
        "state": state_response(state),
    }


@router.delete("/{quote_number}/edit")
def cancel_edit(quote_number: str):
    return state_response(dispatch(quote_number, CancelEdit()))


@router.put("/{quote_number}/step")
def set_step(quote_number: str, update: StepUpdate):
    return state_response(dispatch(quote_number, SetStep(step=update.step)))


@router.put("/{quote_number}/view-mode")
def set_view_mode(quote_number: str, update: ViewModeUpdate):
    return state_response(dispatch(quote_number, SetViewMode(view_mode=update.view_mode)))


@router.get("/{quote_number}/totals")
def get_totals(quote_number: str):
    state = load_state(quote_number)
    return compute_totals(state.items).model_dump(by_alias=True)
