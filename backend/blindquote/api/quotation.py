from fastapi import APIRouter, HTTPException, Request
from starlette.responses import HTMLResponse
from typing import Optional
import logging

from blindquote.api.quotes import dispatch, load_state
from blindquote.services.pricing import compute_totals
from blindquote.services.quotation import (
    VIEW_MODES,
    build_export_payload,
    quote_filename,
    render_print_document,
    render_quotation_html,
)
from blindquote.services.state import QuoteState, SetViewMode
from blindquote.services.workflow import WorkflowClient

logger = logging.getLogger(__name__)
router = APIRouter()


def _ready_state(quote_number: str) -> QuoteState:
    state = load_state(quote_number)
    if state.customer is None:
        raise HTTPException(status_code=409, detail="customer details are required")
    if not state.items:
        raise HTTPException(status_code=409, detail="add at least one item before generating a quotation")
    return state


def _render(state: QuoteState, view_mode: str) -> str:
    totals = compute_totals(state.items)
    return render_quotation_html(state.customer, state.items, totals, state.quote_number, view_mode)


@router.get("/{quote_number}/quotation")
def quotation(quote_number: str, request: Request, view: Optional[str] = None):
    state = _ready_state(quote_number)
    if view is not None:
        if view not in VIEW_MODES:
            raise HTTPException(status_code=422, detail=f"view must be one of {', '.join(VIEW_MODES)}")
        if view != state.view_mode:
            state = dispatch(quote_number, SetViewMode(view_mode=view))

    html = _render(state, state.view_mode)
    accept = request.headers.get('accept', '')
    if 'text/html' in accept:
        return HTMLResponse(content=html)

    return {
        "quoteNumber": state.quote_number,
        "viewMode": state.view_mode,
        "totals": compute_totals(state.items).model_dump(by_alias=True),
        "html": html,
    }


@router.get("/{quote_number}/quotation/print")
def printable_quotation(quote_number: str, view: Optional[str] = None):
    state = _ready_state(quote_number)
    view_mode = view if view in VIEW_MODES else state.view_mode
    filename = quote_filename(state.customer.name, state.quote_number)
    document = render_print_document(_render(state, view_mode), filename)
    logger.info("Printable quotation for quote=%s view=%s", quote_number, view_mode)
    return HTMLResponse(
        content=document,
        headers={"Content-Disposition": f'inline; filename="{filename}.html"'},
    )


@router.get("/{quote_number}/export")
def export_quote(quote_number: str):
    state = _ready_state(quote_number)
    return build_export_payload(state.customer, state.items, compute_totals(state.items), state.quote_number)


@router.post("/{quote_number}/send")
def send_quote(quote_number: str):
    state = _ready_state(quote_number)
    payload = build_export_payload(state.customer, state.items, compute_totals(state.items), state.quote_number)

    wf = WorkflowClient()
    logger.debug("Sending quote with payload: %s", payload)
    if not wf.trigger(payload):
        raise HTTPException(status_code=502, detail="Failed to deliver quote to workflow")
    return {"sent": True, "quoteNumber": state.quote_number}
