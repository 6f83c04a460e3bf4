from fastapi import APIRouter
from typing import Any, Dict

from blindquote.services.validation import Validator

router = APIRouter()


@router.post("/customer")
async def validate_customer(payload: Dict[str, Any]):
    v = Validator()
    return v.validate_customer(payload)


@router.post("/item")
async def validate_item(payload: Dict[str, Any]):
    v = Validator()
    return v.validate_item(payload)
