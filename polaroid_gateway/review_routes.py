"""Review routes: list all reviews and add a new one."""

from __future__ import annotations

from typing import Any, Dict, List

from fastapi import APIRouter, Body, Depends, HTTPException
from pydantic import BaseModel, ValidationError

from .dependencies import get_state
from .reviews import Review, ReviewPayload
from .state import GatewayState

router = APIRouter(prefix="/api/reviews", tags=["reviews"])


class ReviewListResponse(BaseModel):
    reviews: List[Review]


class ReviewCreateResponse(BaseModel):
    success: bool
    review: Review


@router.get("", response_model=ReviewListResponse)
async def list_reviews(state: GatewayState = Depends(get_state)) -> ReviewListResponse:
    return ReviewListResponse(reviews=await state.reviews.load())


@router.post("", response_model=ReviewCreateResponse)
async def add_review(
    body: Dict[str, Any] = Body(...),
    state: GatewayState = Depends(get_state),
) -> ReviewCreateResponse:
    try:
        payload = ReviewPayload.model_validate(body)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail="Invalid review data") from e
    review = await state.reviews.add(payload)
    return ReviewCreateResponse(success=True, review=review)
