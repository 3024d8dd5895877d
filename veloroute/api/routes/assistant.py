"""Natural-language route requests against a builder session."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from veloroute.api.deps import get_builder_session
from veloroute.api.sessions import BuilderSession
from veloroute.contracts.intent import ClarificationAnswer, TranslationContext
from veloroute.services.errors import InvalidTransition, UnparseableResponse

router = APIRouter(prefix="/assistant", tags=["assistant"])


class RouteRequestBody(BaseModel):
    text: str = Field(..., min_length=1, max_length=1000)
    context: TranslationContext | None = None


@router.post("/sessions/{session_id}/parse")
async def parse_request(
    body: RouteRequestBody, builder: BuilderSession = Depends(get_builder_session)
) -> dict:
    """Structured intent only; nothing is geocoded or seeded."""
    try:
        intent = await builder.translator.parse(body.text, body.context)
    except UnparseableResponse as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    return intent.model_dump(mode="json", by_alias=True)


@router.post("/sessions/{session_id}/translate")
async def translate(
    body: RouteRequestBody, builder: BuilderSession = Depends(get_builder_session)
) -> dict:
    try:
        outcome = await builder.translator.translate(body.text, body.context)
    except InvalidTransition as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    return outcome.model_dump(mode="json")


@router.post("/sessions/{session_id}/answer")
async def answer(
    body: ClarificationAnswer, builder: BuilderSession = Depends(get_builder_session)
) -> dict:
    try:
        outcome = await builder.translator.answer(body)
    except InvalidTransition as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    return outcome.model_dump(mode="json")
