"""Offer generation routes: buffered JSON, server-sent events and the catalog."""

from typing import Optional

import structlog
from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse
from starlette.responses import StreamingResponse

from offers.errors import ConfigurationError, PipelineError, RateLimitError, ValidationError
from offers.registry import registry
from offers.service import GenerationRequest, GenerationService
from web.auth import get_optional_user, request_identity
from web.deps import get_generation_service, get_rate_limiter
from web.models import GenerateRequest, OfferSummary
from web.rate_limit import RateLimiter

logger = structlog.get_logger()

router = APIRouter(prefix="/api/offers", tags=["offers"])


def error_response(e: PipelineError) -> JSONResponse:
    """Map a pipeline error to its HTTP status and structured body."""
    headers = None
    if isinstance(e, RateLimitError):
        status_code = 429
        headers = {"Retry-After": str(e.retry_after)}
    elif isinstance(e, (ValidationError, ConfigurationError)):
        status_code = 400
    else:
        status_code = 500
    return JSONResponse(status_code=status_code, content=e.to_dict(), headers=headers)


def _to_request(body: GenerateRequest, identity: str) -> GenerationRequest:
    return GenerationRequest(
        intent=body.intent.value,
        user_input=body.user_input,
        client_identifier=body.client_identifier,
        offer=body.offer,
        conversation_id=body.conversation_id,
        identity=identity,
    )


@router.get("", response_model=list[OfferSummary])
def list_offers(intent: Optional[str] = Query(None)):
    definitions = registry.for_intent(intent) if intent else registry.all()
    return [d.summary() for d in definitions]


@router.post("/generate")
def generate(
    body: GenerateRequest,
    request: Request,
    user: Optional[dict] = Depends(get_optional_user),
    service: GenerationService = Depends(get_generation_service),
    limiter: RateLimiter = Depends(get_rate_limiter),
):
    identity, authenticated = request_identity(request, user)
    try:
        limiter.enforce(identity, authenticated)
        return service.run(_to_request(body, identity))
    except PipelineError as e:
        logger.warning(
            "offers.generate_failed",
            client=body.client_identifier,
            error_type=type(e).__name__,
            error=e.message,
        )
        return error_response(e)


@router.post("/generate-stream")
def generate_stream(
    body: GenerateRequest,
    request: Request,
    user: Optional[dict] = Depends(get_optional_user),
    service: GenerationService = Depends(get_generation_service),
    limiter: RateLimiter = Depends(get_rate_limiter),
):
    identity, authenticated = request_identity(request, user)
    try:
        limiter.enforce(identity, authenticated)
    except RateLimitError as e:
        return error_response(e)

    events = service.stream(_to_request(body, identity))

    def frames():
        for event in events:
            yield event.to_sse()

    return StreamingResponse(
        frames(),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )
