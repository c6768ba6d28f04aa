from fastapi import APIRouter, Request
from fastapi.responses import PlainTextResponse

from app.models import HealthResponse

router = APIRouter(tags=["health"])


@router.get("/", response_class=PlainTextResponse)
def liveness() -> str:
    return "OK"


@router.get("/health", response_model=HealthResponse)
def health(request: Request) -> HealthResponse:
    relay = request.app.state.relay
    return HealthResponse(rooms=len(relay.registry), connections=len(relay.hub))
