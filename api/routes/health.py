import time

from fastapi import APIRouter, Depends, Request
from fastapi.responses import HTMLResponse

from api.dependencies import Services, get_services
from api.index_page import IndexPageRenderer
from api.schemas import HealthResponse

router = APIRouter(tags=["health"])

_renderer = IndexPageRenderer()


@router.get("/", response_class=HTMLResponse, include_in_schema=False)
async def index(request: Request) -> HTMLResponse:
    return HTMLResponse(_renderer.render(request.app))


@router.get("/health", response_model=HealthResponse)
async def health(services: Services = Depends(get_services)) -> HealthResponse:
    """Health check."""
    return HealthResponse(
        uptime_seconds=int(time.time() - services.started_at),
        contexts=len(services.store),
        object_store=services.config.object_store.provider,
    )
