from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from ..config import Settings, get_settings
from ..models import CapabilityResponse, HealthResponse, RootResponse
from ..services.conversation.chat_handler import get_chat_service

router = APIRouter(tags=["meta"])


@router.get("/health", response_model=HealthResponse)
# Return service health status for monitoring and load balancers
def health(settings: Settings = Depends(get_settings)) -> HealthResponse:
    return HealthResponse(ok=True, service="skye", version=settings.app_version)


@router.get("/meta", response_model=RootResponse)
# Return service metadata including available API endpoints
def meta(request: Request, settings: Settings = Depends(get_settings)) -> RootResponse:
    endpoints = sorted(
        {
            route.path
            for route in request.app.routes
            if getattr(route, "include_in_schema", False) and route.path.startswith("/api/")
        }
    )
    return RootResponse(
        status="ok",
        service="skye",
        version=settings.app_version,
        endpoints=endpoints,
    )


@router.get("/meta/capabilities", response_model=CapabilityResponse)
# Report whether the configured model was detected as image-capable
def capabilities(settings: Settings = Depends(get_settings)) -> CapabilityResponse:
    service = get_chat_service()
    return CapabilityResponse(
        model=settings.model,
        supports_images=service.capabilities.supports_images(settings.model),
    )
