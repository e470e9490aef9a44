"""FastAPI route definitions for the short-link service.

Thin HTTP surface over ShortLinkService. Domain errors are not caught here;
they are mapped to status codes by the exception handlers in shortlink.main.

API Endpoint Overview
=====================
::
    GET  /health
        └─ HealthResponse (200)

    POST /api/shorten
        ├─ LinkCreate (request body)
        └─ CreatedLink (201) or 422 / 503

    GET  /api/stats/:code
        └─ LinkStats (200) or 404

    POST /api/links/:code/expire
        └─ LinkStats (200) or 404

    GET  /:code
        └─ 307 Redirect or 404

Key Behaviours
===============
- 307 redirects preserve the HTTP method.
- Redirects never wait on hit counting.
- Redirects carry REDIRECT_CACHE_CONTROL, so browsers and CDNs may keep
  following an expired code for up to its max-age.
- Expired and unknown codes are indistinguishable to clients (404).
"""

from fastapi import APIRouter, Depends
from fastapi.responses import RedirectResponse

from shortlink.config import Settings, get_settings
from shortlink.dependencies import RequestContext, get_link_service, get_request_context
from shortlink.schemas import CreatedLink, HealthResponse, LinkCreate, LinkStats
from shortlink.service import ShortLinkService

__all__ = ["router"]

router = APIRouter()


@router.get("/health", response_model=HealthResponse, tags=["health"])
async def health_check(
    ctx: RequestContext = Depends(get_request_context),
    service: ShortLinkService = Depends(get_link_service),
) -> HealthResponse:
    health = await service.check_health()
    ctx.logger.info(f"Health check completed: {health.status.value}")
    return health


@router.post("/api/shorten", response_model=CreatedLink, status_code=201, tags=["links"])
async def shorten_url(
    payload: LinkCreate,
    ctx: RequestContext = Depends(get_request_context),
    service: ShortLinkService = Depends(get_link_service),
    settings: Settings = Depends(get_settings),
) -> CreatedLink:
    created = await service.create_link(payload.url, payload.ttl)
    created = created.model_copy(update={"short_url": f"{settings.BASE_URL}/{created.code}"})
    ctx.logger.info(
        f"URL shortened: {created.code}",
        extra={"operation": "create_link", "code": created.code, "duration_ms": ctx.get_duration()},
    )
    return created


@router.get("/api/stats/{code}", response_model=LinkStats, tags=["links"])
async def get_stats(
    code: str,
    service: ShortLinkService = Depends(get_link_service),
) -> LinkStats:
    return await service.get_link_stats(code)


@router.post("/api/links/{code}/expire", response_model=LinkStats, tags=["links"])
async def expire_link(
    code: str,
    ctx: RequestContext = Depends(get_request_context),
    service: ShortLinkService = Depends(get_link_service),
) -> LinkStats:
    stats = await service.expire_link(code)
    ctx.logger.info(f"Link expired via API: {code}", extra={"operation": "expire_link", "code": code})
    return stats


@router.get("/{code}", tags=["redirect"])
async def redirect_to_url(
    code: str,
    service: ShortLinkService = Depends(get_link_service),
    settings: Settings = Depends(get_settings),
) -> RedirectResponse:
    resolution = await service.resolve_link(code)
    return RedirectResponse(
        url=resolution.target_url,
        status_code=307,
        headers={"Cache-Control": settings.REDIRECT_CACHE_CONTROL},
    )
