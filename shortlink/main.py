"""FastAPI application entry point for the short-link service.

This module configures the FastAPI application with lifecycle management,
error mapping, metrics exposition and route registration.

Application Lifecycle Diagram
===========================
::
    ┌─────────────┐
    │  startup    │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ init_db()   │  create short_links table
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ Service     │  store, cache, hit counter
    │ Manager     │  (+ Redis when buffered)
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │  serving    │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │  shutdown   │  drain/flush hits, close Redis, dispose engine
    └─────────────┘

How to Use
===========
**Step 1 — Run with uvicorn**::
    uvicorn shortlink.main:app --host 0.0.0.0 --port 8000

**Step 2 — Make API calls**::
    curl -X POST http://localhost:8000/api/shorten \
         -H "Content-Type: application/json" \
         -d '{"url": "https://example.com/very/long/path"}'

Error Mapping
=============
::
    InvalidURL           → 422
    NotFound             → 404
    AllocationExhausted  → 503
    StoreUnavailable     → 503
"""

__all__ = ["app"]

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_fastapi_instrumentator import Instrumentator

from shortlink.config import get_settings
from shortlink.database import close_db, init_db
from shortlink.dependencies import _service_manager
from shortlink.errors import AllocationExhausted, InvalidURL, NotFound, StoreUnavailable
from shortlink.routes import router

settings = get_settings()
logger = logging.getLogger("shortlink")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    # Startup
    await init_db()
    await _service_manager.initialize()
    yield
    # Shutdown
    await _service_manager.cleanup()
    await close_db()


app = FastAPI(
    title=settings.APP_NAME,
    version="1.0.0",
    description="Short-code allocation and resolution service",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

Instrumentator(
    should_group_status_codes=True,
    should_ignore_untemplated=False,
    should_respect_env_var=False,
).instrument(app).expose(app)


@app.exception_handler(InvalidURL)
async def invalid_url_handler(request: Request, exc: InvalidURL) -> JSONResponse:
    return JSONResponse(status_code=422, content={"detail": exc.reason, "url": exc.target_url})


@app.exception_handler(NotFound)
async def not_found_handler(request: Request, exc: NotFound) -> JSONResponse:
    return JSONResponse(status_code=404, content={"detail": "Short URL not found"})


@app.exception_handler(AllocationExhausted)
async def allocation_exhausted_handler(request: Request, exc: AllocationExhausted) -> JSONResponse:
    return JSONResponse(status_code=503, content={"detail": "Short code space exhausted, try again later"})


@app.exception_handler(StoreUnavailable)
async def store_unavailable_handler(request: Request, exc: StoreUnavailable) -> JSONResponse:
    logger.warning(f"Request failed, store unavailable: {exc}")
    return JSONResponse(
        status_code=503,
        content={"detail": "Storage temporarily unavailable"},
        headers={"Retry-After": "1"},
    )


app.include_router(router)
