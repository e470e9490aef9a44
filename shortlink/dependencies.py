"""Dependency injection with a singleton service manager.

This module wires the process-wide link service (store, cache, hit counter)
once at startup and hands it to every endpoint, together with a lightweight
per-request context carrying a request-scoped logger.
"""

import logging
import time
import uuid
from dataclasses import dataclass, field
from typing import Optional

from fastapi import Depends, Request

from shortlink.config import Settings, get_settings
from shortlink.database import get_session_factory
from shortlink.enums import HitCounterMode
from shortlink.redis import close_redis, get_redis
from shortlink.service import ShortLinkService, build_link_service

__all__ = [
    "ServiceManager",
    "RequestContext",
    "get_service_manager",
    "get_request_context",
    "get_link_service",
]


# ============================================================================
# SINGLETON SERVICE MANAGER
# ============================================================================


class ServiceManager:
    """Singleton service manager for shared resources.

    The link cache and hit counter must be shared by every request in the
    process, so the service is built exactly once here.
    """

    _instance: Optional["ServiceManager"] = None
    _initialized: bool = False

    def __new__(cls) -> "ServiceManager":
        """Implement singleton pattern."""
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    async def initialize(self) -> None:
        """Initialize shared resources once at startup."""
        if not self._initialized:
            self.settings = get_settings()
            self.logger = self._setup_logger(self.settings)
            cache_write = None
            if self.settings.HIT_COUNTER_MODE is HitCounterMode.REDIS:
                cache_write = await get_redis()
            self.link_service = build_link_service(
                self.settings,
                get_session_factory(),
                cache_write=cache_write,
                logger=self.logger,
            )
            await self.link_service.start()
            self._initialized = True

    def _setup_logger(self, settings: Settings) -> logging.Logger:
        """Setup logger once."""
        logger = logging.getLogger("shortlink")
        if not logger.handlers:
            handler = logging.StreamHandler()
            formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
            handler.setFormatter(formatter)
            logger.addHandler(handler)
            logger.setLevel(settings.LOG_LEVEL)
        return logger

    async def cleanup(self) -> None:
        """Cleanup shared resources at shutdown."""
        if self._initialized:
            await self.link_service.aclose()
            await close_redis()
        self._initialized = False


# Global singleton instance
_service_manager = ServiceManager()


# ============================================================================
# LIGHTWEIGHT REQUEST CONTEXT
# ============================================================================


@dataclass
class RequestContext:
    """Per-request tracking data.

    Attributes:
        logger_base: Shared application logger
        request_id: Unique identifier for this request
        trace_id: Correlation ID for distributed tracing
        client_ip: Client IP address
        start_time: Request start timestamp
    """

    logger_base: logging.Logger
    request_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    trace_id: Optional[str] = None
    client_ip: Optional[str] = None
    start_time: float = field(default_factory=time.time)

    @property
    def logger(self) -> logging.LoggerAdapter:
        """Shared logger with request context attached to every record."""
        return logging.LoggerAdapter(
            self.logger_base,
            {
                "request_id": self.request_id,
                "trace_id": self.trace_id or self.request_id,
                "client_ip": self.client_ip,
            },
        )

    def get_duration(self) -> float:
        """Get request duration in milliseconds."""
        return (time.time() - self.start_time) * 1000


# ============================================================================
# DEPENDENCY FUNCTIONS
# ============================================================================


async def get_service_manager() -> ServiceManager:
    if not _service_manager._initialized:
        await _service_manager.initialize()
    return _service_manager


async def get_request_context(request: Request) -> RequestContext:
    return RequestContext(
        logger_base=logging.getLogger("shortlink"),
        trace_id=request.headers.get("x-trace-id"),
        client_ip=request.client.host if request.client else None,
    )


async def get_link_service(manager: ServiceManager = Depends(get_service_manager)) -> ShortLinkService:
    return manager.link_service
