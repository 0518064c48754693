import asyncio
import contextlib
import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

import uvicorn
from fastapi import FastAPI
from starlette.routing import Router

from bastion.app.api import router as api_router
from bastion.app.core.config import Settings
from bastion.app.core.logging import setup_logging
from bastion.app.middleware.body_parser import JsonBodyStage
from bastion.app.middleware.pipeline import (
    RequestPipeline,
    RequestPipelineMiddleware,
    RouteDispatchStage,
    TerminalErrorHandler,
)
from bastion.app.middleware.rate_limit import InMemoryRateLimiter, RateLimitStage
from bastion.app.middleware.request_logging import RequestLoggingStage
from bastion.app.middleware.security_headers import SecurityHeadersStage


def build_pipeline(
    settings: Settings,
    logger: logging.Logger,
    limiter: InMemoryRateLimiter,
    router: Optional[Router] = None,
) -> RequestPipeline:
    """Assemble the request stages in their fixed order.

    Order: security headers, JSON body, rate limit, request logging,
    route dispatch; failures end in the terminal error handler.
    """
    stages = [
        SecurityHeadersStage(),
        JsonBodyStage(max_body_size=settings.max_body_size),
        RateLimitStage(limiter, message=settings.rate_limit_message),
        RequestLoggingStage(logger),
        RouteDispatchStage(router),
    ]
    return RequestPipeline(stages, TerminalErrorHandler(logger))


async def prune_rate_limits(limiter: InMemoryRateLimiter, interval: float, logger: logging.Logger) -> None:
    """Drop expired rate limit windows every ``interval`` seconds."""
    while True:
        await asyncio.sleep(interval)
        removed = await limiter.prune()
        if removed:
            logger.debug(f"Pruned {removed} expired rate limit entries")


def create_app(
    settings: Optional[Settings] = None,
    logger: Optional[logging.Logger] = None,
    limiter: Optional[InMemoryRateLimiter] = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Settings, logger and limiter are built here unless supplied, and are
    shared by the pipeline stages and routes through ``app.state``.

    Returns:
        Configured FastAPI application instance
    """
    settings = settings or Settings()
    logger = logger or setup_logging(settings)
    limiter = limiter or InMemoryRateLimiter(
        max_requests=settings.rate_limit_max_requests,
        window_seconds=settings.rate_limit_window_seconds,
        max_entries=settings.rate_limit_max_entries,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Start the expired-window pruner and stop it on shutdown."""
        pruner = asyncio.create_task(
            prune_rate_limits(limiter, settings.rate_limit_window_seconds, logger)
        )
        logger.info(f"Server is listening on port {settings.server_port}")
        try:
            yield
        finally:
            pruner.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await pruner
            logger.info("Server shutdown complete")

    app = FastAPI(
        title="Bastion",
        description="Demonstration server with security headers, rate limiting and structured logging",
        version="0.1.0",
        lifespan=lifespan,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )

    app.state.settings = settings
    app.state.logger = logger
    app.state.limiter = limiter

    app.include_router(api_router)

    pipeline = build_pipeline(settings, logger, limiter, router=app.router)
    app.state.pipeline = pipeline
    app.add_middleware(
        RequestPipelineMiddleware,
        pipeline=pipeline,
        trust_proxy=settings.trust_proxy,
    )

    return app


def run() -> None:
    """Serve the application with uvicorn."""
    settings = Settings()
    app = create_app(settings)
    uvicorn.run(
        app,
        host=settings.server_host,
        port=settings.server_port,
        log_config=None,
        server_header=False,
    )


if __name__ == "__main__":
    run()
