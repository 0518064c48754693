"""Middleware package for the server."""

from bastion.app.middleware.body_parser import JsonBodyStage
from bastion.app.middleware.pipeline import (
    Fail,
    HANDLED,
    Handled,
    PROCEED,
    Proceed,
    RequestContext,
    RequestPipeline,
    RequestPipelineMiddleware,
    Respond,
    RouteDispatchStage,
    Stage,
    StageOutcome,
    TerminalErrorHandler,
)
from bastion.app.middleware.rate_limit import InMemoryRateLimiter, RateLimitStage
from bastion.app.middleware.request_logging import RequestLoggingStage
from bastion.app.middleware.security_headers import SecurityHeadersStage

__all__ = [
    "Fail",
    "HANDLED",
    "Handled",
    "InMemoryRateLimiter",
    "JsonBodyStage",
    "PROCEED",
    "Proceed",
    "RateLimitStage",
    "RequestContext",
    "RequestLoggingStage",
    "RequestPipeline",
    "RequestPipelineMiddleware",
    "Respond",
    "RouteDispatchStage",
    "SecurityHeadersStage",
    "Stage",
    "StageOutcome",
    "TerminalErrorHandler",
]
