"""Rate limiting for the request pipeline.

Requests are counted per client address over a fixed window. Rejected
requests get a 429 with a fixed message; every response carries the
current counter in ``X-RateLimit-*`` headers.
"""

from starlette.requests import Request
from starlette.responses import PlainTextResponse

from bastion.app.core.config import DEFAULT_RATE_LIMIT_MESSAGE
from bastion.app.middleware.pipeline import PROCEED, RequestContext, Respond, Stage, StageOutcome

# Re-export models
from bastion.app.middleware.rate_limit.models import (
    RateLimitEntry,
    RateLimitResult,
)

# Re-export backend
from bastion.app.middleware.rate_limit.limiter import InMemoryRateLimiter

__all__ = [
    # Models
    "RateLimitResult",
    "RateLimitEntry",
    # Backend
    "InMemoryRateLimiter",
    # Pipeline stage
    "RateLimitStage",
]


class RateLimitStage(Stage):
    """Reject clients that exceeded their request budget for the window."""

    name = "rate_limit"
    status_code = 429

    def __init__(
        self,
        limiter: InMemoryRateLimiter,
        message: str = DEFAULT_RATE_LIMIT_MESSAGE,
    ):
        self.limiter = limiter
        self.message = message

    @staticmethod
    def client_key(context: RequestContext) -> str:
        """Rate limit key for the request's client address."""
        return f"ratelimit:ip:{context.client_address}"

    async def process(self, request: Request, context: RequestContext) -> StageOutcome:
        result = await self.limiter.is_allowed(self.client_key(context))

        context.response_headers.update({
            "X-RateLimit-Limit": str(result.limit),
            "X-RateLimit-Remaining": str(result.remaining),
            "X-RateLimit-Reset": str(result.reset_after),
        })

        if not result.allowed:
            return Respond(PlainTextResponse(
                self.message,
                status_code=self.status_code,
                headers={"Retry-After": str(result.retry_after)},
            ))

        return PROCEED
