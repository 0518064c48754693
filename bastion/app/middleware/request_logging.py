"""Request logging stage: one info record per admitted request."""

import logging

from starlette.requests import Request

from bastion.app.middleware.pipeline import PROCEED, RequestContext, Stage, StageOutcome


class RequestLoggingStage(Stage):
    """Log method, path and client address of every request reaching it."""

    name = "request_logging"

    def __init__(self, logger: logging.Logger):
        self.logger = logger

    async def process(self, request: Request, context: RequestContext) -> StageOutcome:
        self.logger.info(
            f"Request received: {request.method} {request.url.path} - IP: {context.client_address}"
        )
        return PROCEED
