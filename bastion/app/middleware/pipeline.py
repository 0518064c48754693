"""Request pipeline: an explicit, ordered chain of stages.

Every HTTP request runs through the same list of stages. A stage receives
the request and its per-request context and returns one of:

- ``Proceed``: hand the request to the next stage
- ``Respond(response)``: answer now, skipping the remaining stages
- ``Handled``: the stage already wrote the response (route dispatch)
- ``Fail(error)``: stop and let the terminal error handler answer

A stage that raises is treated as ``Fail``. Headers queued on the context
(security policy, rate limit counters) are added to whatever response is
finally sent, including the terminal handler's.

The chain is mounted as a raw ASGI middleware around the FastAPI router.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Sequence, Union

from starlette.datastructures import MutableHeaders
from starlette.requests import Request
from starlette.responses import PlainTextResponse, Response
from starlette.routing import Match, Router
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from bastion.app.core.utils import get_client_address
from bastion.app.exceptions import BastionException, PipelineExhaustedError

GENERIC_ERROR_MESSAGE = "Internal server error"


@dataclass(frozen=True)
class Proceed:
    """Pass the request on to the next stage."""


@dataclass(frozen=True)
class Respond:
    """Answer the request with ``response`` and stop."""
    response: Response


@dataclass(frozen=True)
class Handled:
    """The stage already sent its response downstream."""


@dataclass(frozen=True)
class Fail:
    """Stop and route ``error`` to the terminal handler."""
    error: Exception


StageOutcome = Union[Proceed, Respond, Handled, Fail]

PROCEED = Proceed()
HANDLED = Handled()


@dataclass
class RequestContext:
    """Per-request state shared by the stages of one pipeline run.

    Attributes:
        scope: ASGI connection scope
        receive: ASGI receive callable; replaced once the body is buffered
        send: Raw downstream ASGI send callable
        app: The wrapped ASGI application (route dispatcher)
        client_address: Address the request is attributed to
        json_body: Parsed JSON body, ``{}`` when there is none
        response_headers: Headers added to every response start message
        response_started: Whether response headers went out already
    """
    scope: Scope
    receive: Receive
    send: Send
    app: ASGIApp
    client_address: str = "unknown"
    json_body: Any = field(default_factory=dict)
    response_headers: Dict[str, str] = field(default_factory=dict)
    response_started: bool = False

    async def send_message(self, message: Message) -> None:
        """Forward an ASGI message, stamping queued headers on the start."""
        if message["type"] == "http.response.start":
            message.setdefault("headers", [])
            headers = MutableHeaders(scope=message)
            for name, value in self.response_headers.items():
                headers[name] = value
            self.response_started = True
        await self.send(message)

    async def respond(self, response: Response) -> None:
        """Send a complete response through ``send_message``."""
        await response(self.scope, self.receive, self.send_message)


class Stage(ABC):
    """One link of the request pipeline."""

    name: str = "stage"

    @abstractmethod
    async def process(self, request: Request, context: RequestContext) -> StageOutcome:
        """Inspect the request and decide how the pipeline continues.

        Args:
            request: Incoming request
            context: Per-request pipeline state

        Returns:
            The stage outcome
        """

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name}>"


class RouteDispatchStage(Stage):
    """Hand the request to the route that fully matches it.

    Passes the request through when no route matches the method and path,
    so an unmatched request exhausts the pipeline.
    """

    name = "dispatch"

    def __init__(self, router: Optional[Router] = None):
        self.router = router

    def _find_router(self, scope: Scope) -> Optional[Router]:
        if self.router is not None:
            return self.router
        app = scope.get("app")
        return getattr(app, "router", None)

    def has_route(self, scope: Scope) -> bool:
        router = self._find_router(scope)
        if router is None:
            # Nothing to match against; let the application decide.
            return True
        for route in router.routes:
            match, _ = route.matches(scope)
            if match == Match.FULL:
                return True
        return False

    async def process(self, request: Request, context: RequestContext) -> StageOutcome:
        if not self.has_route(context.scope):
            return PROCEED
        await context.app(context.scope, context.receive, context.send_message)
        return HANDLED


class TerminalErrorHandler:
    """Last-resort handler for anything the stages did not answer.

    Logs the failure once at error level and answers with a fixed
    response: the error's public message for client errors, a generic 500
    otherwise. Raw error text never reaches the client. Never raises.
    """

    def __init__(self, logger: logging.Logger):
        self.logger = logger

    @staticmethod
    def describe(error: BaseException) -> str:
        return str(error) or type(error).__name__

    @staticmethod
    def response_for(error: BaseException) -> Response:
        if isinstance(error, BastionException) and error.status_code < 500:
            return PlainTextResponse(error.public_message, status_code=error.status_code)
        return PlainTextResponse(GENERIC_ERROR_MESSAGE, status_code=500)

    async def handle(self, error: BaseException, request: Request, context: RequestContext) -> None:
        self.logger.error(
            f"Error: {self.describe(error)}",
            extra={"error_type": type(error).__name__},
        )
        if context.response_started:
            return
        try:
            await context.respond(self.response_for(error))
        except Exception as exc:
            self.logger.warning(f"Could not deliver error response: {self.describe(exc)}")


class RequestPipeline:
    """Runs the stages in order and routes outcomes.

    Attributes:
        stages: Ordered stages, run first to last
        terminal: Handler for failures and exhausted pipelines
    """

    def __init__(self, stages: Sequence[Stage], terminal: TerminalErrorHandler):
        self.stages = tuple(stages)
        self.terminal = terminal

    @property
    def stage_names(self) -> list[str]:
        return [stage.name for stage in self.stages]

    async def run(self, request: Request, context: RequestContext) -> None:
        """Drive one request through the stages; always produces one response."""
        for stage in self.stages:
            try:
                outcome = await stage.process(request, context)
            except Exception as exc:
                outcome = Fail(exc)

            if isinstance(outcome, Proceed):
                continue
            if isinstance(outcome, Handled):
                return
            if isinstance(outcome, Respond):
                try:
                    await context.respond(outcome.response)
                except Exception as exc:
                    await self.terminal.handle(exc, request, context)
                return
            if isinstance(outcome, Fail):
                await self.terminal.handle(outcome.error, request, context)
                return

            await self.terminal.handle(
                TypeError(f"Stage {stage.name!r} returned {outcome!r}"), request, context
            )
            return

        await self.terminal.handle(
            PipelineExhaustedError(request.method, request.url.path), request, context
        )


class RequestPipelineMiddleware:
    """ASGI middleware that runs every HTTP request through a pipeline.

    Non-HTTP scopes (lifespan, websocket) go straight to the application.

    Usage:
        app.add_middleware(RequestPipelineMiddleware, pipeline=pipeline)
    """

    def __init__(self, app: ASGIApp, pipeline: RequestPipeline, trust_proxy: bool = False):
        self.app = app
        self.pipeline = pipeline
        self.trust_proxy = trust_proxy

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        request = Request(scope, receive)
        context = RequestContext(
            scope=scope,
            receive=receive,
            send=send,
            app=self.app,
            client_address=get_client_address(request, self.trust_proxy),
        )
        request.state.client_address = context.client_address
        request.state.json_body = context.json_body

        await self.pipeline.run(request, context)
