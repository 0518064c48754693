"""JSON request body parsing.

Only ``application/json`` (and ``+json``) bodies are parsed; anything else
leaves the parsed body empty. The body is buffered once, capped at a
configurable size, and replayed to the route so handlers can still read it.

Size enforcement counts bytes as they are read, so a missing or lying
Content-Length header cannot bypass it.
"""

import json

from starlette.requests import Request
from starlette.types import Message, Receive

from bastion.app.exceptions import MalformedBodyError, PayloadTooLargeError
from bastion.app.middleware.pipeline import Fail, PROCEED, RequestContext, Stage, StageOutcome

DEFAULT_MAX_BODY_SIZE = 100 * 1024


def is_json_content_type(content_type: str | None) -> bool:
    if not content_type:
        return False
    media_type = content_type.split(";", 1)[0].strip().lower()
    return media_type == "application/json" or media_type.endswith("+json")


def replay_receive(body: bytes, receive: Receive) -> Receive:
    """Wrap ``receive`` so the buffered body is delivered first.

    Later calls fall through to the original callable (disconnect events).
    """
    delivered = False

    async def _receive() -> Message:
        nonlocal delivered
        if not delivered:
            delivered = True
            return {"type": "http.request", "body": body, "more_body": False}
        return await receive()

    return _receive


class JsonBodyStage(Stage):
    """Parse JSON request bodies into ``request.state.json_body``.

    Malformed JSON and top-level values other than objects or arrays fail
    with ``MalformedBodyError``; bodies above ``max_body_size`` fail with
    ``PayloadTooLargeError``.
    """

    name = "json_body"

    def __init__(self, max_body_size: int = DEFAULT_MAX_BODY_SIZE):
        self.max_body_size = max_body_size

    async def _read_body(self, request: Request) -> bytes:
        content_length = request.headers.get("content-length")
        if content_length:
            try:
                declared = int(content_length)
            except ValueError:
                # Invalid Content-Length, rely on the streaming count
                declared = None
            if declared is not None and declared > self.max_body_size:
                raise PayloadTooLargeError(self.max_body_size, declared)

        body = bytearray()
        async for chunk in request.stream():
            body.extend(chunk)
            if len(body) > self.max_body_size:
                raise PayloadTooLargeError(self.max_body_size, len(body))
        return bytes(body)

    async def process(self, request: Request, context: RequestContext) -> StageOutcome:
        context.json_body = {}
        request.state.json_body = context.json_body

        if not is_json_content_type(request.headers.get("content-type")):
            return PROCEED

        try:
            body = await self._read_body(request)
        except PayloadTooLargeError as exc:
            return Fail(exc)

        context.receive = replay_receive(body, context.receive)

        if not body.strip():
            return PROCEED

        try:
            parsed = json.loads(body)
        except ValueError as exc:
            return Fail(MalformedBodyError(f"Malformed JSON body: {exc}"))

        if not isinstance(parsed, (dict, list)):
            return Fail(MalformedBodyError(
                f"JSON body must be an object or array, got {type(parsed).__name__}"
            ))

        context.json_body = parsed
        request.state.json_body = parsed
        return PROCEED
