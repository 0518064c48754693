"""Custom exceptions for the server application."""


class BastionException(Exception):
    """Base class for server exceptions with HTTP status code.

    ``message`` is logged server-side; only ``public_message`` is ever
    sent to the client.
    """
    status_code: int = 500
    public_message: str = "Internal server error"

    def __init__(self, message: str = "Server error"):
        self.message = message
        super().__init__(message)


class ClientError(BastionException):
    """Base class for failures caused by the client's request.

    Maps to a 4xx response carrying ``public_message``.
    """
    status_code = 400
    public_message = "Bad request"


class MalformedBodyError(ClientError):
    """Raised when a JSON request body cannot be parsed.

    Maps to HTTP 400 Bad Request.
    """
    status_code = 400
    public_message = "Malformed JSON body"

    def __init__(self, detail: str = "Request body is not valid JSON"):
        self.detail = detail
        super().__init__(detail)


class PayloadTooLargeError(ClientError):
    """Raised when a request body exceeds the configured limit.

    Maps to HTTP 413 Payload Too Large.
    """
    status_code = 413
    public_message = "Request body too large"

    def __init__(self, max_size: int, received: int | None = None):
        self.max_size = max_size
        self.received = received
        message = f"Request body too large. Maximum allowed: {max_size} bytes"
        if received is not None:
            message += f", received at least {received}"
        super().__init__(message)


class PipelineExhaustedError(BastionException):
    """Raised when every stage passed the request through without responding.

    This is what an unmatched route turns into. Maps to HTTP 500.
    """

    def __init__(self, method: str, path: str):
        self.method = method
        self.path = path
        super().__init__(f"No handler produced a response for {method} {path}")
