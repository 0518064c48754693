"""Demonstration routes.

Three endpoints exercise the logging pipeline:

- ``GET /`` logs an info record and welcomes the client
- ``GET /error`` logs an error record but still answers 200 (soft failure)
- ``POST /login`` always rejects the credentials and logs the attempt with
  the password masked
"""

import logging
from typing import Any

from fastapi import APIRouter, Depends, Request
from fastapi.responses import PlainTextResponse

from bastion.app.core.utils import get_client_address

router = APIRouter()

PASSWORD_MASK_CHAR = "*"


def get_app_logger(request: Request) -> logging.Logger:
    """Application logger injected at startup."""
    return request.app.state.logger


def client_address(request: Request) -> str:
    """Address resolved by the pipeline, or the socket peer as a fallback."""
    address = getattr(request.state, "client_address", None)
    return address or get_client_address(request)


def mask_password(password: Any, mask_char: str = PASSWORD_MASK_CHAR) -> str:
    """Replace every character of ``password`` with ``mask_char``.

    A missing password masks to an empty string. The mask keeps the
    password length, so the length is visible to anyone reading the logs.
    """
    if password is None:
        return ""
    return mask_char * len(str(password))


@router.get("/")
async def home(
    request: Request,
    logger: logging.Logger = Depends(get_app_logger),
) -> PlainTextResponse:
    logger.info(f"Access to the main page from {client_address(request)}")
    return PlainTextResponse("Welcome to the server")


@router.get("/error")
async def simulated_error(
    request: Request,
    logger: logging.Logger = Depends(get_app_logger),
) -> PlainTextResponse:
    """Log an error while answering 200, to exercise the error sink."""
    logger.error(f"Simulated error - Request from {client_address(request)}")
    return PlainTextResponse("An error occurred on the server")


@router.post("/login")
async def login(
    request: Request,
    logger: logging.Logger = Depends(get_app_logger),
) -> PlainTextResponse:
    """Reject every login; the raw password is never logged."""
    body = getattr(request.state, "json_body", None)
    fields = body if isinstance(body, dict) else {}

    email = fields.get("email")
    masked = mask_password(fields.get("password"))

    logger.error(
        f"Failed login attempt: email={'' if email is None else email}, password={masked}"
    )
    return PlainTextResponse("Invalid credentials", status_code=401)
