"""API endpoints package for the server."""

from bastion.app.api.routes import mask_password, router

__all__ = [
    "mask_password",
    "router",
]
