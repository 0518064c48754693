"""Utility functions for the server application."""

from starlette.requests import HTTPConnection

UNKNOWN_CLIENT = "unknown"


def get_client_address(connection: HTTPConnection, trust_proxy: bool = False) -> str:
    """Return the network address requests from this client are keyed by.

    Args:
        connection: Incoming request (or any HTTP connection)
        trust_proxy: Use the first ``X-Forwarded-For`` hop when present

    Returns:
        Client address string, ``"unknown"`` when the transport does not
        report a peer.

    Examples:
        A request from 10.0.0.7 behind a trusted proxy sending
        ``X-Forwarded-For: 10.0.0.7, 172.16.0.1`` resolves to ``10.0.0.7``.
    """
    if trust_proxy:
        forwarded = connection.headers.get("X-Forwarded-For")
        if forwarded:
            first_hop = forwarded.split(",")[0].strip()
            if first_hop:
                return first_hop

    client = connection.client
    if client is None or not client.host:
        return UNKNOWN_CLIENT
    return client.host
