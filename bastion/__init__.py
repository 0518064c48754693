"""Bastion: HTTP server with security headers, rate limiting and structured logging."""
