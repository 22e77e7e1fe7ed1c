"""Helpers for reading client metadata off incoming requests."""

import ipaddress
import logging

from fastapi import Request

logger = logging.getLogger(__name__)

# Proxies allowed to report the original client address via X-Real-IP
TRUSTED_PROXY_HOSTS = ("127.0.0.1", "::1", "localhost")

# Stored user agents are truncated to this length
MAX_USER_AGENT_LENGTH = 512


def _is_valid_ip(ip_str: str) -> bool:
    """Check if a string is a valid IP address."""
    try:
        ipaddress.ip_address(ip_str)
        return True
    except ValueError:
        return False


def get_client_ip(request: Request) -> str | None:
    """Get the client IP address from a request.

    X-Real-IP is honoured only when the direct peer is a local reverse proxy;
    otherwise any client could claim an arbitrary address. X-Forwarded-For
    is never trusted.
    """
    if request.client and request.client.host in TRUSTED_PROXY_HOSTS:
        real_ip = request.headers.get("X-Real-IP")
        if real_ip:
            ip = real_ip.strip()
            if _is_valid_ip(ip):
                return ip
            logger.warning(f"Invalid X-Real-IP: {real_ip}")

    if request.client:
        return request.client.host

    return None


def get_user_agent(request: Request) -> str:
    """Get the (truncated) User-Agent header, empty string when absent."""
    return request.headers.get("User-Agent", "")[:MAX_USER_AGENT_LENGTH]
