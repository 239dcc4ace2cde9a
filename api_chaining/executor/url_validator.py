"""Outbound destination policy for the HTTP execution collaborator.

Only public http(s) APIs are reachable: internal hostnames, private or
loopback IP literals and well-known database/infrastructure ports are
rejected before any request is made.
"""

import ipaddress
from urllib.parse import urlsplit

ALLOWED_SCHEMES = {"http", "https"}

BLOCKED_PORTS = {
    22,     # SSH
    23,     # Telnet
    25,     # SMTP
    53,     # DNS
    135,    # MSRPC
    137,    # NetBIOS name
    138,    # NetBIOS datagram
    139,    # NetBIOS session
    445,    # SMB
    1433,   # MSSQL
    1521,   # Oracle
    3306,   # MySQL
    5432,   # PostgreSQL
    6379,   # Redis
    9200,   # Elasticsearch
    11211,  # Memcached
    27017,  # MongoDB
}

BLOCKED_HOSTNAME_KEYWORDS = (
    "localhost",
    "local",
    "internal",
    "intranet",
    "metadata",
    "instance-data",
)


class UrlValidationError(ValueError):
    pass


def validate_url(url: str, allow_private_networks: bool = False) -> None:
    """Raise UrlValidationError if *url* is not an allowed destination."""
    try:
        parts = urlsplit(url)
        port = parts.port
    except ValueError:
        raise UrlValidationError("Invalid URL format")

    scheme = parts.scheme.lower()
    if scheme not in ALLOWED_SCHEMES:
        raise UrlValidationError(
            f"Protocol not allowed. Only HTTP/HTTPS permitted (got: {scheme or 'none'})"
        )

    hostname = (parts.hostname or "").lower()
    if not hostname:
        raise UrlValidationError("Invalid URL format")

    if port is None:
        port = 443 if scheme == "https" else 80
    if port in BLOCKED_PORTS:
        raise UrlValidationError(f"Port {port} blocked: known service port")

    if allow_private_networks:
        return

    for keyword in BLOCKED_HOSTNAME_KEYWORDS:
        if keyword in hostname:
            raise UrlValidationError(
                f'Hostname blocked: contains restricted keyword "{keyword}"'
            )

    if _is_private_ip(hostname):
        raise UrlValidationError("Request blocked: IP address is in a private or internal range")


def _is_private_ip(hostname: str) -> bool:
    try:
        ip = ipaddress.ip_address(hostname)
    except ValueError:
        return False
    return (
        ip.is_private
        or ip.is_loopback
        or ip.is_link_local
        or ip.is_reserved
        or ip.is_multicast
        or ip.is_unspecified
    )
