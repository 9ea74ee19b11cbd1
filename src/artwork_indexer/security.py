"""
Outbound request safety: SSRF checks for media URLs and secret redaction for logs
"""

import ipaddress
import socket
from typing import Any, Dict, Optional, Tuple
from urllib.parse import urlparse

from loguru import logger


# Blocked internal IP ranges (SSRF protection)
BLOCKED_IP_RANGES = [
    ipaddress.ip_network("127.0.0.0/8"),      # Localhost
    ipaddress.ip_network("10.0.0.0/8"),       # Private
    ipaddress.ip_network("172.16.0.0/12"),    # Private
    ipaddress.ip_network("192.168.0.0/16"),   # Private
    ipaddress.ip_network("169.254.0.0/16"),   # Link-local / cloud metadata
    ipaddress.ip_network("0.0.0.0/8"),
    ipaddress.ip_network("::1/128"),          # IPv6 localhost
    ipaddress.ip_network("fc00::/7"),         # IPv6 private
    ipaddress.ip_network("fe80::/10"),        # IPv6 link-local
]

ALLOWED_SCHEMES = {"http", "https"}

BLOCKED_HOSTS = {
    "localhost",
    "127.0.0.1",
    "0.0.0.0",
    "::1",
    "metadata.google.internal",
}

SENSITIVE_KEYS = (
    "api_key", "apikey", "api-key", "x-api-key",
    "secret", "password", "token", "authorization",
    "private_key", "mnemonic", "seed",
)


def is_internal_ip(ip: str) -> bool:
    """Check if IP address is internal/private"""
    try:
        ip_obj = ipaddress.ip_address(ip)
    except ValueError:
        return False
    return any(ip_obj in blocked_range for blocked_range in BLOCKED_IP_RANGES)


def validate_url_safe(url: str, resolve_host: bool = True) -> Tuple[bool, Optional[str]]:
    """
    Validate a URL taken from token metadata before fetching it

    Returns:
        (is_safe, error_message)
    """
    try:
        parsed = urlparse(url)
    except ValueError as e:
        return False, f"Invalid URL format: {e}"

    if parsed.scheme not in ALLOWED_SCHEMES:
        return False, f"Invalid URL scheme: {parsed.scheme}. Only http/https allowed."
    if not parsed.hostname:
        return False, "URL must have a hostname"

    hostname = parsed.hostname.lower()
    if hostname in BLOCKED_HOSTS or hostname.endswith(".local") or hostname.endswith(".internal"):
        return False, f"Blocked hostname: {hostname}"
    if "@" in parsed.netloc:
        return False, "URL contains credentials (not allowed)"
    if is_internal_ip(hostname):
        return False, f"Internal IP address: {hostname}"

    if resolve_host:
        try:
            resolved_ip = socket.gethostbyname(hostname)
        except (socket.gaierror, UnicodeError):
            # Unresolvable hosts fail later at fetch time
            return True, None
        if is_internal_ip(resolved_ip):
            return False, f"Hostname resolves to internal IP: {resolved_ip}"

    return True, None


def redact_secrets(data: Dict[str, Any]) -> Dict[str, Any]:
    """Copy of ``data`` (headers, params) safe to log"""
    sanitized: Dict[str, Any] = {}
    for key, value in data.items():
        if any(sensitive in key.lower() for sensitive in SENSITIVE_KEYS):
            sanitized[key] = "***REDACTED***"
        elif isinstance(value, dict):
            sanitized[key] = redact_secrets(value)
        else:
            sanitized[key] = value
    return sanitized


def log_blocked_url(url: str, reason: str) -> None:
    logger.warning(f"Refusing to fetch {url[:120]}: {reason}")
