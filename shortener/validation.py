"""URL and custom code validation.

Flow Diagram — is_valid_url()
=============================
::
    ┌──────────────┐
    │ len <= 2048? │── NO ──▶ False
    └──────┬───────┘
           ▼
    ┌──────────────┐
    │ http/https?  │── NO ──▶ False
    └──────┬───────┘
           ▼
    ┌──────────────┐
    │ validators.  │── NO ──▶ False
    │ url()        │
    └──────┬───────┘
           ▼
    ┌──────────────┐
    │ private/     │── YES + blocking ──▶ False
    │ loopback?    │── YES + allowed ───▶ True (logged)
    └──────┬───────┘
           ▼
         True

Key Behaviours
===============
- Private, loopback, link-local and reserved targets are always detected.
  Whether they are rejected is a policy switch (BLOCK_PRIVATE_TARGETS); with
  the switch off the service redirects to internal hosts, an SSRF exposure
  for anything that follows its redirects.
- Custom codes are 3-20 characters of letters, digits, ``_`` or ``-``.
"""

import ipaddress
import logging
import re
from urllib.parse import urlsplit

import validators

__all__ = ["MAX_URL_LENGTH", "is_private_target", "is_valid_url", "is_valid_custom_code"]

MAX_URL_LENGTH = 2048
CUSTOM_CODE_PATTERN = re.compile(r"^[A-Za-z0-9_-]{3,20}$")
ALLOWED_SCHEMES = frozenset({"http", "https"})

logger = logging.getLogger("shortener")


def is_private_target(url: str) -> bool:
    hostname = (urlsplit(url).hostname or "").lower().rstrip(".")
    if hostname == "localhost" or hostname.endswith(".localhost"):
        return True
    try:
        address = ipaddress.ip_address(hostname)
    except ValueError:
        return False
    return (
        address.is_private
        or address.is_loopback
        or address.is_link_local
        or address.is_reserved
        or address.is_unspecified
    )


def is_valid_url(
    url: str,
    block_private_targets: bool = True,
    max_length: int = MAX_URL_LENGTH,
) -> bool:
    if not isinstance(url, str) or not url or len(url) > max_length:
        return False

    try:
        parts = urlsplit(url)
    except ValueError:
        return False
    if parts.scheme.lower() not in ALLOWED_SCHEMES or not parts.hostname:
        return False

    if not validators.url(url, simple_host=True, strict_query=False):
        return False

    if is_private_target(url):
        if block_private_targets:
            return False
        logger.warning(f"Accepting private redirect target: {parts.hostname}")
    return True


def is_valid_custom_code(code: str) -> bool:
    return isinstance(code, str) and CUSTOM_CODE_PATTERN.fullmatch(code) is not None
