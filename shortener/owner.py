"""End-user identity for the public link management API.

Public callers have no accounts: a link belongs to whoever created it from the
same client IP. Call sites only see ``Owner``, so a real account model can
replace the IP key without touching them.
"""

from dataclasses import dataclass

from fastapi import Request

__all__ = ["ADMIN_OWNER_KEY", "Owner", "client_ip_from_request", "owner_from_request"]

ADMIN_OWNER_KEY = "admin"
FALLBACK_IP = "127.0.0.1"


@dataclass(frozen=True)
class Owner:
    key: str

    @classmethod
    def admin(cls) -> "Owner":
        return cls(ADMIN_OWNER_KEY)


def client_ip_from_request(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    if request.client and request.client.host:
        return request.client.host
    return FALLBACK_IP


def owner_from_request(request: Request) -> Owner:
    return Owner(client_ip_from_request(request))
