"""
Request helpers shared across apps.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from django.http import HttpRequest


def get_client_ip(request: HttpRequest) -> str | None:
    """
    Extract the client IP from a request, honouring proxy headers.

    The first entry of X-Forwarded-For is the original client; REMOTE_ADDR
    is used when the header is absent.

    Returns:
        Client IP address string, or None when nothing usable is present
    """
    x_forwarded_for = request.META.get("HTTP_X_FORWARDED_FOR")
    if x_forwarded_for:
        ip = x_forwarded_for.split(",")[0].strip()
    else:
        ip = request.META.get("REMOTE_ADDR", "")
    return ip or None
