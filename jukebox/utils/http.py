"""HTTP utilities for building and sanitizing redirect targets."""

from __future__ import annotations

from typing import Optional
from urllib.parse import urlencode, urlsplit, urlunsplit

from starlette.requests import Request


def current_path(request: Request) -> str:
    """Return the request path with its query string, without scheme or host."""
    path = request.url.path or "/"
    if request.url.query:
        return f"{path}?{request.url.query}"
    return path


def local_path(target: Optional[str], default: str = "/") -> str:
    """
    Reduce ``target`` to a same-site path.

    Scheme, host and fragment are dropped so a redirect can never leave the site.
    """
    if not target:
        return default
    parts = urlsplit(target)
    path = parts.path or default
    if not path.startswith("/"):
        path = f"/{path}"
    # "//evil.example" would be treated as a host by browsers.
    path = "/" + path.lstrip("/\\")
    return urlunsplit(("", "", path, parts.query, ""))


def with_query(path: str, **params: str) -> str:
    return f"{path}?{urlencode(params)}"


__all__ = ["current_path", "local_path", "with_query"]
