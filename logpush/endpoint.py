"""Ingestion endpoint resolution and basic auth credentials."""

import base64
from dataclasses import dataclass
from typing import Optional, Tuple
from urllib.parse import unquote, urlsplit, urlunsplit

PUSH_SEGMENT = "/push/"
DEFAULT_PUSH_PATH = "/push/stream/"


@dataclass(frozen=True)
class BasicAuth:
    user: str
    password: str


def basic_auth_header(auth: BasicAuth) -> str:
    """Authorization header value for HTTP basic auth."""
    token = base64.b64encode(f"{auth.user}:{auth.password}".encode("utf-8")).decode("ascii")
    return f"Basic {token}"


def resolve_endpoint(url: str, service_id: Optional[str] = None) -> Tuple[str, Optional[BasicAuth]]:
    """Resolve the ingestion URL and split off any embedded credentials.

    When the path does not already contain ``/push/`` it is replaced with the
    default stream path, suffixed with *service_id* when given. Returns the
    cleaned URL and the credentials (or None).
    """
    parts = urlsplit(str(url))
    if parts.scheme not in ("http", "https") or not parts.hostname:
        raise ValueError(f"Invalid ingestion URL: {url!r}")

    path = parts.path
    if PUSH_SEGMENT not in path.lower():
        path = DEFAULT_PUSH_PATH
        if service_id:
            path += service_id

    auth = None
    if parts.username:
        auth = BasicAuth(unquote(parts.username), unquote(parts.password or ""))

    netloc = parts.hostname
    if ":" in netloc:
        netloc = f"[{netloc}]"
    if parts.port is not None:
        netloc = f"{netloc}:{parts.port}"

    return urlunsplit((parts.scheme, netloc, path, parts.query, parts.fragment)), auth
