"""
Upstream Forwarder
==================

Generic relay between the mobile client and the upstream API. It carries no
business logic: the login gate and the deletion handler build on top of it,
and every other ``/api/*`` request goes through it unchanged.

The mapping from inbound request to upstream request is a pure function
(``build_upstream_request``) so header and body rules can be tested without
any network call. ``UpstreamForwarder`` performs the actual call and
``relay_response`` turns the upstream answer back into a client response.

Header Policy:
--------------
Only ``host`` (rewritten), ``cookie``, ``authorization`` and ``content-type``
reach the upstream. Everything else the client sent is dropped.

Body Policy (non GET/HEAD):
---------------------------
- JSON: re-serialized from the parsed body
- multipart: raw bytes
- url-encoded: raw bytes, else re-encoded from parsed form fields
- other with raw bytes: raw bytes
- nothing usable: ``{}`` sent as JSON
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional
from urllib.parse import parse_qsl, urlencode, urlsplit

import httpx
from fastapi import Request, Response, status
from fastapi.responses import JSONResponse

from .. import messages
from ..errors import UpstreamUnavailableError

logger = logging.getLogger(__name__)

FORWARDED_HEADERS = ("cookie", "authorization", "content-type")

# httpx hands back a decoded body, so the encoding must not be replayed
EXCLUDED_RESPONSE_HEADERS = {"transfer-encoding", "content-encoding"}

BODYLESS_METHODS = {"GET", "HEAD"}

JSON_CONTENT_TYPE = "application/json"


# ============================================================================
# Request Descriptors
# ============================================================================

@dataclass
class InboundRequest:
    """
    What the proxy received from the client.

    Attributes:
        method: HTTP method, upper case
        path: Path plus query string, e.g. ``/api/quotes?page=2``
        headers: Inbound headers with lower-case names
        body: Raw body bytes, or None when unavailable
        form: Parsed url-encoded fields, used only when ``body`` is None
    """

    method: str
    path: str
    headers: Dict[str, str] = field(default_factory=dict)
    body: Optional[bytes] = None
    form: Optional[Dict[str, str]] = None

    @property
    def content_type(self) -> str:
        return self.headers.get("content-type", "")

    def parsed_json(self) -> Any:
        """
        Parse the body as JSON.

        An empty or missing body parses as ``{}``.

        Raises:
            ValueError: If the body is not valid JSON
        """
        if not self.body:
            return {}
        return json.loads(self.body)

    def body_field(self, name: str) -> Optional[str]:
        """Read a top-level string field from a JSON or url-encoded body."""
        content_type = self.content_type.lower()
        value: Any = None

        if JSON_CONTENT_TYPE in content_type:
            try:
                payload = self.parsed_json()
            except ValueError:
                return None
            if isinstance(payload, dict):
                value = payload.get(name)
        elif "urlencoded" in content_type:
            fields = self.form
            if self.body is not None:
                fields = _parse_form(self.body)
            if fields:
                value = fields.get(name)

        return value if isinstance(value, str) else None


@dataclass
class UpstreamRequest:
    """A fully resolved request ready to be sent upstream."""

    method: str
    url: str
    headers: Dict[str, str]
    content: Optional[bytes] = None


def _parse_form(body: bytes) -> Dict[str, str]:
    return dict(parse_qsl(body.decode("utf-8", errors="replace"), keep_blank_values=True))


async def inbound_from_request(request: Request) -> InboundRequest:
    """
    Capture a FastAPI request as an InboundRequest.

    The path is taken from the raw request target so percent-escapes such as
    ``%2F`` or ``%23`` reach the upstream unchanged.
    """
    raw_path = request.scope.get("raw_path")
    path = raw_path.decode("latin-1") if raw_path else request.url.path
    query_string = request.scope.get("query_string", b"")
    if query_string:
        path = f"{path}?{query_string.decode('latin-1')}"

    return InboundRequest(
        method=request.method.upper(),
        path=path,
        headers={k.lower(): v for k, v in request.headers.items()},
        body=await request.body(),
    )


# ============================================================================
# Pure Mapping
# ============================================================================

def build_upstream_headers(inbound_headers: Dict[str, str], upstream_base_url: str) -> Dict[str, str]:
    """
    Build the safelisted header set for an upstream request.

    Args:
        inbound_headers: Inbound headers with lower-case names
        upstream_base_url: Upstream origin, used for the host header

    Returns:
        Headers dict for the upstream request
    """
    headers = {"host": urlsplit(upstream_base_url).netloc}
    for name in FORWARDED_HEADERS:
        value = inbound_headers.get(name)
        if value:
            headers[name] = value
    return headers


def build_upstream_request(inbound: InboundRequest, upstream_base_url: str) -> UpstreamRequest:
    """
    Map an inbound request onto the upstream origin.

    Args:
        inbound: Captured inbound request
        upstream_base_url: Upstream origin without trailing slash

    Returns:
        UpstreamRequest with URL, safelisted headers and encoded body
    """
    headers = build_upstream_headers(inbound.headers, upstream_base_url)
    url = f"{upstream_base_url}{inbound.path}"

    if inbound.method in BODYLESS_METHODS:
        return UpstreamRequest(method=inbound.method, url=url, headers=headers)

    content_type = inbound.content_type.lower()
    content: Optional[bytes]

    if JSON_CONTENT_TYPE in content_type:
        try:
            payload = inbound.parsed_json()
            content = json.dumps(payload, separators=(",", ":"), ensure_ascii=False).encode("utf-8")
        except ValueError:
            logger.warning("Inbound JSON body could not be parsed, forwarding raw bytes")
            content = inbound.body
    elif "multipart/form-data" in content_type:
        content = inbound.body
    elif "urlencoded" in content_type:
        if inbound.body is not None:
            content = inbound.body
        else:
            content = urlencode(inbound.form or {}).encode("ascii")
    elif inbound.body:
        content = inbound.body
    else:
        content = b"{}"
        headers["content-type"] = JSON_CONTENT_TYPE

    return UpstreamRequest(method=inbound.method, url=url, headers=headers, content=content)


# ============================================================================
# Response Replay
# ============================================================================

def relay_response(upstream: httpx.Response, method: Optional[str] = None) -> Response:
    """
    Replay an upstream response to the client.

    Status and body bytes are preserved. Every kept header is appended, so
    repeated headers (``set-cookie``, ``link``, ``vary``...) all survive.
    The upstream ``content-length`` is kept for HEAD answers and for bodies
    that were not content-encoded; otherwise it is recomputed from the
    decoded body.

    Args:
        upstream: Response received from the upstream API
        method: Method of the relayed request, if known
    """
    response = Response(content=upstream.content, status_code=upstream.status_code)
    keep_length = method == "HEAD" or "content-encoding" not in upstream.headers

    for key, value in upstream.headers.multi_items():
        name = key.lower()
        if name in EXCLUDED_RESPONSE_HEADERS:
            continue
        if name == "content-length":
            if keep_length:
                response.headers["content-length"] = value
            continue
        response.headers.append(name, value)

    return response



def unreachable_response() -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_502_BAD_GATEWAY,
        content={"message": messages.UPSTREAM_UNREACHABLE},
    )


def session_cookie_header(upstream: httpx.Response) -> Optional[str]:
    """
    Turn the ``set-cookie`` headers of a response into a ``cookie`` header.

    Only the ``name=value`` part of each cookie is kept.
    """
    pairs = []
    for raw in upstream.headers.get_list("set-cookie"):
        pair = raw.split(";", 1)[0].strip()
        if pair:
            pairs.append(pair)
    return "; ".join(pairs) or None


# ============================================================================
# Network Client
# ============================================================================

class UpstreamForwarder:
    """
    Sends requests to the upstream origin over a shared httpx client.

    Redirects are never followed: a 3xx goes back to the client untouched so
    its own cookie jar stays in charge.
    """

    def __init__(self, client: httpx.AsyncClient, upstream_base_url: str):
        self._client = client
        self.upstream_base_url = upstream_base_url.rstrip("/")

    def url_for(self, path: str) -> str:
        return f"{self.upstream_base_url}{path}"

    def credential_headers(self, inbound_headers: Dict[str, str]) -> Dict[str, str]:
        """Host plus the caller's cookie/authorization, nothing else."""
        headers = {"host": urlsplit(self.upstream_base_url).netloc}
        for name in ("cookie", "authorization"):
            value = inbound_headers.get(name)
            if value:
                headers[name] = value
        return headers

    async def send(self, upstream_request: UpstreamRequest) -> httpx.Response:
        """
        Send a prepared request upstream.

        Raises:
            UpstreamUnavailableError: On any transport-level failure
        """
        try:
            return await self._client.request(
                upstream_request.method,
                upstream_request.url,
                headers=upstream_request.headers,
                content=upstream_request.content,
                follow_redirects=False,
            )
        except httpx.HTTPError as e:
            logger.error(
                f"Upstream request failed: {e}",
                extra={
                    "endpoint": upstream_request.url,
                    "http_method": upstream_request.method,
                    "exception_type": type(e).__name__,
                },
            )
            raise UpstreamUnavailableError(upstream_request.url, e) from e

    async def forward(self, inbound: InboundRequest) -> httpx.Response:
        return await self.send(build_upstream_request(inbound, self.upstream_base_url))
