"""Security-related helpers (webhook signatures).

Provides optional verification of GitHub's `X-Hub-Signature-256` header on
incoming webhook deliveries.
"""

from __future__ import annotations

import hashlib
import hmac
import logging

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import PlainTextResponse, Response

logger = logging.getLogger(__name__)

SIGNATURE_HEADER = "X-Hub-Signature-256"


def _parse_signature_header(header_value: str) -> bytes | None:
    """Parse a `sha256=<hex>` signature header into the raw digest."""
    if not header_value:
        return None

    scheme, sep, hex_digest = header_value.partition("=")
    if sep != "=" or scheme.lower() != "sha256" or not hex_digest:
        return None

    try:
        return bytes.fromhex(hex_digest)
    except ValueError:
        return None


def compute_signature(secret: str, body: bytes) -> str:
    """`sha256=<hex>` value GitHub sends for `body` signed with `secret`."""
    digest = hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()
    return f"sha256={digest}"


class WebhookSignatureMiddleware(BaseHTTPMiddleware):
    """Reject POST deliveries whose HMAC signature does not match the shared secret.

    Other methods and paths outside `protect_paths` pass through.
    """

    def __init__(self, app, *, secret: str, protect_paths: set[str] | None = None):
        super().__init__(app)
        self._secret = secret.encode("utf-8")
        self._protect_paths = protect_paths or {"/", "/webhook"}

    def _unauthorized(self) -> Response:
        return PlainTextResponse("Invalid signature", status_code=401)

    async def dispatch(self, request: Request, call_next):
        if request.method != "POST" or request.url.path not in self._protect_paths:
            return await call_next(request)

        received = _parse_signature_header(request.headers.get(SIGNATURE_HEADER, ""))
        if received is None:
            logger.warning(f"missing or malformed {SIGNATURE_HEADER} on {request.url.path}")
            return self._unauthorized()

        body = await request.body()
        expected = hmac.new(self._secret, body, hashlib.sha256).digest()
        if not hmac.compare_digest(received, expected):
            logger.warning(f"signature mismatch on {request.url.path}")
            return self._unauthorized()

        return await call_next(request)
