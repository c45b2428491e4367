"""ASGI middleware: baseline security headers and per-request locals."""

from typing import Optional, Union

from starlette.datastructures import MutableHeaders
from starlette.types import ASGIApp, Message, Receive, Scope, Send

# Headers set on every response regardless of configuration
_BASELINE_HEADERS = {
    "cross-origin-opener-policy": "same-origin",
    "cross-origin-resource-policy": "same-origin",
    "origin-agent-cluster": "?1",
    "strict-transport-security": "max-age=15552000; includeSubDomains",
    "x-content-type-options": "nosniff",
    "x-dns-prefetch-control": "off",
    "x-download-options": "noopen",
    "x-frame-options": "SAMEORIGIN",
    "x-permitted-cross-domain-policies": "none",
    "x-xss-protection": "0",
}


class SecurityHeadersMiddleware:
    """
    Add baseline security headers to every HTTP response.

    ``content_security_policy`` and ``cross_origin_embedder_policy`` accept
    either ``False`` (header not sent) or the header value to send.
    """

    def __init__(
        self,
        app: ASGIApp,
        content_security_policy: Union[bool, str] = False,
        cross_origin_embedder_policy: Union[bool, str] = False,
        referrer_policy: Optional[str] = "origin",
        hide_powered_by: bool = True,
    ) -> None:
        self.app = app
        self.hide_powered_by = hide_powered_by
        self.headers = dict(_BASELINE_HEADERS)
        if content_security_policy:
            self.headers["content-security-policy"] = str(content_security_policy)
        if cross_origin_embedder_policy:
            self.headers["cross-origin-embedder-policy"] = str(cross_origin_embedder_policy)
        if referrer_policy:
            self.headers["referrer-policy"] = referrer_policy

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        async def send_wrapper(message: Message) -> None:
            if message["type"] == "http.response.start":
                headers = MutableHeaders(scope=message)
                for name, value in self.headers.items():
                    headers[name] = value
                if self.hide_powered_by and "x-powered-by" in headers:
                    del headers["x-powered-by"]
            await send(message)

        await self.app(scope, receive, send_wrapper)


class RequestLocalsMiddleware:
    """Attach an empty ``locals`` dict to ``request.state`` before routing."""

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] == "http":
            scope.setdefault("state", {})["locals"] = {}
        await self.app(scope, receive, send)
