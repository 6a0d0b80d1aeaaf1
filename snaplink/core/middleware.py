"""Response hardening headers as a plain ASGI middleware."""

from starlette.datastructures import MutableHeaders
from starlette.types import ASGIApp, Message, Receive, Scope, Send

# JSON and redirects only: nothing to load, nothing to embed
API_CONTENT_SECURITY_POLICY = "default-src 'none'; frame-ancestors 'none'"

BASE_HEADERS = (
    ("X-Content-Type-Options", "nosniff"),
    ("X-Frame-Options", "DENY"),
    # Slug paths stay out of the destination's Referer
    ("Referrer-Policy", "no-referrer"),
    ("Content-Security-Policy", API_CONTENT_SECURITY_POLICY),
)


class SecurityHeadersMiddleware:
    """Adds security headers to every HTTP response.

    HSTS is only sent when ``enable_hsts`` is set, since it pins browsers to
    HTTPS for ``hsts_max_age`` seconds.
    """

    def __init__(self, app: ASGIApp, enable_hsts: bool = False, hsts_max_age: int = 31536000):
        self.app = app
        self.headers = list(BASE_HEADERS)
        if enable_hsts:
            self.headers.append(
                ("Strict-Transport-Security", f"max-age={hsts_max_age}; includeSubDomains")
            )

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        async def send_with_headers(message: Message) -> None:
            if message["type"] == "http.response.start":
                headers = MutableHeaders(scope=message)
                for name, value in self.headers:
                    headers.setdefault(name, value)
            await send(message)

        await self.app(scope, receive, send_with_headers)
