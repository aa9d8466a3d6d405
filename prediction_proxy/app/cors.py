"""
Static CORS headers for every HTTP response.

Starlette's CORSMiddleware only answers requests that carry an Origin
header. The proxy is called from arbitrary browser and server clients, so
the same three headers are attached unconditionally, including to error
responses and streamed bodies.
"""

from typing import Dict, List, Tuple

from starlette.types import ASGIApp, Message, Receive, Scope, Send

CORS_HEADERS: Dict[str, str] = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type, Authorization",
}


class CORSHeadersMiddleware:
    """ASGI middleware that sets CORS_HEADERS on the response start message."""

    def __init__(self, app: ASGIApp, headers: Dict[str, str] = CORS_HEADERS):
        self.app = app
        self.raw_headers: List[Tuple[bytes, bytes]] = [
            (name.lower().encode("latin-1"), value.encode("latin-1"))
            for name, value in headers.items()
        ]

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        names = {name for name, _ in self.raw_headers}

        async def send_with_cors(message: Message) -> None:
            if message["type"] == "http.response.start":
                # Replace rather than duplicate anything a route already set
                headers = [
                    (name, value)
                    for name, value in message.get("headers", [])
                    if name.lower() not in names
                ]
                headers.extend(self.raw_headers)
                message["headers"] = headers
            await send(message)

        await self.app(scope, receive, send_with_cors)
