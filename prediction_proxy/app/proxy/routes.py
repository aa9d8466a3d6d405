"""
Proxy Routes - Prediction Request Forwarding
============================================

This module implements the single proxy endpoint that forwards a chat
question to the upstream prediction service and streams the answer back.

Request Flow:
-------------
1. Parse and validate the JSON body (question, userId, chatflowId)
2. POST {UPSTREAM_URL}/api/v1/prediction/{chatflowId} with the bearer key
3. Reject non-2xx upstream statuses with a generic 500
4. Relay the upstream body to the caller as text/event-stream

Endpoints:
----------
- OPTIONS /{path}: CORS preflight, empty body
- POST /{path}: Forward a prediction request
- GET/HEAD/PUT/PATCH/DELETE /{path}: 405 Method Not Allowed
- Any other method: 405 Method Not Allowed, rendered by the app's
  method_not_allowed_handler

GET /health is the one non-POST route that answers 200; it is registered
in main.create_app ahead of this router.
"""

import logging
from typing import AsyncIterator
from urllib.parse import quote

from fastapi import APIRouter, Depends, Request, Response, status
from fastapi.responses import PlainTextResponse, StreamingResponse
from pydantic import ValidationError
import httpx

from ..config import Settings
from ..errors import (
    ClientInputError,
    ProxyError,
    TransportError,
    UnexpectedError,
    UpstreamError,
)
from ..models import PredictionRequest, UpstreamPrediction

logger = logging.getLogger(__name__)

# Create router
proxy_router = APIRouter()

STREAM_HEADERS = {
    "Content-Type": "text/event-stream",
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
}


# ============================================================================
# Dependencies
# ============================================================================

def get_app_settings(request: Request) -> Settings:
    """
    Dependency returning the immutable settings the app was created with.

    Args:
        request: FastAPI request object

    Returns:
        Settings instance stored on app.state by create_app
    """
    return request.app.state.settings


def get_upstream_client(request: Request) -> httpx.AsyncClient:
    """
    Dependency to get the upstream HTTP client from app state.

    Args:
        request: FastAPI request object

    Returns:
        Shared httpx.AsyncClient for prediction service communication

    Raises:
        TransportError: If the client is missing or already closed
    """
    client = getattr(request.app.state, "upstream_client", None)
    if client is None or client.is_closed:
        raise TransportError("Upstream client not available")

    return client


# ============================================================================
# Request Building
# ============================================================================

async def parse_prediction_request(request: Request) -> PredictionRequest:
    """
    Read the raw body and validate it as a PredictionRequest.

    Raises:
        ClientInputError: If the body is not JSON, not an object, or any
                          required field is missing, empty or not a string
    """
    body = await request.body()
    try:
        return PredictionRequest.model_validate_json(body)
    except ValidationError as e:
        fields = sorted({".".join(str(loc) for loc in err["loc"]) or "body" for err in e.errors()})
        raise ClientInputError(f"Invalid fields: {', '.join(fields)}") from e


def build_upstream_request(
    client: httpx.AsyncClient,
    settings: Settings,
    prediction_request: PredictionRequest,
) -> httpx.Request:
    """
    Build the outbound POST to the prediction endpoint.

    The chatflow id is encoded as one path segment so it cannot address
    a different upstream route.
    """
    url = settings.prediction_url(quote(prediction_request.chatflowId, safe=""))
    payload = UpstreamPrediction.from_request(prediction_request)

    return client.build_request(
        "POST",
        url,
        headers={
            "Authorization": f"Bearer {settings.UPSTREAM_KEY}",
            "Content-Type": "application/json",
        },
        content=payload.model_dump_json(),
    )


async def relay_upstream_body(
    upstream_response: httpx.Response,
    chatflow_id: str,
) -> AsyncIterator[bytes]:
    """
    Yield upstream body chunks as they arrive.

    The upstream response is always closed on exit, including when the
    caller disconnects and the generator is cancelled.
    """
    relayed = 0
    try:
        async for chunk in upstream_response.aiter_bytes():
            relayed += len(chunk)
            yield chunk
    except httpx.HTTPError as e:
        # Status line is already sent; all we can do is end the stream
        logger.error(
            f"Upstream stream interrupted: {e}",
            extra={"chatflow_id": chatflow_id, "bytes_relayed": relayed},
        )
    finally:
        await upstream_response.aclose()
        logger.debug(
            "Closed upstream stream",
            extra={"chatflow_id": chatflow_id, "bytes_relayed": relayed},
        )


# ============================================================================
# Proxy Endpoints
# ============================================================================

@proxy_router.options("/{path:path}")
async def preflight(path: str) -> Response:
    """CORS preflight. Headers are added by CORSHeadersMiddleware."""
    return Response(status_code=status.HTTP_200_OK)


@proxy_router.api_route(
    "/{path:path}",
    methods=["GET", "HEAD", "PUT", "PATCH", "DELETE"],
    include_in_schema=False,
)
async def method_not_allowed(path: str) -> Response:
    return PlainTextResponse(
        "Method Not Allowed",
        status_code=status.HTTP_405_METHOD_NOT_ALLOWED,
    )


@proxy_router.post("/{path:path}", response_model=None)
async def proxy_prediction(
    request: Request,
    path: str,
    settings: Settings = Depends(get_app_settings),
    upstream_client: httpx.AsyncClient = Depends(get_upstream_client),
) -> StreamingResponse:
    """
    Forward a prediction request and stream the upstream answer.

    Flow:
    1. Validate the body into a PredictionRequest (400 on failure)
    2. Send the outbound request without reading its body
    3. Close and fail with 500 on a non-2xx upstream status
    4. Return a StreamingResponse fed directly by the upstream body

    Args:
        request: FastAPI request
        path: Matched path (unused, any path is accepted)
        settings: Immutable application settings
        upstream_client: HTTP client for prediction service communication

    Returns:
        StreamingResponse relaying the upstream body verbatim

    Raises:
        ProxyError: Rendered by the app's ProxyError handler
    """
    try:
        prediction_request = await parse_prediction_request(request)

        upstream_request = build_upstream_request(upstream_client, settings, prediction_request)

        # Log request details (without question text or credentials)
        logger.info(
            "Proxying prediction request to upstream",
            extra={
                "chatflow_id": prediction_request.chatflowId,
                "user_id": prediction_request.userId,
                "question_length": len(prediction_request.question),
            }
        )

        try:
            upstream_response = await upstream_client.send(upstream_request, stream=True)
        except httpx.HTTPError as e:
            raise TransportError(f"Upstream request failed: {e!r}") from e

        if not upstream_response.is_success:
            await upstream_response.aclose()
            raise UpstreamError(upstream_response.status_code)

        return StreamingResponse(
            relay_upstream_body(upstream_response, prediction_request.chatflowId),
            status_code=status.HTTP_200_OK,
            headers=STREAM_HEADERS,
        )

    except ProxyError:
        # Re-raise for the ProxyError handler
        raise

    except Exception as e:
        raise UnexpectedError(f"Unexpected error in proxy_prediction: {e!r}") from e
