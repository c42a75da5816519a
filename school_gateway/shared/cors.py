"""CORS helpers for responses produced outside CORSMiddleware."""

from typing import Dict

from fastapi import Request, Response

CORS_ALLOW_HEADERS = ["authorization", "x-client-info", "apikey", "content-type"]
CORS_EXPOSE_HEADERS = ["X-RateLimit-Remaining", "Retry-After"]


def cors_headers(request: Request) -> Dict[str, str]:
    """CORS headers for the request's origin, or none if the origin is not allowed."""
    allowed = request.app.state.settings.cors_allow_origins
    headers = {}
    if "*" in allowed:
        headers["Access-Control-Allow-Origin"] = "*"
    else:
        origin = request.headers.get("origin")
        if origin in allowed:
            headers["Access-Control-Allow-Origin"] = origin
            headers["Vary"] = "Origin"
    if headers:
        headers["Access-Control-Allow-Headers"] = ", ".join(CORS_ALLOW_HEADERS)
    return headers


def preflight_response(request: Request) -> Response:
    """Empty success answer to an OPTIONS probe."""
    headers = cors_headers(request)
    headers["Access-Control-Allow-Methods"] = "POST, OPTIONS"
    return Response(status_code=200, headers=headers)
