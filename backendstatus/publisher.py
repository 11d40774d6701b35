"""
Snapshot publisher — serves the registry as JSON over HTTP.

Each request takes a snapshot of the registry (a full copy made under
the registry lock) and serializes it after the lock is released, so a
slow client never holds up ingestion. Responses carry permissive CORS
headers so dashboards on other origins can poll the endpoint directly.
"""

from __future__ import annotations

import json

from aiohttp import web

from backendstatus import notifier
from backendstatus.registry import Registry

REGISTRY_KEY = web.AppKey("registry", Registry)

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Max-Age": "3600",
}


async def world_handler(request: web.Request) -> web.Response:
    """GET /world.json: the whole registry plus the capture time."""
    registry = request.app[REGISTRY_KEY]
    snapshot = registry.snapshot()

    try:
        body = json.dumps(snapshot.to_dict(), allow_nan=False)
    except (TypeError, ValueError) as exc:
        notifier.print_error("world.json", f"Error writing JSON: {exc}")
        raise web.HTTPInternalServerError(
            text="failed to serialize registry", headers=CORS_HEADERS
        ) from exc

    return web.Response(
        text=body, content_type="application/json", headers=CORS_HEADERS
    )


async def preflight_handler(request: web.Request) -> web.Response:
    """OPTIONS /world.json: CORS preflight."""
    headers = dict(CORS_HEADERS)
    headers["Access-Control-Allow-Methods"] = "GET, OPTIONS"
    return web.Response(status=204, headers=headers)


async def health_handler(request: web.Request) -> web.Response:
    registry = request.app[REGISTRY_KEY]
    return web.json_response({"status": "healthy", "backends": len(registry)})


def create_app(registry: Registry) -> web.Application:
    """Build the aiohttp application around a registry."""
    app = web.Application()
    app[REGISTRY_KEY] = registry
    app.router.add_get("/world.json", world_handler)
    app.router.add_route("OPTIONS", "/world.json", preflight_handler)
    app.router.add_get("/health", health_handler)
    return app
