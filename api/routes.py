"""
MEMORYMESH API ROUTES - The HTTP Interface

Exposes the tool registry over HTTP using Starlette.

Endpoints:
- GET  /health        - Health check
- GET  /tools         - Tool names, descriptions and argument schemas
- POST /tools/{name}  - Call a tool; JSON body is its arguments
- GET  /graph         - The whole graph
- GET  /stats         - Graph statistics

Design:
- Starlette routes for ASGI compatibility with Granian
- msgspec for JSON encoding of responses
- Store calls are blocking file I/O, so they run in Starlette's threadpool
"""
import logging
from typing import Any, Optional

import msgspec
from starlette.applications import Starlette
from starlette.concurrency import run_in_threadpool
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from starlette.routing import Route

from api.manager import ApplicationManager
from api.schema_tools import create_registry
from api.tools import ToolRegistry
from infrastructure.config import load_config


logger = logging.getLogger("memorymesh.api")


# =============================================================================
# RESPONSE HELPERS
# =============================================================================

_json_encoder = msgspec.json.Encoder()


def json_response(data: Any, status_code: int = 200) -> Response:
    """Create JSON response using msgspec."""
    return Response(
        content=_json_encoder.encode(data),
        status_code=status_code,
        media_type="application/json",
    )


def error_response(message: str, status_code: int = 400) -> JSONResponse:
    return JSONResponse({"error": message}, status_code=status_code)


def _registry(request: Request) -> ToolRegistry:
    return request.app.state.registry


# =============================================================================
# ENDPOINTS
# =============================================================================

async def health(request: Request) -> JSONResponse:
    config = request.app.state.manager.config
    return JSONResponse({
        "status": "healthy",
        "service": config.server_name,
        "version": config.server_version,
    })


async def list_tools(request: Request) -> Response:
    return json_response([
        {
            "name": tool.name,
            "description": tool.description,
            "inputSchema": tool.input_schema,
        }
        for tool in _registry(request).list_tools()
    ])


async def call_tool(request: Request) -> Response:
    """
    Call a tool by name.

    Returns 200 with the ToolResult on success, 400 when the tool reports a
    failure, 404 for an unknown tool.
    """
    registry = _registry(request)
    name = request.path_params["name"]
    if registry.get_tool(name) is None:
        return error_response(f"Unknown tool: {name}", status_code=404)

    body = await request.body()
    try:
        arguments = msgspec.json.decode(body) if body else {}
    except msgspec.DecodeError as e:
        return error_response(f"Invalid JSON body: {e}")
    if not isinstance(arguments, dict):
        return error_response("Tool arguments must be a JSON object")

    result = await run_in_threadpool(registry.call, name, arguments)
    return json_response(result, status_code=200 if result.success else 400)


async def read_graph(request: Request) -> Response:
    manager = request.app.state.manager
    return json_response(await run_in_threadpool(manager.read_graph))


async def stats(request: Request) -> Response:
    manager = request.app.state.manager
    return json_response(await run_in_threadpool(manager.graph_stats))


# =============================================================================
# APPLICATION
# =============================================================================

def create_routes():
    return [
        Route("/health", health, methods=["GET"]),
        Route("/tools", list_tools, methods=["GET"]),
        Route("/tools/{name}", call_tool, methods=["POST"]),
        Route("/graph", read_graph, methods=["GET"]),
        Route("/stats", stats, methods=["GET"]),
    ]


def create_app(manager: Optional[ApplicationManager] = None) -> Starlette:
    """
    Create the Starlette application.

    Without a manager, one is built from load_config() (environment and
    memorymesh.toml).
    """
    if manager is None:
        manager = ApplicationManager(config=load_config())

    app = Starlette(routes=create_routes(), debug=False)
    app.state.manager = manager
    app.state.registry = create_registry(manager)
    logger.info(f"API serving {manager.config.memory_file}")
    return app
