"""MCP server exposing service lifecycle tools over HTTP."""

from __future__ import annotations

from typing import Any

from mcp.server.fastmcp import FastMCP

from .config import DEFAULT_PORT
from .errors import ServiceError
from .registry import ServiceRegistry


def create_server(
    registry: ServiceRegistry,
    port: int = DEFAULT_PORT,
    start_timeout: float = 60.0,
) -> FastMCP:
    """Create and configure the MCP service manager server."""

    mcp = FastMCP(
        name="svcctl",
        instructions=(
            "Starts, stops and inspects locally managed services (databases, "
            "dev servers, mocks). Use list_services to see what is configured, "
            "start_service to bring one up and wait until it is ready, "
            "service_status to check on it and stop_service to shut it down."
        ),
        host="127.0.0.1",
        port=port,
        stateless_http=True,
    )

    # ------------------------------------------------------------------
    # Tool: start_service
    # ------------------------------------------------------------------
    @mcp.tool()
    async def start_service(name: str, timeout: float | None = None) -> dict[str, Any]:
        """Start a configured service and wait until its readiness checks pass.

        Idempotent: if the service is already running it is only re-checked
        for readiness; no second process is launched.

        Args:
            name: Name of the service as configured in services.json.
            timeout: Seconds to wait for readiness (default from SVCCTL_START_TIMEOUT).
        """
        try:
            svc = registry.get(name)
            await svc.start(timeout=timeout if timeout is not None else start_timeout)
            return (await svc.status()).to_dict()
        except KeyError:
            return {"name": name, "status": "not_found", "error": f"No service named '{name}'"}
        except (ServiceError, OSError) as exc:
            return {"name": name, "status": "error", "error": str(exc)}

    # ------------------------------------------------------------------
    # Tool: stop_service
    # ------------------------------------------------------------------
    @mcp.tool()
    async def stop_service(name: str) -> dict[str, Any]:
        """Stop a service (SIGTERM, then SIGKILL after its grace period).

        Stopping a service that is not running is not an error.

        Args:
            name: Name of the service to stop.
        """
        try:
            svc = registry.get(name)
            await svc.stop()
            return (await svc.status()).to_dict()
        except KeyError:
            return {"name": name, "status": "not_found", "error": f"No service named '{name}'"}
        except OSError as exc:
            return {"name": name, "status": "error", "error": str(exc)}

    # ------------------------------------------------------------------
    # Tool: service_status
    # ------------------------------------------------------------------
    @mcp.tool()
    async def service_status(name: str) -> dict[str, Any]:
        """Report pid, running and ready state of one service.

        Runs every readiness check once; never starts or stops anything.

        Args:
            name: Name of the service.
        """
        try:
            snapshot = await registry.get(name).status()
        except KeyError:
            return {"name": name, "status": "not_found", "error": f"No service named '{name}'"}
        result = snapshot.to_dict()
        result["summary"] = str(snapshot)
        return result

    # ------------------------------------------------------------------
    # Tool: list_services
    # ------------------------------------------------------------------
    @mcp.tool()
    async def list_services() -> dict[str, Any]:
        """List every configured service with its current status."""
        statuses = await registry.status_all()
        return {
            "count": len(statuses),
            "services": [s.to_dict() for s in statuses],
        }

    return mcp
