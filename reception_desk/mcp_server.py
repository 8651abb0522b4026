"""MCP server exposing reception desk data tools."""

from __future__ import annotations

from typing import Optional

from mcp.server.fastmcp import FastMCP

from .config import load_settings
from .registry import AttendanceRegistry
from .service import build_reception_desk
from .users import UserService, require_permission
from .validation import build_filters


def create_mcp_server(registry: AttendanceRegistry, users: Optional[UserService] = None) -> FastMCP:
    """Build the tool server; resolving attendances is only offered when ``users`` is given."""

    mcp = FastMCP("reception-desk")

    @mcp.tool()
    async def list_visible_attendances(sector: Optional[str] = None) -> dict:
        """Return the live dashboard: waiting attendances plus recently resolved ones."""

        filters = build_filters(sector=sector)
        return {"attendances": [record.to_dict() for record in registry.query_visible(filters)]}

    @mcp.tool()
    async def list_attendances(
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
        sector: Optional[str] = None,
        status: Optional[str] = None,
        name: Optional[str] = None,
        registration: Optional[str] = None,
    ) -> dict:
        """Return historical attendances, most recent first. Dates use YYYY-MM-DD."""

        filters = build_filters(
            start_date=start_date,
            end_date=end_date,
            sector=sector,
            status=status,
            name=name,
            registration=registration,
        )
        return {"attendances": [record.to_dict() for record in registry.query(filters)]}

    @mcp.tool()
    async def dashboard_stats() -> dict:
        """Return waiting/attended counters over every stored attendance."""

        return registry.stats().to_dict()

    if users is None:
        return mcp

    @mcp.tool()
    async def mark_attended(attendance_id: str, username: str) -> dict:
        """Resolve a waiting attendance on behalf of a user allowed to edit attendances."""

        require_permission(users.get_by_username(username), "edit")
        return {"attendance": registry.mark_attended(attendance_id).to_dict()}

    return mcp


def run() -> None:  # pragma: no cover - stdio transport
    from .main import configure_logging

    settings = load_settings()
    configure_logging(settings.log_level)
    desk = build_reception_desk(settings)
    try:
        create_mcp_server(desk.registry, desk.users).run()
    finally:
        desk.close()


if __name__ == "__main__":  # pragma: no cover
    run()


__all__ = ["create_mcp_server", "run"]
