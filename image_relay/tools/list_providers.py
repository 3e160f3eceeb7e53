from fastmcp import FastMCP
from fastmcp.tools.tool import ToolResult
from mcp.types import TextContent

from .. import services


def register_list_providers_tool(server: FastMCP):
    """Register the list_providers tool with the FastMCP server."""

    @server.tool(
        annotations={
            "title": "List configured image providers",
            "readOnlyHint": True,
        }
    )
    def list_providers() -> ToolResult:
        """List initialized image providers, best first, with their capabilities."""
        orchestrator = services.get_orchestrator()
        available = orchestrator.list_available()
        active = orchestrator.active_service

        lines = ["🖼️ Image generation services:"]
        for summary in available:
            marker = "🎯" if summary["service"] == active else "⚙️"
            role = "(PRIMARY)" if summary["service"] == active else "(BACKUP)"
            lines.append(f"{marker} {summary['description']} {role}")
            lines.append(f"   Cost: {summary['cost']}")

        return ToolResult(
            content=[TextContent(type="text", text="\n".join(lines))],
            structured_content={"active": active, "providers": available},
        )
