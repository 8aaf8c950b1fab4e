from seawatch.mcp.server import MCPServer

__all__ = ["MCPServer"]
