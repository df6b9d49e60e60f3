"""sqlbridge-mcp: per-caller database sessions over MCP."""
