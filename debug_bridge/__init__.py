"""Local bridge between a browser debug widget and a coding agent (HTTP + MCP)."""

__version__ = "0.3.0"
