"""Device Store MCP Server - configure and buy devices from a remote catalog."""

__version__ = "0.1.0"
