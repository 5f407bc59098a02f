"""Cookie jar, robots.txt rules, request records and an MCP tool server for a headless browser."""

__version__ = "0.1.0"