"""
MCP adapter for coverage-planner.

Exposes the coverage_planner.plan tool for MCP hosts.
"""

from mcp_coverage_planner.tool import handle

__all__ = ["handle"]
__version__ = "0.1.0"
