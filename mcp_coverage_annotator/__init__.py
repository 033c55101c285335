"""
MCP adapter for coverage-annotator.

Exposes the coverage_annotator.check tool for MCP hosts.
"""

from mcp_coverage_annotator.tool import handle

__all__ = ["handle"]
__version__ = "0.1.0"
