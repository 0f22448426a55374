"""MCP tool catalogue loaded from tools.yaml."""

from pathlib import Path
from typing import Any, Dict, List, Optional

from mcp.types import Tool

from .data_loader import DataFileLoader


class ToolConfigLoader:
    """Builds MCP Tool objects from the tool catalogue."""

    def __init__(self, config_path: Optional[Path] = None):
        """Initialize the tool catalogue loader.

        Args:
            config_path: Path to the tools.yaml file, defaults to the one in this package
        """
        if config_path is None:
            config_path = Path(__file__).parent / "tools.yaml"
        config_path = Path(config_path)
        self._loader = DataFileLoader(config_path.name, config_path.parent)

    @property
    def config_path(self) -> Path:
        return self._loader.path

    def _tools(self) -> Dict[str, Any]:
        tools = self._loader.load().get("tools") or {}
        if not isinstance(tools, dict):
            raise RuntimeError(f"'tools' in {self.config_path} must be a mapping")
        return tools

    def tool_names(self) -> List[str]:
        return list(self._tools())

    def get_tool_definitions(self) -> List[Tool]:
        """Tool definitions as MCP Tool objects, in catalogue order."""
        return [
            Tool(
                name=name,
                # Folded YAML descriptions keep their trailing newline
                description=" ".join(str(spec.get("description", "")).split()),
                inputSchema=spec.get("inputSchema") or {"type": "object"},
            )
            for name, spec in self._tools().items()
        ]

    def get_tool_schema(self, tool_name: str) -> Dict[str, Any]:
        """Input schema for one tool.

        Raises:
            ValueError: If the tool is not in the catalogue
        """
        tools = self._tools()
        if tool_name not in tools:
            raise ValueError(f"Tool '{tool_name}' not found in configuration")
        return tools[tool_name].get("inputSchema") or {"type": "object"}
