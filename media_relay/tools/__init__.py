"""
Tools module exposing local actions to the OpenAI Realtime model.

Key components:
- registry: ToolDescriptor, ToolResult and the name-keyed ToolRegistry that
  validates arguments before running a tool.
- metallica: The getMetallicaAlbums demonstration tool.

Usage examples:
```python
from media_relay.tools import build_default_registry

registry = build_default_registry()
result = await registry.invoke("getMetallicaAlbums", '{"limit": 2}')
print(result.to_output())
```
"""

from media_relay.tools.metallica import metallica_albums_tool
from media_relay.tools.registry import ToolDescriptor, ToolRegistry, ToolResult


def build_default_registry() -> ToolRegistry:
    """Create a registry holding every tool the relay offers to the model."""
    registry = ToolRegistry()
    registry.register(metallica_albums_tool)
    return registry


__all__ = ["ToolDescriptor", "ToolRegistry", "ToolResult", "build_default_registry"]
