#!/usr/bin/env python3
"""
Check the personalization MCP server configuration and tool catalogue.
"""

import asyncio
import sys
from pathlib import Path

# Add project root to path
sys.path.append(str(Path(__file__).parent.parent))

from config.settings import ConfigurationError, config
from impactconnect.mcp_server import PersonalizationMCPServer


async def main():
    """Validate configuration and list the server's tools."""
    print("🧪 Checking personalization MCP server...")

    try:
        config.validate()
        print("✅ Configuration validated")
    except ConfigurationError as e:
        print(f"⚠️  {e}")
        print("   Carousel personalization will fall back to default content")

    try:
        server = PersonalizationMCPServer(install_signal_handlers=False)
        tools = await server._list_tools()
        for tool in tools:
            print(f"   - {tool.name}")
        print(f"✅ {len(tools)} tools registered")
        await server.shutdown()
    except Exception as e:
        print(f"❌ Check failed: {e}")
        sys.exit(1)


if __name__ == "__main__":
    asyncio.run(main())
