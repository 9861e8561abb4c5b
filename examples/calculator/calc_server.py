"""
Calculator server for demo purposes.
"""

import asyncio
import sys

from mcp.server import NotificationOptions
from mcp.server.fastmcp import FastMCP
from mcp.server.stdio import stdio_server


app = FastMCP("calculator")


@app.tool()
async def add(a: float, b: float) -> str:
    """
    Add two numbers.

    Args:
        a: First operand.
        b: Second operand.

    Returns:
        The sum.
    """
    print(f"add({a}, {b})", file=sys.stderr)
    return str(a + b)


@app.tool()
async def multiply(a: float, b: float) -> str:
    """Multiply two numbers."""
    print(f"multiply({a}, {b})", file=sys.stderr)
    return str(a * b)


@app.resource("calc://constants")
def constants() -> str:
    """Well-known constants."""
    return "pi = 3.14159\ne = 2.71828"


async def run():
    """Run the calculator server over stdio."""
    async with stdio_server() as (read_stream, write_stream):
        await app._mcp_server.run(
            read_stream,
            write_stream,
            app._mcp_server.create_initialization_options(
                notification_options=NotificationOptions(tools_changed=True)
            ),
        )


if __name__ == "__main__":
    asyncio.run(run())
