"""
Chat with the calculator server through mcp-lite.
"""

import asyncio
import os

from mcp_lite import ChatOptions, McpLiteApp


def print_event(event):
    print(f"  [{event.type}] {event.message}")


async def main():
    """Run a short conversation against the calculator server."""
    config_path = os.path.join(os.path.dirname(__file__), "mcp_lite.config.yaml")
    app = McpLiteApp(config_path=config_path)

    async with app.run() as running:
        print(f"Connected servers: {running.hub.get_server_names()}")
        for name, error in running.connection_errors.items():
            print(f"Failed to connect {name}: {error}")

        engine = running.create_engine(system_prompt="You are a careful calculator assistant.")
        llm_settings = running.settings.llm
        options = ChatOptions(
            temperature=llm_settings.temperature,
            max_tokens=llm_settings.max_tokens,
            max_turns=5,
            observer=print_event,
        )

        for question in ["What is 21 * 2?", "Now add 8 to that."]:
            print(f"\nUser: {question}")
            response = await engine.chat(question, options)
            print(f"Assistant: {response.content}")


if __name__ == "__main__":
    asyncio.run(main())
