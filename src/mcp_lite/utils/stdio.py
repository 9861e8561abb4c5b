"""
Stdio transport that routes the server's stderr through the rich logger.
"""

import subprocess
from contextlib import asynccontextmanager

import anyio
import mcp.types as types
from anyio.abc import Process
from anyio.streams.text import TextReceiveStream
from mcp.client.stdio import StdioServerParameters, get_default_environment
from mcp.shared.message import SessionMessage

from mcp_lite.utils.logging import get_logger

logger = get_logger(__name__)

# Seconds to wait for the server to exit after stdin closes, and again after SIGTERM
PROCESS_TERMINATE_TIMEOUT = 2.0


async def _shutdown_process(process: Process, command: str, timeout: float) -> None:
    """
    Close stdin and wait for the process; terminate, then kill, if it lingers.
    """
    if process.stdin:
        try:
            await process.stdin.aclose()
        except (anyio.ClosedResourceError, anyio.BrokenResourceError, OSError) as e:
            logger.debug(f"Stdin of '{command}' already closed: {e}")

    try:
        with anyio.fail_after(timeout):
            await process.wait()
    except TimeoutError:
        logger.warning(f"Process '{command}' (PID {process.pid}) still alive, terminating")
        try:
            process.terminate()
            with anyio.fail_after(timeout):
                await process.wait()
        except TimeoutError:
            logger.warning(f"Process '{command}' (PID {process.pid}) ignored SIGTERM, killing")
            process.kill()
            await process.wait()
        except ProcessLookupError:
            pass

    await process.aclose()
    logger.debug(f"Process '{command}' exited with code {process.returncode}")


@asynccontextmanager
async def stdio_client_with_rich_stderr(
    server: StdioServerParameters,
    terminate_timeout: float = PROCESS_TERMINATE_TIMEOUT,
):
    """
    Variant of the SDK's stdio_client that logs server stderr and always
    reaps the subprocess on exit.

    Args:
        server: The server parameters for the stdio connection.
        terminate_timeout: Grace period before SIGTERM and again before SIGKILL.

    Yields:
        A tuple of (read_stream, write_stream) for communication with the server.
    """
    read_stream_writer, read_stream = anyio.create_memory_object_stream(0)
    write_stream, write_stream_reader = anyio.create_memory_object_stream(0)

    try:
        process = await anyio.open_process(
            [server.command, *server.args],
            env=server.env if server.env is not None else get_default_environment(),
            stderr=subprocess.PIPE,
        )
    except OSError as e:
        logger.error(f"Failed to open process '{server.command}': {e}")
        await read_stream_writer.aclose()
        await read_stream.aclose()
        await write_stream.aclose()
        await write_stream_reader.aclose()
        raise

    logger.debug(f"Started process '{server.command}' with PID: {process.pid}")

    async def stdout_reader():
        assert process.stdout, "Opened process is missing stdout"
        try:
            async with read_stream_writer:
                buffer = ""
                async for chunk in TextReceiveStream(
                    process.stdout,
                    encoding=server.encoding,
                    errors=server.encoding_error_handler,
                ):
                    lines = (buffer + chunk).split("\n")
                    buffer = lines.pop()

                    for line in lines:
                        if not line:
                            continue
                        try:
                            message = types.JSONRPCMessage.model_validate_json(line)
                        except Exception as exc:
                            await read_stream_writer.send(exc)
                            continue

                        await read_stream_writer.send(SessionMessage(message))
        except (anyio.ClosedResourceError, anyio.BrokenResourceError):
            logger.debug(f"Stdout stream closed for {server.command}")

    async def stderr_reader():
        assert process.stderr, "Opened process is missing stderr"
        try:
            async for chunk in TextReceiveStream(
                process.stderr,
                encoding=server.encoding,
                errors=server.encoding_error_handler,
            ):
                for stderr_line in chunk.splitlines():
                    if not stderr_line.strip():
                        continue
                    if "[ERROR]" in stderr_line or "Error" in stderr_line:
                        logger.error(f"MCP SERVER STDERR: {stderr_line}")
                    else:
                        logger.debug(f"MCP SERVER STDERR: {stderr_line}")
        except (anyio.ClosedResourceError, anyio.BrokenResourceError):
            logger.debug(f"Stderr stream closed for {server.command}")

    async def stdin_writer():
        assert process.stdin, "Opened process is missing stdin"
        try:
            async with write_stream_reader:
                async for session_message in write_stream_reader:
                    json = session_message.message.model_dump_json(
                        by_alias=True, exclude_none=True
                    )
                    await process.stdin.send(
                        (json + "\n").encode(
                            encoding=server.encoding,
                            errors=server.encoding_error_handler,
                        )
                    )
        except (anyio.ClosedResourceError, anyio.BrokenResourceError):
            logger.debug(f"Stdin stream closed for {server.command}")

    async with anyio.create_task_group() as tg:
        tg.start_soon(stdout_reader)
        tg.start_soon(stdin_writer)
        tg.start_soon(stderr_reader)
        try:
            yield read_stream, write_stream
        finally:
            with anyio.CancelScope(shield=True):
                await write_stream.aclose()
                await _shutdown_process(process, server.command, terminate_timeout)
                await read_stream.aclose()
            tg.cancel_scope.cancel()
