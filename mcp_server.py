"""
EDA Tool Server - MCP Server

Exposes an EDA toolchain (Yosys synthesis, Icarus Verilog simulation,
OpenLane RTL-to-GDSII flow, GTKWave/KLayout viewers, OpenLane report reading)
via Model Context Protocol (MCP).

Supports two transport modes:
  - stdio (default): Local process communication (Claude Desktop, VS Code)
  - sse:  Server-Sent Events over HTTP for remote access

Usage:
  python mcp_server.py                     # stdio (default)
  python mcp_server.py --transport sse     # SSE on http://0.0.0.0:8080
  python mcp_server.py --transport sse --host 127.0.0.1 --port 9090
"""

import argparse
import asyncio
import logging
from typing import Any, Dict, Optional, Sequence

from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.shared.exceptions import McpError
from mcp.types import INVALID_PARAMS, METHOD_NOT_FOUND, ErrorData, TextContent, Tool

from eda_mcp.config import LOG_LEVEL
from eda_mcp.errors import ToolArgumentError, UnknownToolError
from eda_mcp.tools.viewers import ViewerLauncher
from eda_mcp.tools.wrappers import build_tools, validate_arguments
from eda_mcp.utils.logging_config import setup_logging
from eda_mcp.utils.workspace_manager import WorkspaceManager

logger = logging.getLogger("eda_mcp.server")

SERVER_NAME = "yosys-server"


def langchain_to_mcp_schema(langchain_tool) -> Tool:
    """Convert a LangChain tool to MCP Tool format using its pydantic args_schema."""
    input_schema = {"type": "object", "properties": {}, "required": []}
    if getattr(langchain_tool, "args_schema", None) is not None:
        input_schema = langchain_tool.args_schema.model_json_schema()

    return Tool(
        name=langchain_tool.name,
        description=langchain_tool.description or f"Execute {langchain_tool.name}",
        inputSchema=input_schema,
    )


# =============================================================================
# MCP SERVER
# =============================================================================

class EDAMCPServer:
    def __init__(self, workspaces: Optional[WorkspaceManager] = None, launcher: Optional[ViewerLauncher] = None):
        self.server = Server(SERVER_NAME)
        # One registry for the lifetime of the process; project ids stay valid across calls.
        self.workspaces = workspaces or WorkspaceManager()
        self.tools = {t.name: t for t in build_tools(self.workspaces, launcher=launcher)}
        self._setup_handlers()

    def _setup_handlers(self):
        """Setup MCP protocol handlers"""
        @self.server.list_tools()
        async def handle_list_tools():
            return await self.list_tools()

        @self.server.call_tool()
        async def handle_call_tool(name: str, arguments: dict):
            return await self.call_tool(name, arguments)

    async def list_tools(self) -> list[Tool]:
        return [langchain_to_mcp_schema(t) for t in self.tools.values()]

    async def call_tool(self, name: str, arguments: Dict[str, Any] | None) -> Sequence[TextContent]:
        """
        Execute a tool and return its JSON envelope.

        Unknown tools and bad arguments are protocol errors; every other
        failure is already folded into the envelope by the tool itself.
        """
        tool = self.tools.get(name)
        try:
            if tool is None:
                raise UnknownToolError(name)
            arguments = validate_arguments(tool, arguments)
        except UnknownToolError as exc:
            raise McpError(ErrorData(code=METHOD_NOT_FOUND, message=str(exc))) from exc
        except ToolArgumentError as exc:
            raise McpError(ErrorData(code=INVALID_PARAMS, message=str(exc))) from exc

        logger.info("Calling %s", name)
        # Tools are synchronous and may block for minutes; keep the event loop free.
        result = await asyncio.get_event_loop().run_in_executor(None, lambda: tool.invoke(arguments))
        return [TextContent(type="text", text=str(result))]

    async def run(self, transport: str = "stdio", host: str = "0.0.0.0", port: int = 8080):
        """Run the MCP server with the specified transport."""
        if transport == "stdio":
            async with stdio_server() as (read_stream, write_stream):
                await self.server.run(
                    read_stream,
                    write_stream,
                    self.server.create_initialization_options()
                )

        elif transport == "sse":
            from mcp.server.sse import SseServerTransport
            from starlette.applications import Starlette
            from starlette.middleware import Middleware
            from starlette.middleware.cors import CORSMiddleware
            from starlette.routing import Mount, Route
            import uvicorn

            sse = SseServerTransport("/messages/")

            async def handle_sse(request):
                async with sse.connect_sse(request.scope, request.receive, request._send) as streams:
                    await self.server.run(
                        streams[0],
                        streams[1],
                        self.server.create_initialization_options()
                    )

            app = Starlette(
                routes=[
                    Route("/sse", endpoint=handle_sse),
                    Mount("/messages/", app=sse.handle_post_message),
                ],
                middleware=[
                    Middleware(CORSMiddleware, allow_origins=["*"], allow_methods=["*"], allow_headers=["*"])
                ],
            )

            logger.info("MCP SSE server running on http://%s:%d/sse", host, port)
            config = uvicorn.Config(app, host=host, port=port, log_level="info")
            await uvicorn.Server(config).serve()

        else:
            raise ValueError(f"Unknown transport: {transport}. Use 'stdio' or 'sse'.")


# =============================================================================
# MAIN
# =============================================================================

async def main():
    parser = argparse.ArgumentParser(description="EDA Tool MCP Server")
    parser.add_argument(
        "--transport",
        choices=["stdio", "sse"],
        default="stdio",
        help="Transport mode: stdio (local, default) or sse (remote SSE)"
    )
    parser.add_argument("--host", default="0.0.0.0", help="Host to bind to for SSE (default: 0.0.0.0)")
    parser.add_argument("--port", type=int, default=8080, help="Port to listen on for SSE (default: 8080)")
    parser.add_argument("--log-level", default=LOG_LEVEL, help="Log level (default: LOG_LEVEL env or INFO)")
    parser.add_argument("--log-file", default=None, help="Optional log file (DEBUG level)")
    args = parser.parse_args()

    setup_logging(args.log_level, args.log_file)
    server = EDAMCPServer()
    logger.info("EDA MCP server starting (%s); workspaces under %s", args.transport, server.workspaces.scratch_root)
    await server.run(transport=args.transport, host=args.host, port=args.port)


def cli():
    asyncio.run(main())


if __name__ == "__main__":
    cli()
