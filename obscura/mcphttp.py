"""MCP over HTTP: JSON-RPC requests POSTed to ``/mcp`` get JSON answers.

Connections are served one at a time. The browser session is a single
piece of state that is never shared between concurrent requests.
"""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
from typing import Any, Optional

from obscura.mcpserver import BrowserState, dispatch

logger = logging.getLogger(__name__)

HOST = "127.0.0.1"
MCP_PATH = "/mcp"
SSE_PING_INTERVAL = 15.0

ERR_PARSE = -32700
ERR_INVALID_REQUEST = -32600

_STATUS_TEXT = {
    400: "Bad Request",
    404: "Not Found",
    405: "Method Not Allowed",
}

_OPTIONS_RESPONSE = (
    b"HTTP/1.1 204 No Content\r\n"
    b"Access-Control-Allow-Origin: *\r\n"
    b"Access-Control-Allow-Methods: GET, POST, OPTIONS\r\n"
    b"Access-Control-Allow-Headers: Content-Type\r\n"
    b"\r\n"
)

_SSE_RESPONSE = (
    b"HTTP/1.1 200 OK\r\n"
    b"Content-Type: text/event-stream\r\n"
    b"Cache-Control: no-cache\r\n"
    b"Connection: keep-alive\r\n"
    b"Access-Control-Allow-Origin: *\r\n"
    b"\r\n"
)


def _rpc_error(code: int, message: str) -> dict[str, Any]:
    return {"jsonrpc": "2.0", "id": None, "error": {"code": code, "message": message}}


async def process_one(msg: Any, state: BrowserState) -> Optional[dict[str, Any]]:
    """Answer one JSON-RPC message; notifications (no ``id``) get ``None``."""
    if not isinstance(msg, dict) or "id" not in msg:
        return None
    method = msg.get("method")
    if not isinstance(method, str):
        method = ""
    response = await dispatch(method, msg["id"], msg.get("params"), state)
    return response.to_dict()


async def process_body(body: bytes, state: BrowserState) -> Any:
    """Answer a request body holding one JSON-RPC message or a batch of them."""
    try:
        msg = json.loads(body)
    except ValueError:
        return _rpc_error(ERR_PARSE, "Parse error")

    if isinstance(msg, list):
        results = []
        for item in msg:
            result = await process_one(item, state)
            if result is not None:
                results.append(result)
        return results

    result = await process_one(msg, state)
    if result is None:
        return _rpc_error(ERR_INVALID_REQUEST, "Invalid Request")
    return result


def _parse_length(text: str) -> Optional[int]:
    digits = text[1:] if text.startswith("+") else text
    if digits and digits.isascii() and digits.isdigit():
        return int(digits)
    return None


async def _respond(writer: Any, status: int, body: bytes) -> None:
    status_text = _STATUS_TEXT.get(status, "OK")
    header = (
        f"HTTP/1.1 {status} {status_text}\r\n"
        "Content-Type: application/json\r\n"
        f"Content-Length: {len(body)}\r\n"
        "\r\n"
    )
    writer.write(header.encode("ascii") + body)
    await writer.drain()


async def _respond_json(writer: Any, body: bytes) -> None:
    header = (
        "HTTP/1.1 200 OK\r\n"
        "Content-Type: application/json\r\n"
        f"Content-Length: {len(body)}\r\n"
        "Access-Control-Allow-Origin: *\r\n"
        "Connection: keep-alive\r\n"
        "\r\n"
    )
    writer.write(header.encode("ascii") + body)
    await writer.drain()


async def _stream_pings(writer: Any) -> None:
    writer.write(_SSE_RESPONSE)
    await writer.drain()
    while True:
        await asyncio.sleep(SSE_PING_INTERVAL)
        if writer.is_closing():
            return
        writer.write(b": ping\n\n")
        try:
            await writer.drain()
        except (ConnectionError, OSError):
            return


async def handle_connection(reader: asyncio.StreamReader, writer: Any, state: BrowserState) -> None:
    """Serve HTTP requests arriving on one connection until it should close."""
    while True:
        raw = await reader.readline()
        if not raw:
            return
        request_line = raw.decode("utf-8").strip()
        if not request_line:
            return
        parts = request_line.split(" ", 2)
        if len(parts) < 3:
            return
        method, path = parts[0], parts[1]

        content_length: Optional[int] = None
        accept_sse = False
        keep_alive = False
        while True:
            line = (await reader.readline()).decode("utf-8")
            if line.endswith("\r\n"):
                line = line[:-2]
            elif line.endswith("\n"):
                line = line[:-1]
            if not line:
                break
            lower = line.lower()
            if lower.startswith("content-length: "):
                content_length = _parse_length(lower[len("content-length: "):].strip())
            if "text/event-stream" in lower:
                accept_sse = True
            if lower.startswith("connection: ") and "keep-alive" in lower:
                keep_alive = True

        if path != MCP_PATH:
            await _respond(writer, 404, b'{"error":"not found"}')
            return

        if method == "OPTIONS":
            writer.write(_OPTIONS_RESPONSE)
            await writer.drain()
        elif method == "GET" and accept_sse:
            await _stream_pings(writer)
            return
        elif method == "POST":
            if content_length is None:
                await _respond(writer, 400, b'{"error":"missing Content-Length"}')
                return
            body = await reader.readexactly(content_length)
            response = await process_body(body, state)
            payload = json.dumps(response, ensure_ascii=False, separators=(",", ":"))
            await _respond_json(writer, payload.encode("utf-8"))
            if not keep_alive:
                return
        else:
            await _respond(writer, 405, b'{"error":"method not allowed"}')
            return


async def run(port: int, state: BrowserState) -> None:
    """Listen on ``127.0.0.1:port`` and serve MCP requests until cancelled."""
    lock = asyncio.Lock()

    async def serve(reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        async with lock:
            logger.debug("MCP HTTP connection from %s", writer.get_extra_info("peername"))
            try:
                await handle_connection(reader, writer, state)
            except (ConnectionError, OSError, asyncio.IncompleteReadError, ValueError) as exc:
                logger.debug("connection closed: %s", exc)
            finally:
                writer.close()
                with contextlib.suppress(ConnectionError, OSError):
                    await writer.wait_closed()

    server = await asyncio.start_server(serve, HOST, port)
    logger.info("MCP HTTP server on http://%s:%d%s", HOST, port, MCP_PATH)
    async with server:
        await server.serve_forever()