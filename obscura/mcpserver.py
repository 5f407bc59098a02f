"""A Model Context Protocol server that exposes browser actions as tools."""

from __future__ import annotations

import abc
import asyncio
import json
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Optional

PROTOCOL_VERSION = "2024-11-05"
SERVER_NAME = "obscura-mcp"
SERVER_VERSION = "0.1.0"

ERR_METHOD_NOT_FOUND = -32601
ERR_INVALID_PARAMS = -32602

_NOT_FOUND = "error:element not found"
_OPTION_NOT_FOUND = "error:option not found"

_SKIPPED_TAGS = frozenset({"script", "style", "noscript"})
_BLOCK_TAGS = frozenset({
    "div", "p", "h1", "h2", "h3", "h4", "h5", "h6",
    "li", "tr", "br", "hr", "section", "article",
    "header", "footer", "nav", "main", "aside",
    "blockquote", "pre", "ul", "ol", "table",
})


@dataclass
class RpcError:
    code: int
    message: str

    def to_dict(self) -> dict[str, Any]:
        return {"code": self.code, "message": self.message}


@dataclass
class RpcResponse:
    """A JSON-RPC 2.0 response carrying either a result or an error."""

    id: Any
    result: Any = None
    error: Optional[RpcError] = None

    @classmethod
    def ok(cls, request_id: Any, result: Any) -> "RpcResponse":
        return cls(id=request_id, result=result)

    @classmethod
    def err(cls, request_id: Any, code: int, message: str) -> "RpcResponse":
        return cls(id=request_id, error=RpcError(code, message))

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"jsonrpc": "2.0", "id": self.id}
        if self.result is not None:
            data["result"] = self.result
        if self.error is not None:
            data["error"] = self.error.to_dict()
        return data


@dataclass
class DomNode:
    """A minimal document node: a text node, an element, or a plain container."""

    tag: Optional[str] = None
    text: Optional[str] = None
    children: list["DomNode"] = field(default_factory=list)

    @classmethod
    def element(cls, tag: str, *children: "DomNode") -> "DomNode":
        return cls(tag=tag, children=list(children))

    @classmethod
    def text_node(cls, contents: str) -> "DomNode":
        return cls(text=contents)


@dataclass
class NetworkEvent:
    """One request made by a page."""

    status: int
    method: str
    url: str
    body_size: int


class PageBackend(abc.ABC):
    """The browser page that tools act on."""

    def __init__(self) -> None:
        self.url = "about:blank"
        self.title = ""
        self.network_events: list[NetworkEvent] = []

    @abc.abstractmethod
    async def navigate(self, url: str, wait_until: str) -> None:
        """Load ``url`` and wait for the given lifecycle condition."""

    @abc.abstractmethod
    def evaluate(self, expression: str) -> Any:
        """Evaluate a script expression and return its JSON value."""

    @abc.abstractmethod
    def body(self) -> Optional[DomNode]:
        """The ``body`` element of the current document, if any."""

    @abc.abstractmethod
    def has_selector(self, selector: str) -> bool:
        """Whether an element matching ``selector`` is present."""

    @abc.abstractmethod
    async def set_user_agent(self, ua: str) -> None:
        """Use ``ua`` for subsequent requests."""


class BrowserState:
    """The single page the server drives, created on first use."""

    def __init__(
        self,
        page_factory: Callable[[], PageBackend],
        user_agent: Optional[str] = None,
    ) -> None:
        self._page_factory = page_factory
        self._page: Optional[PageBackend] = None
        self.user_agent = user_agent
        self.console_messages: list[str] = []

    def page(self) -> PageBackend:
        if self._page is None:
            self._page = self._page_factory()
        return self._page

    def close_page(self) -> None:
        self._page = None
        self.console_messages.clear()


class _ToolError(Exception):
    pass


def _get(obj: Any, key: str) -> Any:
    return obj.get(key) if isinstance(obj, dict) else None


def _str_arg(args: Any, key: str) -> Optional[str]:
    value = _get(args, key)
    return value if isinstance(value, str) else None


def _require(args: Any, key: str) -> str:
    value = _str_arg(args, key)
    if value is None:
        raise _ToolError(f"Missing {key} parameter")
    return value


def _js(value: str) -> str:
    return json.dumps(value, ensure_ascii=False)


def tools_list() -> list[dict[str, Any]]:
    """Descriptions and input schemas of every tool the server offers."""
    empty = {"type": "object", "properties": {}}
    return [
        {
            "name": "browser_navigate",
            "description": "Navigate to a URL and wait for the page to load",
            "inputSchema": {
                "type": "object",
                "properties": {
                    "url": {"type": "string", "description": "URL to navigate to"},
                    "waitUntil": {
                        "type": "string",
                        "enum": ["load", "domcontentloaded", "networkidle0"],
                        "description": "Navigation wait condition (default: load)",
                    },
                },
                "required": ["url"],
            },
        },
        {
            "name": "browser_snapshot",
            "description": "Get the current page content as text (title, URL, and readable body text)",
            "inputSchema": dict(empty),
        },
        {
            "name": "browser_click",
            "description": "Click an element matching the CSS selector",
            "inputSchema": {
                "type": "object",
                "properties": {
                    "selector": {"type": "string", "description": "CSS selector of the element to click"},
                },
                "required": ["selector"],
            },
        },
        {
            "name": "browser_fill",
            "description": "Set the value of an input element",
            "inputSchema": {
                "type": "object",
                "properties": {
                    "selector": {"type": "string", "description": "CSS selector of the input element"},
                    "value": {"type": "string", "description": "Value to set"},
                },
                "required": ["selector", "value"],
            },
        },
        {
            "name": "browser_type",
            "description": "Type text into an input element (appends to existing value)",
            "inputSchema": {
                "type": "object",
                "properties": {
                    "selector": {"type": "string", "description": "CSS selector of the element"},
                    "text": {"type": "string", "description": "Text to type"},
                },
                "required": ["selector", "text"],
            },
        },
        {
            "name": "browser_press_key",
            "description": "Dispatch a keyboard event on an element or the document",
            "inputSchema": {
                "type": "object",
                "properties": {
                    "key": {"type": "string", "description": "Key name (e.g. Enter, Tab, Escape)"},
                    "selector": {"type": "string", "description": "CSS selector (optional, defaults to document)"},
                },
                "required": ["key"],
            },
        },
        {
            "name": "browser_select_option",
            "description": "Select an option from a <select> element",
            "inputSchema": {
                "type": "object",
                "properties": {
                    "selector": {"type": "string", "description": "CSS selector of the <select> element"},
                    "value": {"type": "string", "description": "Value or text of the option to select"},
                },
                "required": ["selector", "value"],
            },
        },
        {
            "name": "browser_evaluate",
            "description": "Evaluate a JavaScript expression in the page context and return the result",
            "inputSchema": {
                "type": "object",
                "properties": {
                    "expression": {"type": "string", "description": "JavaScript expression to evaluate"},
                },
                "required": ["expression"],
            },
        },
        {
            "name": "browser_wait_for",
            "description": "Wait for a CSS selector to appear in the DOM",
            "inputSchema": {
                "type": "object",
                "properties": {
                    "selector": {"type": "string", "description": "CSS selector to wait for"},
                    "timeout": {"type": "number", "description": "Timeout in seconds (default: 30)"},
                },
                "required": ["selector"],
            },
        },
        {
            "name": "browser_network_requests",
            "description": "Return the list of network requests made by the current page",
            "inputSchema": dict(empty),
        },
        {
            "name": "browser_console_messages",
            "description": "Return the console messages logged by the current page",
            "inputSchema": dict(empty),
        },
        {
            "name": "browser_close",
            "description": "Close the current browser page and reset state",
            "inputSchema": dict(empty),
        },
    ]


def extract_text(node: Optional[DomNode]) -> str:
    """Readable text under ``node``, with line breaks around block elements."""
    if node is None:
        return ""
    if node.text is not None:
        trimmed = node.text.strip()
        return trimmed + " " if trimmed else ""
    if node.tag is not None:
        tag = node.tag.lower()
        if tag in _SKIPPED_TAGS:
            return ""
        inner = "".join(extract_text(child) for child in node.children)
        return f"\n{inner}\n" if tag in _BLOCK_TAGS else inner
    return "".join(extract_text(child) for child in node.children)


async def _tool_navigate(args: Any, state: BrowserState) -> str:
    url = _require(args, "url")
    wait_until = _str_arg(args, "waitUntil") or "load"
    page = state.page()
    if state.user_agent is not None:
        await page.set_user_agent(state.user_agent)
    try:
        await page.navigate(url, wait_until)
    except Exception as exc:
        raise _ToolError(str(exc)) from exc
    return f'Navigated to {page.url} — "{page.title}"'


async def _tool_snapshot(args: Any, state: BrowserState) -> str:
    page = state.page()
    body_text = extract_text(page.body())
    return f"URL: {page.url}\nTitle: {page.title}\n\n{body_text.strip()}"


async def _tool_click(args: Any, state: BrowserState) -> str:
    selector = _require(args, "selector")
    js = (
        "(function(){\n"
        f"    var el = document.querySelector({_js(selector)});\n"
        f'    if (!el) return "{_NOT_FOUND}";\n'
        "    el.click();\n"
        '    return "ok";\n'
        "})()"
    )
    if state.page().evaluate(js) == _NOT_FOUND:
        raise _ToolError(f"Element not found: {selector}")
    return f"Clicked '{selector}'"


async def _tool_fill(args: Any, state: BrowserState) -> str:
    selector = _require(args, "selector")
    value = _require(args, "value")
    js = (
        "(function(){\n"
        f"    var el = document.querySelector({_js(selector)});\n"
        f'    if (!el) return "{_NOT_FOUND}";\n'
        f"    el.value = {_js(value)};\n"
        '    el.dispatchEvent(new Event("input", {bubbles:true}));\n'
        '    el.dispatchEvent(new Event("change", {bubbles:true}));\n'
        '    return "ok";\n'
        "})()"
    )
    if state.page().evaluate(js) == _NOT_FOUND:
        raise _ToolError(f"Element not found: {selector}")
    return f"Filled '{selector}' with value"


async def _tool_type(args: Any, state: BrowserState) -> str:
    selector = _require(args, "selector")
    text = _require(args, "text")
    js = (
        "(function(){\n"
        f"    var el = document.querySelector({_js(selector)});\n"
        f'    if (!el) return "{_NOT_FOUND}";\n'
        f'    el.value = (el.value || "") + {_js(text)};\n'
        '    el.dispatchEvent(new Event("input", {bubbles:true}));\n'
        '    return "ok";\n'
        "})()"
    )
    if state.page().evaluate(js) == _NOT_FOUND:
        raise _ToolError(f"Element not found: {selector}")
    return f"Typed into '{selector}'"


async def _tool_press_key(args: Any, state: BrowserState) -> str:
    key = _require(args, "key")
    selector = _str_arg(args, "selector")
    target = "document" if selector is None else f"document.querySelector({_js(selector)})"
    key_js = _js(key)
    js = (
        "(function(){\n"
        f"    var t = {target};\n"
        f'    if (!t) return "{_NOT_FOUND}";\n'
        f'    t.dispatchEvent(new KeyboardEvent("keydown", {{key:{key_js},bubbles:true}}));\n'
        f'    t.dispatchEvent(new KeyboardEvent("keyup", {{key:{key_js},bubbles:true}}));\n'
        '    return "ok";\n'
        "})()"
    )
    state.page().evaluate(js)
    return f"Pressed key '{key}'"


async def _tool_select_option(args: Any, state: BrowserState) -> str:
    selector = _require(args, "selector")
    value = _require(args, "value")
    val = _js(value)
    js = (
        "(function(){\n"
        f"    var el = document.querySelector({_js(selector)});\n"
        f'    if (!el) return "{_NOT_FOUND}";\n'
        "    var opts = Array.from(el.options);\n"
        f"    var opt = opts.find(function(o){{ return o.value === {val} || o.text === {val}; }});\n"
        f'    if (!opt) return "{_OPTION_NOT_FOUND}";\n'
        "    el.value = opt.value;\n"
        '    el.dispatchEvent(new Event("change", {bubbles:true}));\n'
        '    return "ok";\n'
        "})()"
    )
    result = state.page().evaluate(js)
    if result == _NOT_FOUND:
        raise _ToolError(f"Element not found: {selector}")
    if result == _OPTION_NOT_FOUND:
        raise _ToolError(f"Option not found: {value}")
    return f"Selected '{value}' in '{selector}'"


async def _tool_evaluate(args: Any, state: BrowserState) -> str:
    expression = _require(args, "expression")
    result = state.page().evaluate(expression)
    if isinstance(result, str):
        return result
    if result is None:
        return "null"
    return json.dumps(result, indent=2, ensure_ascii=False)


def _timeout_seconds(args: Any) -> int:
    value = _get(args, "timeout")
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 30
    if value != value or value <= 0:
        return 0
    if value == float("inf"):
        return 2**64 - 1
    return int(value)


async def _tool_wait_for(args: Any, state: BrowserState) -> str:
    selector = _require(args, "selector")
    timeout = _timeout_seconds(args)
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while True:
        if state.page().has_selector(selector):
            return f"Found '{selector}'"
        if loop.time() >= deadline:
            raise _ToolError(f"Timeout waiting for '{selector}'")
        await asyncio.sleep(0.2)


async def _tool_network_requests(args: Any, state: BrowserState) -> str:
    events = state.page().network_events
    if not events:
        return "No network requests recorded."
    return "\n".join(
        f"[{e.status}] {e.method} {e.url} ({e.body_size}B)" for e in events
    )


async def _tool_console_messages(args: Any, state: BrowserState) -> str:
    if not state.console_messages:
        return "No console messages."
    return "\n".join(state.console_messages)


async def _tool_close(args: Any, state: BrowserState) -> str:
    state.close_page()
    return "Browser page closed."


_TOOLS: dict[str, Callable[[Any, BrowserState], Awaitable[str]]] = {
    "browser_navigate": _tool_navigate,
    "browser_snapshot": _tool_snapshot,
    "browser_click": _tool_click,
    "browser_fill": _tool_fill,
    "browser_type": _tool_type,
    "browser_press_key": _tool_press_key,
    "browser_select_option": _tool_select_option,
    "browser_evaluate": _tool_evaluate,
    "browser_wait_for": _tool_wait_for,
    "browser_network_requests": _tool_network_requests,
    "browser_console_messages": _tool_console_messages,
    "browser_close": _tool_close,
}


async def _handle_tool_call(request_id: Any, params: Any, state: BrowserState) -> RpcResponse:
    name = _str_arg(params, "name")
    if name is None:
        return RpcResponse.err(request_id, ERR_INVALID_PARAMS, "Missing tool name")
    args = _get(params, "arguments")
    tool = _TOOLS.get(name)
    try:
        if tool is None:
            raise _ToolError(f"Unknown tool: {name}")
        content = await tool(args, state)
    except _ToolError as exc:
        return RpcResponse.ok(request_id, {
            "content": [{"type": "text", "text": f"Error: {exc}"}],
            "isError": True,
        })
    return RpcResponse.ok(request_id, {"content": [{"type": "text", "text": content}]})


async def dispatch(method: str, request_id: Any, params: Any, state: BrowserState) -> RpcResponse:
    """Answer one JSON-RPC request."""
    if method == "initialize":
        return RpcResponse.ok(request_id, {
            "protocolVersion": PROTOCOL_VERSION,
            "capabilities": {"tools": {}},
            "serverInfo": {"name": SERVER_NAME, "version": SERVER_VERSION},
        })
    if method == "ping":
        return RpcResponse.ok(request_id, {})
    if method == "tools/list":
        return RpcResponse.ok(request_id, {"tools": tools_list()})
    if method == "tools/call":
        return await _handle_tool_call(request_id, params, state)
    if method == "resources/list":
        return RpcResponse.ok(request_id, {"resources": []})
    if method == "prompts/list":
        return RpcResponse.ok(request_id, {"prompts": []})
    return RpcResponse.err(request_id, ERR_METHOD_NOT_FOUND, f"Unknown method: {method}")


def _parse_message(line: str) -> Optional[dict[str, Any]]:
    try:
        msg = json.loads(line)
    except ValueError:
        return None
    if not isinstance(msg, dict):
        return None
    if not isinstance(msg.get("jsonrpc"), str) or not isinstance(msg.get("method"), str):
        return None
    return msg


async def run_stdio(state: BrowserState, reader: Any, writer: Any) -> None:
    """Serve newline-delimited JSON-RPC from ``reader`` until end of input.

    ``reader`` needs an awaitable ``readline()``; ``writer`` needs ``write(bytes)``
    and may offer an awaitable ``drain()``.
    """
    while True:
        raw = await reader.readline()
        if not raw:
            return
        line = raw.decode("utf-8", errors="replace") if isinstance(raw, bytes) else raw
        trimmed = line.strip()
        if not trimmed:
            continue
        msg = _parse_message(trimmed)
        if msg is None or msg.get("id") is None:
            continue
        response = await dispatch(msg["method"], msg["id"], msg.get("params"), state)
        body = json.dumps(response.to_dict(), ensure_ascii=False, separators=(",", ":")) + "\n"
        writer.write(body.encode("utf-8"))
        drain = getattr(writer, "drain", None)
        if drain is not None:
            await drain()