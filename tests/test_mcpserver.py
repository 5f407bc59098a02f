import asyncio
import json

import pytest

from obscura.mcpserver import (
    BrowserState,
    DomNode,
    NetworkEvent,
    PageBackend,
    RpcResponse,
    dispatch,
    extract_text,
    run_stdio,
    tools_list,
)


class FakePage(PageBackend):
    def __init__(self, eval_result="ok", body=None, selectors=(), fail_with=None):
        super().__init__()
        self.eval_result = eval_result
        self._body = body
        self.selectors = set(selectors)
        self.fail_with = fail_with
        self.expressions = []
        self.user_agents = []
        self.navigations = []

    async def navigate(self, url, wait_until):
        if self.fail_with is not None:
            raise RuntimeError(self.fail_with)
        self.navigations.append((url, wait_until))
        self.url = url
        self.title = "Example"

    def evaluate(self, expression):
        self.expressions.append(expression)
        return self.eval_result

    def body(self):
        return self._body

    def has_selector(self, selector):
        return selector in self.selectors

    async def set_user_agent(self, ua):
        self.user_agents.append(ua)


def make_state(page=None, user_agent=None):
    created = []

    def factory():
        p = page if page is not None and not created else FakePage()
        created.append(p)
        return p

    state = BrowserState(factory, user_agent)
    return state, created


async def call_tool(state, name, arguments=None):
    params = {"name": name}
    if arguments is not None:
        params["arguments"] = arguments
    resp = await dispatch("tools/call", 7, params, state)
    return resp.to_dict()["result"]


def test_rpc_response_ok_to_dict():
    assert RpcResponse.ok(1, {}).to_dict() == {"jsonrpc": "2.0", "id": 1, "result": {}}


def test_rpc_response_err_to_dict():
    data = RpcResponse.err("a", -32601, "Unknown method: x").to_dict()
    assert data == {
        "jsonrpc": "2.0",
        "id": "a",
        "error": {"code": -32601, "message": "Unknown method: x"},
    }


@pytest.mark.asyncio
async def test_initialize():
    state, _ = make_state()
    result = (await dispatch("initialize", 1, {"protocolVersion": "x"}, state)).to_dict()["result"]
    assert result["protocolVersion"] == "2024-11-05"
    assert result["serverInfo"]["name"] == "obscura-mcp"
    assert result["capabilities"] == {"tools": {}}


@pytest.mark.asyncio
async def test_ping_and_empty_lists():
    state, _ = make_state()
    assert (await dispatch("ping", 1, None, state)).result == {}
    assert (await dispatch("resources/list", 2, None, state)).result == {"resources": []}
    assert (await dispatch("prompts/list", 3, None, state)).result == {"prompts": []}


@pytest.mark.asyncio
async def test_unknown_method():
    state, _ = make_state()
    resp = await dispatch("foo", 4, None, state)
    assert resp.error.code == -32601
    assert resp.error.message == "Unknown method: foo"


@pytest.mark.asyncio
async def test_tools_list_via_dispatch():
    state, _ = make_state()
    result = (await dispatch("tools/list", 1, None, state)).result
    names = [tool["name"] for tool in result["tools"]]
    assert names == [tool["name"] for tool in tools_list()]
    assert "browser_navigate" in names and "browser_close" in names
    assert len(set(names)) == len(names)
    navigate = next(t for t in tools_list() if t["name"] == "browser_navigate")
    assert navigate["inputSchema"]["required"] == ["url"]


@pytest.mark.asyncio
async def test_tool_call_missing_name():
    state, _ = make_state()
    resp = await dispatch("tools/call", 9, {}, state)
    assert resp.error.code == -32602
    assert resp.error.message == "Missing tool name"


@pytest.mark.asyncio
async def test_unknown_tool():
    state, _ = make_state()
    result = await call_tool(state, "nope", {})
    assert result["isError"] is True
    assert result["content"][0]["text"] == "Error: Unknown tool: nope"


@pytest.mark.asyncio
async def test_navigate_missing_url():
    state, _ = make_state()
    result = await call_tool(state, "browser_navigate")
    assert result["content"][0]["text"] == "Error: Missing url parameter"


@pytest.mark.asyncio
async def test_navigate_success_sets_user_agent():
    page = FakePage()
    state, _ = make_state(page, user_agent="TestAgent")
    result = await call_tool(state, "browser_navigate", {"url": "https://example.com/"})
    assert "isError" not in result
    assert result["content"][0]["text"] == 'Navigated to https://example.com/ — "Example"'
    assert page.user_agents == ["TestAgent"]
    assert page.navigations == [("https://example.com/", "load")]


@pytest.mark.asyncio
async def test_navigate_failure():
    state, _ = make_state(FakePage(fail_with="boom"))
    result = await call_tool(state, "browser_navigate", {"url": "https://example.com/"})
    assert result["isError"] is True
    assert result["content"][0]["text"] == "Error: boom"


@pytest.mark.asyncio
async def test_snapshot():
    body = DomNode.element("body", DomNode.element("p", DomNode.text_node("  Hello ")))
    page = FakePage(body=body)
    page.url = "https://example.com/"
    page.title = "Home"
    state, _ = make_state(page)
    text = (await call_tool(state, "browser_snapshot"))["content"][0]["text"]
    assert text == "URL: https://example.com/\nTitle: Home\n\nHello"


@pytest.mark.asyncio
async def test_click_not_found():
    page = FakePage(eval_result="error:element not found")
    state, _ = make_state(page)
    result = await call_tool(state, "browser_click", {"selector": "#x"})
    assert result["content"][0]["text"] == "Error: Element not found: #x"
    assert '"#x"' in page.expressions[0]


@pytest.mark.asyncio
async def test_fill_ok():
    page = FakePage()
    state, _ = make_state(page)
    result = await call_tool(state, "browser_fill", {"selector": "#a", "value": "hello"})
    assert result["content"][0]["text"] == "Filled '#a' with value"
    assert '"hello"' in page.expressions[0]


@pytest.mark.asyncio
async def test_type_missing_text():
    state, _ = make_state()
    result = await call_tool(state, "browser_type", {"selector": "#a"})
    assert result["content"][0]["text"] == "Error: Missing text parameter"


@pytest.mark.asyncio
async def test_press_key_always_ok():
    page = FakePage(eval_result="error:element not found")
    state, _ = make_state(page)
    result = await call_tool(state, "browser_press_key", {"key": "Enter", "selector": "#q"})
    assert result["content"][0]["text"] == "Pressed key 'Enter'"
    assert "document.querySelector" in page.expressions[0]


@pytest.mark.asyncio
async def test_select_option_errors():
    state, _ = make_state(FakePage(eval_result="error:option not found"))
    result = await call_tool(state, "browser_select_option", {"selector": "s", "value": "v"})
    assert result["content"][0]["text"] == "Error: Option not found: v"
    state2, _ = make_state(FakePage())
    ok = await call_tool(state2, "browser_select_option", {"selector": "s", "value": "v"})
    assert ok["content"][0]["text"] == "Selected 'v' in 's'"


@pytest.mark.asyncio
async def test_evaluate_formats():
    value = {"a": [1, 2], "b": True}
    state, _ = make_state(FakePage(eval_result=value))
    text = (await call_tool(state, "browser_evaluate", {"expression": "x"}))["content"][0]["text"]
    assert json.loads(text) == value
    state2, _ = make_state(FakePage(eval_result=None))
    null_text = (await call_tool(state2, "browser_evaluate", {"expression": "x"}))["content"][0]["text"]
    assert null_text == "null"


@pytest.mark.asyncio
async def test_wait_for_found_and_timeout():
    state, _ = make_state(FakePage(selectors={"h1"}))
    found = await call_tool(state, "browser_wait_for", {"selector": "h1"})
    assert found["content"][0]["text"] == "Found 'h1'"
    missing = await call_tool(state, "browser_wait_for", {"selector": "h2", "timeout": 0})
    assert missing["content"][0]["text"] == "Error: Timeout waiting for 'h2'"


@pytest.mark.asyncio
async def test_network_requests():
    page = FakePage()
    state, _ = make_state(page)
    empty = await call_tool(state, "browser_network_requests")
    assert empty["content"][0]["text"] == "No network requests recorded."
    page.network_events.append(NetworkEvent(200, "GET", "https://example.com/", 12))
    listed = await call_tool(state, "browser_network_requests")
    assert listed["content"][0]["text"] == "[200] GET https://example.com/ (12B)"


@pytest.mark.asyncio
async def test_console_and_close():
    state, created = make_state()
    assert (await call_tool(state, "browser_console_messages"))["content"][0]["text"] == "No console messages."
    state.console_messages.extend(["a", "b"])
    assert (await call_tool(state, "browser_console_messages"))["content"][0]["text"] == "a\nb"
    first = state.page()
    closed = await call_tool(state, "browser_close")
    assert closed["content"][0]["text"] == "Browser page closed."
    assert state.console_messages == []
    assert state.page() is not first
    assert len(created) == 2


def test_extract_text_skips_scripts_and_breaks_blocks():
    doc = DomNode(children=[
        DomNode.element(
            "body",
            DomNode.element("p", DomNode.text_node("Hello")),
            DomNode.element("script", DomNode.text_node("secretcode()")),
            DomNode.element("span", DomNode.text_node("World")),
        )
    ])
    text = extract_text(doc)
    assert text.split() == ["Hello", "World"]
    assert "secretcode" not in text
    assert text.startswith("\n")


def test_extract_text_empty_text_nodes():
    assert extract_text(DomNode.element("span", DomNode.text_node("   "))) == ""
    assert extract_text(None) == ""


class _Writer:
    def __init__(self):
        self.chunks = []

    def write(self, data):
        self.chunks.append(data)

    async def drain(self):
        return None


@pytest.mark.asyncio
async def test_run_stdio():
    reader = asyncio.StreamReader()
    lines = [
        '{"jsonrpc":"2.0","method":"notifications/initialized"}',
        "not json",
        "",
        '{"jsonrpc":"2.0","id":1,"method":"ping"}',
        '{"jsonrpc":"2.0","id":2,"method":"bogus"}',
    ]
    reader.feed_data(("\n".join(lines) + "\n").encode())
    reader.feed_eof()
    writer = _Writer()
    state, _ = make_state()
    await run_stdio(state, reader, writer)
    output = b"".join(writer.chunks).decode()
    assert output.endswith("\n")
    responses = [json.loads(line) for line in output.splitlines()]
    assert [r["id"] for r in responses] == [1, 2]
    assert responses[0]["result"] == {}
    assert responses[1]["error"]["code"] == -32601