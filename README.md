# obscura

Building blocks for a headless browser, using only the standard library.

- `obscura.cookies` has `CookieJar`, a thread-safe cookie store keyed by
  domain and name. It honours `Domain`, `Path`, `Secure`, `HttpOnly`,
  `Expires` and `Max-Age`. It builds `Cookie` request headers and the
  script-visible `document.cookie` string, which leaves out HttpOnly cookies.
  It also has `CookieInfo`, `parse_http_date` and `domain_matches`.
- `obscura.robots` has `RobotsCache`, `RobotsRules`, `parse_robots_txt` and
  `path_matches`.
- `obscura.messages` has the `RequestInfo` and `Response` records and the
  `ResourceType` enum.
- `obscura.interceptor` has the abstract `RequestInterceptor` and the actions
  it may return: `Continue`, `Block`, `Fulfill` and `ModifyHeaders`.
- `obscura.mcpserver` is a Model Context Protocol tool server that exposes
  browser actions over JSON-RPC. It runs on a page backend that you supply.
- `obscura.mcphttp` serves the same tools over HTTP on `POST /mcp`.

## Cookies

```python
from obscura.cookies import CookieJar

jar = CookieJar()
jar.set_cookie("session=token; Path=/; HttpOnly", "https://www.example.com/")
jar.set_cookie("theme=dark; Domain=example.com", "https://www.example.com/")

jar.get_cookie_header("https://www.example.com/")       # "session=token; theme=dark"
jar.get_cookie_header("https://api.example.com/")       # "theme=dark"
jar.get_js_visible_cookies("https://www.example.com/")  # "theme=dark"

jar.set_cookie("theme=dark; Max-Age=0", "https://www.example.com/")  # deletes it
```

Other `CookieJar` methods:

- `set_cookie_from_js` stores a cookie written through `document.cookie` and
  ignores any `HttpOnly` flag.
- `get_all_cookies` and `set_cookies_from_cdp` move cookies in and out as
  `CookieInfo` records. `CookieInfo.to_dict` and `CookieInfo.from_dict` use
  the `httpOnly` key.
- `delete_cookie(name, domain)` removes one cookie. An empty domain removes it
  from every domain.
- `clear` empties the jar.

## robots.txt

```python
from obscura.robots import RobotsCache

robots = RobotsCache()
robots.parse_and_store(
    "example.com",
    "User-agent: *\nDisallow: /admin\nAllow: /admin/public\n",
    "Obscura",
)
robots.is_allowed("example.com", "/admin")         # False
robots.is_allowed("example.com", "/admin/public")  # True
robots.is_allowed("other.example.com", "/admin")   # True: no rules stored
```

Section selection:

- A section applies when its agent is `*`, or when one agent name contains the
  other, ignoring case.
- If no section names your agent specifically, only the `*` sections are used.

Rule matching:

- `Allow` patterns are checked before `Disallow` patterns.
- A pattern may end in `*`, which matches any path with that prefix, or in `$`,
  which matches that exact path.
- Any other pattern matches paths that start with it.

## Responses and interception

`Response` stores header names in lower case. It provides `text()`, which
decodes the body as UTF-8, and `header(name)`, `content_type()` and
`is_html()`.

A `RequestInterceptor` subclass implements an async
`intercept(request: RequestInfo)`. It returns one of `Continue()`, `Block()`,
`Fulfill(response)` or `ModifyHeaders(headers)`. These are data types only;
nothing in the package sends requests through an interceptor.

## MCP server

To run the server, subclass `PageBackend` and implement these methods:

- `navigate`
- `evaluate`
- `body`, which returns a `DomNode` tree
- `has_selector`
- `set_user_agent`

A page also has the `url`, `title` and `network_events` attributes;
`network_events` holds `NetworkEvent` items. `BrowserState(page_factory,
user_agent)` creates the page on first use, and `close_page()` discards it.

```python
import asyncio
import sys

from obscura.mcpserver import BrowserState, run_stdio


async def serve(page_factory):
    state = BrowserState(page_factory)
    loop = asyncio.get_running_loop()
    reader = asyncio.StreamReader()
    await loop.connect_read_pipe(lambda: asyncio.StreamReaderProtocol(reader), sys.stdin)
    await run_stdio(state, reader, sys.stdout.buffer)
```

JSON-RPC handling:

- `dispatch(method, request_id, params, state)` answers `initialize`, `ping`,
  `tools/list`, `tools/call`, `resources/list` and `prompts/list`. Any other
  method gets error `-32601`.
- `tools_list()` describes the twelve browser tools, from `browser_navigate`
  to `browser_close`.
- A failing tool call returns a result with `"isError": true`, not a JSON-RPC
  error.
- `extract_text(node)` turns a `DomNode` tree into readable text. It skips
  `script`, `style` and `noscript`, and puts line breaks around block
  elements.

`run_stdio` reads one JSON message per line and writes one response per line.
Messages without an `id` are notifications and get no reply.

`obscura.mcphttp.run(port, state)` listens on `127.0.0.1` and serves one
connection at a time:

- `OPTIONS` gets CORS headers.
- `GET` with `Accept: text/event-stream` keeps an SSE stream open and sends a
  ping comment every 15 seconds.
- `POST /mcp` takes a single JSON-RPC message or a batch. The request must
  have a `Content-Length` header.
- Any other path gets 404, and other methods get 405.

`process_body` and `process_one` handle one request body and one message
without the network.

## What this package does not do

- The package contains no HTTP client. Nothing in it fetches pages, follows
  redirects or enforces an address policy on URLs.
- It has no script engine, no DOM implementation and no page loader.
- The MCP server only drives the `PageBackend` you give it.
- The package installs no command-line program. You start the servers from
  your own code.