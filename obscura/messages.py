"""Request and response records passed around the HTTP layer."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field


class ResourceType(enum.Enum):
    DOCUMENT = "Document"
    SCRIPT = "Script"
    STYLESHEET = "Stylesheet"
    IMAGE = "Image"
    FONT = "Font"
    XHR = "XHR"
    FETCH = "Fetch"
    OTHER = "Other"


@dataclass
class RequestInfo:
    """What is about to be sent, as shown to interceptors and callbacks."""

    url: str
    method: str
    headers: dict[str, str] = field(default_factory=dict)
    resource_type: ResourceType = ResourceType.DOCUMENT


@dataclass
class Response:
    """A complete HTTP response; header names are stored in lower case."""

    url: str
    status: int
    headers: dict[str, str] = field(default_factory=dict)
    body: bytes = b""
    redirected_from: list[str] = field(default_factory=list)

    def text(self) -> str:
        """The body decoded as UTF-8; raises UnicodeDecodeError if it is not."""
        return self.body.decode("utf-8")

    def header(self, name: str) -> str | None:
        return self.headers.get(name.lower())

    def content_type(self) -> str | None:
        return self.header("content-type")

    def is_html(self) -> bool:
        content_type = self.content_type()
        return content_type is not None and "text/html" in content_type